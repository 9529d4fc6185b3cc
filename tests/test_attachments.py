from decimal import Decimal

import pytest

from branch_transfers.models.attachment import TransferAsset, TransferJob
from branch_transfers.models.transfer import Transfer, TransferLog
from branch_transfers.schemas.attachment import (
    TransferAssetCreate,
    TransferInventoryItemCreate,
    TransferJobCreate,
    TransferUserCreate,
)
from branch_transfers.services import attachment_service, transfer_workflow


def test_create_registers_attachments_in_the_same_unit(workflow, transfer_data):
    transfer = workflow.create_transfer(transfer_data(
        transfer_type="INVENTORY",
        jobs=[{"job_id": 31, "notes": "reassign"}],
        inventory_notes="Spare parts",
        items=[
            {"item_name": "Cable", "sku": "CB-1", "quantity": "12.5", "unit": "m"},
            {"item_name": "Switch"},
        ],
        assets=[{"asset_id": 501}],
        users=[{"user_id": 44, "new_role_id": 3, "notes": "team lead"}],
    ), user_id=1)

    detail = workflow.get_transfer_detail(transfer.id)

    assert detail["transfer"].id == transfer.id
    assert [(j.job_id, j.notes) for j in detail["jobs"]] == [(31, "reassign")]
    assert len(detail["inventories"]) == 1
    inventory = detail["inventories"][0]
    assert inventory.notes == "Spare parts"
    assert [(i.item_name, i.sku, i.quantity, i.unit) for i in inventory.items] == [
        ("Cable", "CB-1", Decimal("12.50"), "m"),
        ("Switch", None, Decimal("1.00"), None),
    ]
    assert [a.asset_id for a in detail["assets"]] == [501]
    assert [(u.user_id, u.new_role_id, u.notes) for u in detail["users"]] == [(44, 3, "team lead")]
    assert len(detail["logs"]) == 1


def test_failed_attachment_rolls_back_creation(workflow, db, transfer_data, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("asset table locked")

    monkeypatch.setattr(transfer_workflow.attachment_service, "add_transfer_assets", broken)

    with pytest.raises(RuntimeError):
        workflow.create_transfer(transfer_data(assets=[{"asset_id": 1}]), user_id=1)

    assert db.query(Transfer).count() == 0
    assert db.query(TransferLog).count() == 0


def test_amendments_append_and_do_not_dedupe(workflow, db, transfer_data):
    transfer = workflow.create_transfer(transfer_data(), user_id=1)
    jobs = [TransferJobCreate(job_id=7)]

    workflow.add_jobs(transfer.id, jobs)
    workflow.add_jobs(transfer.id, jobs)

    assert [j.job_id for j in attachment_service.get_transfer_jobs(db, transfer.id)] == [7, 7]


def test_amendments_do_not_write_log_rows(workflow, transfer_data):
    transfer = workflow.create_transfer(transfer_data(), user_id=1)

    workflow.add_assets(transfer.id, [TransferAssetCreate(asset_id=9, notes="laptop")])
    workflow.add_users(transfer.id, [TransferUserCreate(user_id=12)])
    workflow.add_inventory(transfer.id, None, [TransferInventoryItemCreate(item_name="Desk", quantity=Decimal("2"))])

    assert len(workflow.list_transfer_logs(transfer.id)) == 1


def test_add_inventory_returns_header_id(workflow, db, transfer_data):
    transfer = workflow.create_transfer(transfer_data(), user_id=1)

    header_id = workflow.add_inventory(
        transfer.id, "Batch 2", [TransferInventoryItemCreate(item_name="Chair", quantity=Decimal("4"))]
    )

    inventories = attachment_service.get_transfer_inventories(db, transfer.id)
    assert [inv.id for inv in inventories] == [header_id]
    assert inventories[0].items[0].transfer_inventory_id == header_id


@pytest.mark.parametrize("method, args", [
    ("add_jobs", ([TransferJobCreate(job_id=1)],)),
    ("add_inventory", (None, [TransferInventoryItemCreate(item_name="Box")])),
    ("add_assets", ([TransferAssetCreate(asset_id=1)],)),
    ("add_users", ([TransferUserCreate(user_id=1)],)),
])
def test_amending_missing_transfer_returns_none(workflow, db, method, args):
    assert getattr(workflow, method)(4242, *args) is None
    assert db.query(TransferJob).count() == 0
    assert db.query(TransferAsset).count() == 0


def test_referenced_ids_are_not_checked(workflow, db, transfer_data):
    transfer = workflow.create_transfer(transfer_data(), user_id=1)
    rows = workflow.add_users(transfer.id, [TransferUserCreate(user_id=999999, new_role_id=888888)])
    assert rows[0].user_id == 999999


def test_notes_are_truncated(workflow, db, transfer_data):
    transfer = workflow.create_transfer(transfer_data(), user_id=1)
    workflow.add_assets(transfer.id, [TransferAssetCreate(asset_id=3, notes="n" * 900)])
    assert attachment_service.get_transfer_assets(db, transfer.id)[0].notes == "n" * 500
