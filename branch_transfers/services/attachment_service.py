from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from branch_transfers.models.attachment import (
    TransferAsset,
    TransferInventory,
    TransferInventoryItem,
    TransferJob,
    TransferUser,
)
from branch_transfers.schemas.attachment import (
    TransferAssetCreate,
    TransferInventoryItemCreate,
    TransferJobCreate,
    TransferUserCreate,
)
from branch_transfers.services.transfer_repository import clip_text

# Registrars flush only. They run inside the caller's unit of work and do not
# check that the referenced job, asset, user or role exists.


def add_transfer_jobs(db: Session, transfer_id: int, jobs: list[TransferJobCreate]) -> list[TransferJob]:
    rows = [TransferJob(transfer_id=transfer_id, job_id=j.job_id, notes=clip_text(j.notes)) for j in jobs]
    db.add_all(rows)
    db.flush()
    return rows


def add_transfer_inventory(
    db: Session, transfer_id: int, notes: str | None, items: list[TransferInventoryItemCreate]
) -> int:
    """Create the inventory header and one row per item. Returns the header id."""
    header = TransferInventory(transfer_id=transfer_id, notes=clip_text(notes))
    db.add(header)
    db.flush()

    for item in items:
        db.add(TransferInventoryItem(
            transfer_inventory_id=header.id,
            item_name=item.item_name,
            sku=item.sku,
            quantity=item.quantity,
            unit=item.unit,
        ))
    db.flush()
    return header.id


def add_transfer_assets(db: Session, transfer_id: int, assets: list[TransferAssetCreate]) -> list[TransferAsset]:
    rows = [TransferAsset(transfer_id=transfer_id, asset_id=a.asset_id, notes=clip_text(a.notes)) for a in assets]
    db.add_all(rows)
    db.flush()
    return rows


def add_transfer_users(db: Session, transfer_id: int, users: list[TransferUserCreate]) -> list[TransferUser]:
    rows = [
        TransferUser(transfer_id=transfer_id, user_id=u.user_id, new_role_id=u.new_role_id, notes=clip_text(u.notes))
        for u in users
    ]
    db.add_all(rows)
    db.flush()
    return rows


def get_transfer_jobs(db: Session, transfer_id: int) -> list[TransferJob]:
    return list(db.execute(
        select(TransferJob).where(TransferJob.transfer_id == transfer_id).order_by(TransferJob.id)
    ).scalars())


def get_transfer_inventories(db: Session, transfer_id: int) -> list[TransferInventory]:
    return list(db.execute(
        select(TransferInventory)
        .where(TransferInventory.transfer_id == transfer_id)
        .options(selectinload(TransferInventory.items))
        .order_by(TransferInventory.id)
    ).scalars())


def get_transfer_assets(db: Session, transfer_id: int) -> list[TransferAsset]:
    return list(db.execute(
        select(TransferAsset).where(TransferAsset.transfer_id == transfer_id).order_by(TransferAsset.id)
    ).scalars())


def get_transfer_users(db: Session, transfer_id: int) -> list[TransferUser]:
    return list(db.execute(
        select(TransferUser).where(TransferUser.transfer_id == transfer_id).order_by(TransferUser.id)
    ).scalars())
