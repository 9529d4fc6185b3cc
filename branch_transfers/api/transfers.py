from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from branch_transfers.api.auth import client_ip, get_current_user, require_roles
from branch_transfers.database import get_db
from branch_transfers.models.attachment import TransferInventory
from branch_transfers.models.transfer import Transfer, TransferStatus, TransferType
from branch_transfers.models.user import User
from branch_transfers.schemas.attachment import (
    TransferAssetCreate,
    TransferAssetOut,
    TransferInventoryCreate,
    TransferInventoryOut,
    TransferJobCreate,
    TransferJobOut,
    TransferUserCreate,
    TransferUserOut,
)
from branch_transfers.schemas.transfer import (
    TransferCreate,
    TransferDetailOut,
    TransferLogOut,
    TransferOut,
    TransitionRequest,
)
from branch_transfers.services import auth_service
from branch_transfers.services.transfer_workflow import TransferWorkflow

router = APIRouter(prefix="/transfers", tags=["Transfers"])

can_edit = require_roles("admin", "approver", "staff")
can_approve = require_roles("admin", "approver")


def get_workflow(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TransferWorkflow:
    """Workflow whose writes record an activity row for the calling user."""
    ip = client_ip(request)

    def audit(action: str, transfer: Transfer, detail: str) -> None:
        auth_service.log_activity(db, user, action, detail=detail, ip=ip, transfer_id=transfer.id)

    return TransferWorkflow(db, audit=audit)


def _not_found():
    return HTTPException(404, "Transfer not found")


@router.get("", response_model=list[TransferOut])
def list_transfers(
    branch_id: int | None = None,
    transfer_type: TransferType | None = Query(default=None, alias="type"),
    status: TransferStatus | None = None,
    skip: int = 0,
    limit: int = 100,
    user: User = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    return workflow.list_transfers(
        branch_id=branch_id,
        transfer_type=transfer_type,
        status=status,
        skip=skip,
        limit=limit,
    )


@router.get("/{transfer_id}", response_model=TransferDetailOut)
def get_transfer(
    transfer_id: int,
    user: User = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    detail = workflow.get_transfer_detail(transfer_id)
    if not detail:
        raise _not_found()
    return TransferDetailOut.model_validate(detail, from_attributes=True)


@router.get("/{transfer_id}/logs", response_model=list[TransferLogOut])
def list_transfer_logs(
    transfer_id: int,
    user: User = Depends(get_current_user),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    if not workflow.get_transfer(transfer_id):
        raise _not_found()
    return workflow.list_transfer_logs(transfer_id)


@router.post("", response_model=TransferOut, status_code=201)
def create_transfer(
    data: TransferCreate,
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    try:
        return workflow.create_transfer(data, user.id)
    except ValueError as e:
        raise HTTPException(400, str(e))


def _run_transition(
    name: str,
    transfer_id: int,
    data: TransitionRequest | None,
    user: User,
    workflow: TransferWorkflow,
):
    remarks = data.remarks if data else None
    try:
        transfer = workflow.transition(transfer_id, name, user.id, remarks)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not transfer:
        raise _not_found()
    return transfer


@router.post("/{transfer_id}/approve", response_model=TransferOut)
def approve_transfer(
    transfer_id: int,
    data: TransitionRequest | None = None,
    user: User = Depends(can_approve),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    return _run_transition("approve", transfer_id, data, user, workflow)


@router.post("/{transfer_id}/dispatch", response_model=TransferOut)
def dispatch_transfer(
    transfer_id: int,
    data: TransitionRequest | None = None,
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    return _run_transition("dispatch", transfer_id, data, user, workflow)


@router.post("/{transfer_id}/receive", response_model=TransferOut)
def receive_transfer(
    transfer_id: int,
    data: TransitionRequest | None = None,
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    return _run_transition("receive", transfer_id, data, user, workflow)


@router.post("/{transfer_id}/reject", response_model=TransferOut)
def reject_transfer(
    transfer_id: int,
    data: TransitionRequest | None = None,
    user: User = Depends(can_approve),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    return _run_transition("reject", transfer_id, data, user, workflow)


@router.post("/{transfer_id}/cancel", response_model=TransferOut)
def cancel_transfer(
    transfer_id: int,
    data: TransitionRequest | None = None,
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    return _run_transition("cancel", transfer_id, data, user, workflow)


# Attachments added after creation

@router.post("/{transfer_id}/jobs", response_model=list[TransferJobOut], status_code=201)
def add_transfer_jobs(
    transfer_id: int,
    jobs: list[TransferJobCreate],
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    rows = workflow.add_jobs(transfer_id, jobs)
    if rows is None:
        raise _not_found()
    return rows


@router.post("/{transfer_id}/inventory", response_model=TransferInventoryOut, status_code=201)
def add_transfer_inventory(
    transfer_id: int,
    data: TransferInventoryCreate,
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    inventory_id = workflow.add_inventory(transfer_id, data.notes, data.items)
    if inventory_id is None:
        raise _not_found()
    return workflow.db.get(TransferInventory, inventory_id)


@router.post("/{transfer_id}/assets", response_model=list[TransferAssetOut], status_code=201)
def add_transfer_assets(
    transfer_id: int,
    assets: list[TransferAssetCreate],
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    rows = workflow.add_assets(transfer_id, assets)
    if rows is None:
        raise _not_found()
    return rows


@router.post("/{transfer_id}/users", response_model=list[TransferUserOut], status_code=201)
def add_transfer_users(
    transfer_id: int,
    users: list[TransferUserCreate],
    user: User = Depends(can_edit),
    workflow: TransferWorkflow = Depends(get_workflow),
):
    rows = workflow.add_users(transfer_id, users)
    if rows is None:
        raise _not_found()
    return rows
