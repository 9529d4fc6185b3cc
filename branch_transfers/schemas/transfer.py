from datetime import datetime

from pydantic import BaseModel

from branch_transfers.models.transfer import TransferStatus, TransferType
from branch_transfers.schemas.attachment import (
    TransferAssetCreate,
    TransferAssetOut,
    TransferInventoryItemCreate,
    TransferInventoryOut,
    TransferJobCreate,
    TransferJobOut,
    TransferUserCreate,
    TransferUserOut,
)


class TransferCreate(BaseModel):
    transfer_type: TransferType
    from_branch_id: int
    to_branch_id: int
    from_location_id: int | None = None
    to_location_id: int | None = None
    reason: str | None = None

    # Attachments registered together with the transfer
    jobs: list[TransferJobCreate] = []
    inventory_notes: str | None = None
    items: list[TransferInventoryItemCreate] = []
    assets: list[TransferAssetCreate] = []
    users: list[TransferUserCreate] = []


class TransitionRequest(BaseModel):
    remarks: str | None = None


class TransferOut(BaseModel):
    id: int
    transfer_code: str
    transfer_type: TransferType
    from_branch_id: int
    to_branch_id: int
    from_location_id: int | None
    to_location_id: int | None
    status: TransferStatus
    reason: str | None
    requested_by: int
    approved_by: int | None
    dispatched_by: int | None
    received_by: int | None
    requested_at: datetime
    approved_at: datetime | None
    dispatched_at: datetime | None
    received_at: datetime | None
    is_active: bool
    created_on: datetime
    created_by: int | None
    updated_on: datetime | None
    updated_by: int | None

    model_config = {"from_attributes": True}


class TransferLogOut(BaseModel):
    id: int
    transfer_id: int
    action: str
    from_status: TransferStatus | None
    to_status: TransferStatus | None
    remarks: str | None
    action_by: int
    action_at: datetime

    model_config = {"from_attributes": True}


class TransferDetailOut(BaseModel):
    transfer: TransferOut
    logs: list[TransferLogOut]
    jobs: list[TransferJobOut]
    inventories: list[TransferInventoryOut]
    assets: list[TransferAssetOut]
    users: list[TransferUserOut]
