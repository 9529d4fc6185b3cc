from decimal import Decimal

from pydantic import BaseModel, Field


class TransferJobCreate(BaseModel):
    job_id: int
    notes: str | None = None


class TransferInventoryItemCreate(BaseModel):
    item_name: str = Field(min_length=1, max_length=200)
    sku: str | None = Field(default=None, max_length=50)
    quantity: Decimal = Decimal("1")
    unit: str | None = Field(default=None, max_length=20)


class TransferInventoryCreate(BaseModel):
    notes: str | None = None
    items: list[TransferInventoryItemCreate]


class TransferAssetCreate(BaseModel):
    asset_id: int
    notes: str | None = None


class TransferUserCreate(BaseModel):
    user_id: int
    new_role_id: int | None = None
    notes: str | None = None


class TransferJobOut(BaseModel):
    id: int
    transfer_id: int
    job_id: int
    notes: str | None

    model_config = {"from_attributes": True}


class TransferInventoryItemOut(BaseModel):
    id: int
    transfer_inventory_id: int
    item_name: str
    sku: str | None
    quantity: Decimal
    unit: str | None

    model_config = {"from_attributes": True}


class TransferInventoryOut(BaseModel):
    id: int
    transfer_id: int
    notes: str | None
    items: list[TransferInventoryItemOut]

    model_config = {"from_attributes": True}


class TransferAssetOut(BaseModel):
    id: int
    transfer_id: int
    asset_id: int
    notes: str | None

    model_config = {"from_attributes": True}


class TransferUserOut(BaseModel):
    id: int
    transfer_id: int
    user_id: int
    new_role_id: int | None
    notes: str | None

    model_config = {"from_attributes": True}
