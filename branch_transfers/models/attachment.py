from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from branch_transfers.database import Base


class TransferJob(Base):
    __tablename__ = "transfer_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    job_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)


class TransferInventory(Base):
    __tablename__ = "transfer_inventories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    items: Mapped[list["TransferInventoryItem"]] = relationship(
        "TransferInventoryItem",
        back_populates="inventory",
        order_by="TransferInventoryItem.id",
        cascade="all, delete-orphan",
    )


class TransferInventoryItem(Base):
    __tablename__ = "transfer_inventory_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_inventory_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transfer_inventories.id", ondelete="CASCADE"), nullable=False, index=True
    )
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str | None] = mapped_column(String(50), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("1"))
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)

    inventory: Mapped["TransferInventory"] = relationship("TransferInventory", back_populates="items")


class TransferAsset(Base):
    __tablename__ = "transfer_assets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    asset_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)


class TransferUser(Base):
    __tablename__ = "transfer_users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    new_role_id: Mapped[int | None] = mapped_column(Integer, nullable=True)  # role held after the move
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
