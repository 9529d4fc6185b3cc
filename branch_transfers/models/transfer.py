from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from branch_transfers.database import Base


class TransferType(str, PyEnum):
    JOB = "JOB"
    INVENTORY = "INVENTORY"
    ASSET = "ASSET"
    USER = "USER"


class TransferStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    IN_TRANSIT = "IN_TRANSIT"
    RECEIVED = "RECEIVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class TransferLogAction(str, PyEnum):
    STATUS_CHANGE = "STATUS_CHANGE"


class Transfer(Base):
    __tablename__ = "transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_code: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    transfer_type: Mapped[str] = mapped_column(
        Enum(TransferType, values_callable=lambda x: [e.value for e in x], native_enum=False, length=20),
        nullable=False,
        index=True,
    )

    from_branch_id: Mapped[int] = mapped_column(Integer, nullable=False)
    to_branch_id: Mapped[int] = mapped_column(Integer, nullable=False)
    from_location_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    to_location_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(
        Enum(TransferStatus, values_callable=lambda x: [e.value for e in x], native_enum=False, length=20),
        nullable=False,
        default=TransferStatus.PENDING,
    )
    reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Lifecycle actors; reject and cancel reuse the approval pair
    requested_by: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    approved_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    dispatched_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    received_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_on: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    created_by: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_on: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_by: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Read side of the audit trail; log rows are only ever inserted by the repository
    logs: Mapped[list["TransferLog"]] = relationship("TransferLog", order_by="TransferLog.id", viewonly=True)

    __table_args__ = (
        Index("ix_transfers_from_branch_status", "from_branch_id", "status"),
        Index("ix_transfers_to_branch_status", "to_branch_id", "status"),
    )


class TransferLog(Base):
    """Append-only status history. Rows are written once and never updated."""

    __tablename__ = "transfer_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transfer_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("transfers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(30), nullable=False, default=TransferLogAction.STATUS_CHANGE.value)
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)  # null for the creation entry
    to_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    remarks: Mapped[str | None] = mapped_column(String(500), nullable=True)
    action_by: Mapped[int] = mapped_column(Integer, nullable=False)
    action_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    transfer: Mapped["Transfer"] = relationship("Transfer", viewonly=True)


class TransferCodeCounter(Base):
    """Last sequence handed out per calendar day. Locked while allocating."""

    __tablename__ = "transfer_code_counters"

    day: Mapped[str] = mapped_column(String(8), primary_key=True)  # YYYYMMDD
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
