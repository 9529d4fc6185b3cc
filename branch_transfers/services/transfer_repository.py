from datetime import datetime

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from branch_transfers.models.transfer import Transfer, TransferLog, TransferLogAction, TransferStatus

REMARKS_MAX_LENGTH = 500


def clip_text(text: str | None, limit: int = REMARKS_MAX_LENGTH) -> str | None:
    """Trim and truncate free text; empty becomes None."""
    if text is None:
        return None
    text = text.strip()[:limit]
    return text or None


def _status_value(status: TransferStatus | str | None) -> str | None:
    if status is None:
        return None
    return status.value if isinstance(status, TransferStatus) else status


class TransferRepository:
    """Data access for transfers and their status log.

    Writes are flushed, never committed; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def get(self, transfer_id: int) -> Transfer | None:
        return self.db.get(Transfer, transfer_id)

    def get_for_update(self, transfer_id: int) -> Transfer | None:
        """Load a transfer with a row lock held until the transaction ends."""
        return self.db.execute(
            select(Transfer)
            .where(Transfer.id == transfer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def list_transfers(
        self,
        branch_id: int | None = None,
        transfer_type: str | None = None,
        status: str | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Transfer]:
        q = select(Transfer)
        if branch_id is not None:
            q = q.where(or_(Transfer.from_branch_id == branch_id, Transfer.to_branch_id == branch_id))
        if transfer_type:
            q = q.where(Transfer.transfer_type == transfer_type)
        if status:
            q = q.where(Transfer.status == status)
        q = q.order_by(Transfer.requested_at.desc(), Transfer.id.desc()).offset(skip)
        if limit is not None:
            q = q.limit(limit)
        return list(self.db.execute(q).scalars())

    def add(self, transfer: Transfer) -> Transfer:
        self.db.add(transfer)
        self.db.flush()
        return transfer

    def update_status(
        self,
        transfer: Transfer,
        new_status: TransferStatus,
        actor_field: str,
        user_id: int,
        when: datetime,
    ) -> None:
        """Write status, actor, its timestamp and the update audit pair in one UPDATE."""
        transfer.status = new_status
        setattr(transfer, f"{actor_field}_by", user_id)
        setattr(transfer, f"{actor_field}_at", when)
        transfer.updated_on = when
        transfer.updated_by = user_id
        self.db.flush()

    def add_log(
        self,
        transfer_id: int,
        from_status: TransferStatus | str | None,
        to_status: TransferStatus | str | None,
        remarks: str | None,
        user_id: int,
        when: datetime,
        action: TransferLogAction = TransferLogAction.STATUS_CHANGE,
    ) -> TransferLog:
        entry = TransferLog(
            transfer_id=transfer_id,
            action=action.value,
            from_status=_status_value(from_status),
            to_status=_status_value(to_status),
            remarks=clip_text(remarks),
            action_by=user_id,
            action_at=when,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_logs(self, transfer_id: int) -> list[TransferLog]:
        """Status history, newest first."""
        return list(
            self.db.execute(
                select(TransferLog)
                .where(TransferLog.transfer_id == transfer_id)
                .order_by(TransferLog.action_at.desc(), TransferLog.id.desc())
            ).scalars()
        )
