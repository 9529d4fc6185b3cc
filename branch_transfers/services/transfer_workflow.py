"""Transfer workflow: creation, status transitions and their audit trail.

    PENDING -> APPROVED -> IN_TRANSIT -> RECEIVED
    PENDING | APPROVED -> REJECTED | CANCELLED

Every transition locks the transfer row, writes the new status with its actor
and timestamp, then appends one ``TransferLog`` row. Both writes share one
transaction. With the strict policy a transition from any other status raises
``InvalidTransitionError`` before anything is written; the permissive policy
accepts every source status.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from branch_transfers.config import settings
from branch_transfers.database import transaction
from branch_transfers.models.transfer import Transfer, TransferLog, TransferStatus, TransferType
from branch_transfers.schemas.attachment import (
    TransferAssetCreate,
    TransferInventoryItemCreate,
    TransferJobCreate,
    TransferUserCreate,
)
from branch_transfers.schemas.transfer import TransferCreate
from branch_transfers.services import attachment_service
from branch_transfers.services.transfer_code import next_transfer_code
from branch_transfers.services.transfer_repository import REMARKS_MAX_LENGTH, TransferRepository, clip_text

logger = logging.getLogger(__name__)

AuditHook = Callable[[str, Transfer, str], None]


@dataclass(frozen=True)
class Transition:
    name: str
    target: TransferStatus
    actor_field: str  # prefix of the <field>_by / <field>_at pair written
    allowed_from: frozenset[TransferStatus]


TRANSITIONS: dict[str, Transition] = {
    "approve": Transition(
        "approve", TransferStatus.APPROVED, "approved", frozenset({TransferStatus.PENDING})
    ),
    "dispatch": Transition(
        "dispatch", TransferStatus.IN_TRANSIT, "dispatched", frozenset({TransferStatus.APPROVED})
    ),
    "receive": Transition(
        "receive", TransferStatus.RECEIVED, "received", frozenset({TransferStatus.IN_TRANSIT})
    ),
    "reject": Transition(
        "reject", TransferStatus.REJECTED, "approved",
        frozenset({TransferStatus.PENDING, TransferStatus.APPROVED}),
    ),
    "cancel": Transition(
        "cancel", TransferStatus.CANCELLED, "approved",
        frozenset({TransferStatus.PENDING, TransferStatus.APPROVED}),
    ),
}

TERMINAL_STATUSES = frozenset({TransferStatus.RECEIVED, TransferStatus.REJECTED, TransferStatus.CANCELLED})


class InvalidTransitionError(ValueError):
    def __init__(self, transfer_id: int, current: TransferStatus, transition: Transition):
        self.transfer_id = transfer_id
        self.current = current
        self.transition = transition
        if current in TERMINAL_STATUSES:
            message = f"Cannot {transition.name} transfer {transfer_id}: it is already {current.value}"
        else:
            message = f"Cannot {transition.name} transfer {transfer_id} in '{current.value}' status"
        super().__init__(message)

    @property
    def terminal(self) -> bool:
        return self.current in TERMINAL_STATUSES


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class TransferWorkflow:
    """Transfer operations bound to one session.

    The session is the storage context; the engine never opens its own.
    Transition methods return the updated transfer, or ``None`` when the id
    does not exist (nothing is written in that case).

    ``audit``, when given, is called as ``audit(action, transfer, detail)``
    inside every write transaction, so whatever it stages commits or rolls
    back together with the change it describes.
    """

    def __init__(self, db: Session, strict: bool | None = None, audit: AuditHook | None = None):
        self.db = db
        self.repo = TransferRepository(db)
        self.strict = settings.TRANSFER_STRICT_TRANSITIONS if strict is None else strict
        self.audit = audit

    def _record(self, action: str, transfer: Transfer, detail: str) -> None:
        if self.audit is not None:
            self.audit(action, transfer, detail)

    # Reads

    def get_transfer(self, transfer_id: int) -> Transfer | None:
        return self.repo.get(transfer_id)

    def list_transfers(
        self,
        branch_id: int | None = None,
        transfer_type: str | None = None,
        status: str | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[Transfer]:
        return self.repo.list_transfers(
            branch_id=branch_id, transfer_type=transfer_type, status=status, skip=skip, limit=limit
        )

    def list_transfer_logs(self, transfer_id: int) -> list[TransferLog]:
        return self.repo.list_logs(transfer_id)

    def get_transfer_detail(self, transfer_id: int) -> dict | None:
        transfer = self.repo.get(transfer_id)
        if not transfer:
            return None
        return {
            "transfer": transfer,
            "logs": self.repo.list_logs(transfer_id),
            "jobs": attachment_service.get_transfer_jobs(self.db, transfer_id),
            "inventories": attachment_service.get_transfer_inventories(self.db, transfer_id),
            "assets": attachment_service.get_transfer_assets(self.db, transfer_id),
            "users": attachment_service.get_transfer_users(self.db, transfer_id),
        }

    # Creation

    def create_transfer(self, data: TransferCreate, user_id: int) -> Transfer:
        """Insert a PENDING transfer, its creation log entry and any attachments."""
        if data.from_branch_id is None or data.to_branch_id is None:
            raise ValueError("from_branch_id and to_branch_id are required")
        if data.from_branch_id == data.to_branch_id:
            raise ValueError("Source and destination branch must be different")
        transfer_type = TransferType(data.transfer_type)

        attempts = max(1, settings.TRANSFER_CODE_MAX_RETRIES)
        for attempt in range(1, attempts + 1):
            try:
                with transaction(self.db):
                    transfer = self._insert_transfer(data, transfer_type, user_id)
                break
            except IntegrityError:
                if attempt == attempts:
                    raise
                logger.warning("Transfer code allocation conflict (attempt %d/%d), retrying", attempt, attempts)

        logger.info(
            "Transfer %s created by user %s: %s branch %s -> %s",
            transfer.transfer_code, user_id, transfer_type.value, data.from_branch_id, data.to_branch_id,
        )
        return transfer

    def _insert_transfer(self, data: TransferCreate, transfer_type: TransferType, user_id: int) -> Transfer:
        now = _utcnow()
        transfer = self.repo.add(Transfer(
            transfer_code=next_transfer_code(self.db, now),
            transfer_type=transfer_type,
            from_branch_id=data.from_branch_id,
            to_branch_id=data.to_branch_id,
            from_location_id=data.from_location_id,
            to_location_id=data.to_location_id,
            reason=clip_text(data.reason, REMARKS_MAX_LENGTH),
            status=TransferStatus.PENDING,
            requested_by=user_id,
            requested_at=now,
            created_by=user_id,
        ))
        self.repo.add_log(transfer.id, None, TransferStatus.PENDING, "Transfer created", user_id, now)

        if data.jobs:
            attachment_service.add_transfer_jobs(self.db, transfer.id, data.jobs)
        if data.items:
            attachment_service.add_transfer_inventory(self.db, transfer.id, data.inventory_notes, data.items)
        if data.assets:
            attachment_service.add_transfer_assets(self.db, transfer.id, data.assets)
        if data.users:
            attachment_service.add_transfer_users(self.db, transfer.id, data.users)
        self._record("create_transfer", transfer, f"Created transfer {transfer.transfer_code}")
        return transfer

    # Transitions

    def approve(self, transfer_id: int, user_id: int, remarks: str | None = None) -> Transfer | None:
        return self.transition(transfer_id, "approve", user_id, remarks)

    def dispatch(self, transfer_id: int, user_id: int, remarks: str | None = None) -> Transfer | None:
        return self.transition(transfer_id, "dispatch", user_id, remarks)

    def receive(self, transfer_id: int, user_id: int, remarks: str | None = None) -> Transfer | None:
        return self.transition(transfer_id, "receive", user_id, remarks)

    def reject(self, transfer_id: int, user_id: int, remarks: str | None = None) -> Transfer | None:
        return self.transition(transfer_id, "reject", user_id, remarks)

    def cancel(self, transfer_id: int, user_id: int, remarks: str | None = None) -> Transfer | None:
        return self.transition(transfer_id, "cancel", user_id, remarks)

    def transition(self, transfer_id: int, name: str, user_id: int, remarks: str | None = None) -> Transfer | None:
        step = TRANSITIONS.get(name)
        if step is None:
            raise ValueError(f"Unknown transfer transition '{name}'")

        with transaction(self.db):
            transfer = self.repo.get_for_update(transfer_id)
            if not transfer:
                return None

            old_status = TransferStatus(transfer.status)
            if self.strict and old_status not in step.allowed_from:
                raise InvalidTransitionError(transfer_id, old_status, step)

            now = _utcnow()
            self.repo.update_status(transfer, step.target, step.actor_field, user_id, now)
            self.repo.add_log(transfer.id, old_status, step.target, remarks, user_id, now)
            self._record(
                f"{step.name}_transfer", transfer,
                f"Transfer {transfer.transfer_code}: {old_status.value} -> {step.target.value}",
            )

        logger.info(
            "Transfer %s %s by user %s: %s -> %s",
            transfer_id, step.name, user_id, old_status.value, step.target.value,
        )
        return transfer

    # Attachments added after creation

    def add_jobs(self, transfer_id: int, jobs: list[TransferJobCreate]):
        return self._attach(
            transfer_id, "add_transfer_jobs", f"{len(jobs)} job(s)", attachment_service.add_transfer_jobs, jobs
        )

    def add_inventory(self, transfer_id: int, notes: str | None, items: list[TransferInventoryItemCreate]):
        return self._attach(
            transfer_id, "add_transfer_inventory", f"{len(items)} inventory item(s)",
            attachment_service.add_transfer_inventory, notes, items,
        )

    def add_assets(self, transfer_id: int, assets: list[TransferAssetCreate]):
        return self._attach(
            transfer_id, "add_transfer_assets", f"{len(assets)} asset(s)", attachment_service.add_transfer_assets, assets
        )

    def add_users(self, transfer_id: int, users: list[TransferUserCreate]):
        return self._attach(
            transfer_id, "add_transfer_users", f"{len(users)} user(s)", attachment_service.add_transfer_users, users
        )

    def _attach(self, transfer_id: int, action: str, summary: str, register, *args):
        with transaction(self.db):
            transfer = self.repo.get(transfer_id)
            if not transfer:
                return None
            result = register(self.db, transfer_id, *args)
            self._record(action, transfer, f"Transfer {transfer.transfer_code}: added {summary}")
        return result
