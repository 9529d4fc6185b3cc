"""Transfer code allocation: ``<prefix>-YYYYMMDD-NNN``.

Sequence numbers come from one counter row per day, read with
``SELECT ... FOR UPDATE`` so concurrent creators queue on the row instead of
counting existing transfers. SQLite has no row locks; file-backed SQLite
engines open every transaction with ``BEGIN IMMEDIATE`` instead (see
``create_db_engine``), which queues writers on the database lock. The unique
constraint on ``transfer_code`` stays as the last line: a writer that loses
the race to create a day's counter gets an ``IntegrityError`` and the caller
retries the whole unit of work.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from branch_transfers.config import settings
from branch_transfers.models.transfer import Transfer, TransferCodeCounter

logger = logging.getLogger(__name__)


def code_prefix(day: str) -> str:
    return f"{settings.TRANSFER_CODE_PREFIX}-{day}-"


def format_transfer_code(day: str, value: int) -> str:
    return f"{code_prefix(day)}{value:03d}"


def _highest_used(db: Session, day: str) -> int:
    """Highest sequence already present for the day, e.g. rows written before counters existed."""
    prefix = code_prefix(day)
    codes = db.execute(
        select(Transfer.transfer_code).where(Transfer.transfer_code.startswith(prefix, autoescape=True))
    ).scalars()
    highest = 0
    for code in codes:
        suffix = code[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def _code_taken(db: Session, code: str) -> bool:
    return db.execute(select(exists().where(Transfer.transfer_code == code))).scalar()


def next_transfer_code(db: Session, now: datetime | None = None) -> str:
    """Allocate the next code for the day of ``now`` (UTC today by default).

    Must run inside the transaction that inserts the transfer: the counter
    increment is only visible once that transaction commits.
    """
    now = now or datetime.now(timezone.utc)
    day = now.strftime("%Y%m%d")

    counter = db.execute(
        select(TransferCodeCounter)
        .where(TransferCodeCounter.day == day)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()

    if counter is None:
        counter = TransferCodeCounter(day=day, last_value=_highest_used(db, day))
        db.add(counter)
        db.flush()

    value = counter.last_value + 1
    while _code_taken(db, format_transfer_code(day, value)):
        value += 1
    counter.last_value = value
    db.flush()

    code = format_transfer_code(day, value)
    logger.debug("Allocated transfer code %s", code)
    return code
