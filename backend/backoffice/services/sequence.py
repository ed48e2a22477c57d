"""
Invoice number generation.

Format: ``<PREFIX><STAMP>-<NNNN>``
  - STAMP is ``YYMMDD`` for ledgers numbered per day, ``YYMM`` per month
    (e.g. INV250118-0001, SL2501-0001).
  - NNNN is zero-padded to four digits and simply widens after 9999.

Each (ledger, period) has a counter row in ``invoice_sequences``. The caller's
transaction locks it (``SELECT … FOR UPDATE``, or the SQLite write lock),
increments it and inserts the invoice before committing, so numbers are
unique and gapless within a period: a rolled-back invoice also rolls back
its increment.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from backoffice.core.clock import local_now, utc_now
from backoffice.core.config import settings
from backoffice.models.billing import InvoiceSequence

DAILY = "day"
MONTHLY = "month"

_STAMP_FORMATS = {DAILY: "%y%m%d", MONTHLY: "%y%m"}


@dataclass(frozen=True)
class NumberingScheme:
    ledger: str
    prefix: str
    period: str  # DAILY or MONTHLY

    def __post_init__(self) -> None:
        if self.period not in _STAMP_FORMATS:
            raise ValueError(f"Unknown numbering period {self.period!r}")


PRIMARY_NUMBERING = NumberingScheme("primary", settings.INVOICE_PREFIX, DAILY)
SL_NUMBERING = NumberingScheme("sl", settings.SL_INVOICE_PREFIX, MONTHLY)


def period_stamp(scheme: NumberingScheme, now: Optional[datetime] = None) -> str:
    """Period key in the store's local time (resets at local midnight / 1st)."""
    return local_now(now).strftime(_STAMP_FORMATS[scheme.period])


def format_invoice_number(scheme: NumberingScheme, stamp: str, sequence: int) -> str:
    return f"{scheme.prefix}{stamp}-{sequence:04d}"


def parse_sequence(invoice_number: str) -> Optional[int]:
    """Numeric suffix after the last '-', or None if it isn't a number."""
    _, sep, suffix = invoice_number.rpartition("-")
    if not sep or not suffix.isdigit():
        return None
    return int(suffix)


def _highest_existing(session: Session, number_column, number_prefix: str) -> int:
    """
    Highest sequence already used by invoices of this period.
    Compared numerically: "-10000" sorts before "-9999" as text.
    """
    rows = session.exec(
        select(number_column).where(number_column.startswith(number_prefix, autoescape=True))
    ).all()
    values = [parse_sequence(n) for n in rows]
    return max((v for v in values if v is not None), default=0)


def _lock_counter(session: Session, scheme: NumberingScheme, stamp: str) -> Optional[InvoiceSequence]:
    return session.exec(
        select(InvoiceSequence)
        .where(InvoiceSequence.ledger == scheme.ledger, InvoiceSequence.period == stamp)
        .with_for_update()
    ).first()


def next_invoice_number(
    session: Session,
    scheme: NumberingScheme,
    number_column,
    now: Optional[datetime] = None,
) -> str:
    """
    Reserve the next number of the current period inside ``session``'s
    transaction. Nothing is committed here.

    ``number_column`` is the invoice_number column of the ledger's invoice
    table; it seeds a period's counter the first time the period is seen.
    """
    stamp = period_stamp(scheme, now)
    counter = _lock_counter(session, scheme, stamp)

    if counter is None:
        number_prefix = f"{scheme.prefix}{stamp}-"
        seed = _highest_existing(session, number_column, number_prefix)
        try:
            # Savepoint: a concurrent first invoice of the period may insert
            # the same counter row; on collision use (and lock) theirs.
            with session.begin_nested():
                counter = InvoiceSequence(ledger=scheme.ledger, period=stamp, last_value=seed)
                session.add(counter)
        except IntegrityError:
            logger.debug(f"Sequence row {scheme.ledger}/{stamp} created concurrently, re-reading")
            counter = _lock_counter(session, scheme, stamp)
            if counter is None:
                raise

    counter.last_value += 1
    counter.updated_at = utc_now()
    session.add(counter)
    session.flush()

    return format_invoice_number(scheme, stamp, counter.last_value)
