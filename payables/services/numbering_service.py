from __future__ import annotations

import secrets
from datetime import date
from functools import lru_cache
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import InstrumentedAttribute, Session

from payables.config import settings
from payables.errors import ConflictError

PURCHASE_ORDER_PREFIX = 'PO'
PAYMENT_PREFIX = 'PAY'


class NumberGenerator(Protocol):
    def candidate(self, db: Session, *, column: InstrumentedAttribute, prefix: str, on_date: date) -> str: ...


def _day_stem(prefix: str, on_date: date) -> str:
    return f'{prefix}-{on_date.strftime("%Y%m%d")}-'


class RandomSuffixNumberGenerator:
    def candidate(self, db: Session, *, column: InstrumentedAttribute, prefix: str, on_date: date) -> str:
        return f'{_day_stem(prefix, on_date)}{secrets.randbelow(1000):03d}'


class DailySequenceNumberGenerator:
    """Next number after the highest one already issued for the day."""

    def candidate(self, db: Session, *, column: InstrumentedAttribute, prefix: str, on_date: date) -> str:
        stem = _day_stem(prefix, on_date)
        issued = db.execute(select(column).where(column.startswith(stem))).scalars().all()
        highest = 0
        for number in issued:
            suffix = number[len(stem) :]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f'{stem}{highest + 1:03d}'


@lru_cache(maxsize=1)
def get_number_generator() -> NumberGenerator:
    strategy = settings.number_strategy.strip().lower()
    if strategy == 'sequence':
        return DailySequenceNumberGenerator()
    return RandomSuffixNumberGenerator()


def allocate_number(
    db: Session,
    *,
    column: InstrumentedAttribute,
    prefix: str,
    on_date: date,
    generator: NumberGenerator | None = None,
    max_attempts: int | None = None,
) -> str:
    generator = generator or get_number_generator()
    attempts = max_attempts or settings.number_max_attempts
    for _ in range(attempts):
        candidate = generator.candidate(db, column=column, prefix=prefix, on_date=on_date)
        # Deleted rows still hold their number; the uniqueness check spans every lifecycle.
        taken = db.execute(select(column).where(column == candidate).limit(1)).first()
        if taken is None:
            return candidate
    raise ConflictError(f'Could not allocate a unique {prefix} number after {attempts} attempts', field=column.key)
