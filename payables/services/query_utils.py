from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from payables.config import settings
from payables.errors import NotFoundError

T = TypeVar('T')


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    page: int
    limit: int
    total: int
    total_pages: int


def live_select(model) -> Select:
    return select(model).where(model.is_live())


def get_live(db: Session, model, entity_id: uuid.UUID, *, label: str, for_update: bool = False):
    stmt = live_select(model).where(model.id == entity_id)
    if for_update:
        stmt = stmt.with_for_update()
    row = db.execute(stmt).scalar_one_or_none()
    if row is None:
        raise NotFoundError(label, entity_id)
    return row


def normalize_paging(page: int | None, limit: int | None) -> tuple[int, int]:
    page_number = max(int(page or 1), 1)
    page_size = int(limit or settings.default_page_size)
    page_size = min(max(page_size, 1), settings.max_page_size)
    return page_number, page_size


def paginate(db: Session, stmt: Select, *, page: int | None, limit: int | None) -> Page:
    page_number, page_size = normalize_paging(page, limit)
    total = db.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    rows = db.execute(stmt.offset((page_number - 1) * page_size).limit(page_size)).scalars().all()
    return Page(
        items=list(rows),
        page=page_number,
        limit=page_size,
        total=total,
        total_pages=math.ceil(total / page_size) if total else 0,
    )
