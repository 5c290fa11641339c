# farmhub/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Sequence

from sqlalchemy import false, or_, select, func, true
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from farmhub.schemas import PageMeta

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
# keeps (page - 1) * limit inside a 64-bit OFFSET
MAX_PAGE = 1_000_000
MAX_LIMIT = 1_000


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def take(self) -> int:
        return self.limit


def _positive_int(v: Any) -> Optional[int]:
    try:
        n = int(v)
    except (TypeError, ValueError):
        return None
    return n if n > 0 else None


def resolve_page(page: Any = None, limit: Any = None) -> PageRequest:
    """
    Non-positive or missing values fall back to page 1 / limit 10;
    oversized ones are capped at MAX_PAGE / MAX_LIMIT.
    """
    return PageRequest(
        page=min(_positive_int(page) or DEFAULT_PAGE, MAX_PAGE),
        limit=min(_positive_int(limit) or DEFAULT_LIMIT, MAX_LIMIT),
    )


def search_clause(
    search: Optional[str],
    *,
    insensitive: Sequence[ColumnElement] = (),
    sensitive: Sequence[ColumnElement] = (),
) -> ColumnElement[bool]:
    """
    OR of substring matches over the given columns; matches every row when
    search is empty. Wildcards in the term are matched literally.
    """
    if not search:
        return true()
    terms = [col.icontains(search, autoescape=True) for col in insensitive]
    terms += [col.contains(search, autoescape=True) for col in sensitive]
    return or_(*terms) if terms else false()


def page_meta(total: int, req: PageRequest) -> PageMeta:
    pages = math.ceil(total / req.limit)
    return PageMeta(
        total=total,
        page=req.page,
        pages=pages,
        has_next_page=req.page < pages,
        has_prev_page=req.page > 1,
    )


def paginate(
    db: Session,
    model,
    req: PageRequest,
    where: ColumnElement[bool],
    *,
    options: Sequence[Any] = (),
) -> tuple[list, PageMeta]:
    """
    Run the count and the page query with the same predicate, newest first.
    Returns (rows, meta).
    """
    total = db.scalar(select(func.count()).select_from(model).where(where)) or 0

    stmt = (
        select(model)
        .where(where)
        .options(*options)
        .order_by(model.created_at.desc(), model.id.desc())
        .offset(req.skip)
        .limit(req.take)
    )
    rows = list(db.scalars(stmt).unique())
    return rows, page_meta(total, req)
