from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Query


@dataclass(frozen=True)
class LogFilter:
    start: datetime | None = None
    end: datetime | None = None
    resource_id: str | None = None


@dataclass
class Page:
    items: list[Any]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        if self.limit <= 0:
            return 0
        return math.ceil(self.total / self.limit)

    def pagination(self) -> dict:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
        }


def apply_date_range(query: Query, column, start: datetime | None, end: datetime | None) -> Query:
    """Inclusive bounds on the given timestamp column."""
    if start is not None:
        query = query.filter(column >= start)
    if end is not None:
        query = query.filter(column <= end)
    return query


def log_query(
    db,
    model,
    user_id: str,
    log_filter: LogFilter,
    *,
    time_column,
    resource_column=None,
) -> Query:
    """Requester-scoped log query with date range, resource filter, and newest-first ordering."""
    query = db.query(model).filter(model.user_id == user_id)
    query = apply_date_range(query, time_column, log_filter.start, log_filter.end)
    if log_filter.resource_id and resource_column is not None:
        query = query.filter(resource_column == log_filter.resource_id)
    # id as secondary key keeps ordering stable within a query
    return query.order_by(time_column.desc(), model.id.desc())


def paginate(query: Query, page: int, limit: int) -> Page:
    page = max(int(page), 1)
    limit = max(int(limit), 1)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, page=page, limit=limit, total=total)
