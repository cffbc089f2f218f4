from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from fastapi import Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from config import settings
from db.repository import LogFilter, Page


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (``displayName``) as well as field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class UpdateModel(CamelModel):
    def changes(self) -> dict[str, Any]:
        """Fields the client actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


def not_null(value, info):
    """Reject an explicit ``null`` for a column that cannot be empty."""
    if value is None:
        raise ValueError(f"{to_camel(info.field_name)} cannot be null")
    return value


def required_text(value, info):
    """Trim surrounding whitespace and reject a blank result."""
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError(f"{to_camel(info.field_name)} cannot be empty")
    return value


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class ListParams:
    start: Optional[datetime]
    end: Optional[datetime]
    page: int
    limit: int

    def log_filter(self, resource_id: Optional[UUID] = None) -> LogFilter:
        return LogFilter(
            start=self.start,
            end=self.end,
            resource_id=str(resource_id) if resource_id else None,
        )


def list_params(
    start_date: Optional[datetime] = Query(default=None, alias="startDate"),
    end_date: Optional[datetime] = Query(default=None, alias="endDate"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.PAGE_SIZE_DEFAULT, ge=1, le=settings.PAGE_SIZE_MAX),
) -> ListParams:
    return ListParams(start=to_naive_utc(start_date), end=to_naive_utc(end_date), page=page, limit=limit)


def page_payload(page: Page, serialize) -> dict:
    return {"logs": [serialize(item) for item in page.items], "pagination": page.pagination()}
