from datetime import datetime
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import Field, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from api.errors import AppError
from api.schemas import CamelModel, ListParams, UpdateModel, iso, list_params, not_null, page_payload, to_naive_utc
from auth.utils import TokenIdentity, get_current_identity
from db.database import get_db
from db.models import Habit, HabitLog
from db.repository import log_query, paginate
from services.ownership import HABIT, HABIT_LOG, Operation, authorize, get_or_404

router = APIRouter(prefix="/habit-logs", tags=["habit-logs"])

# tracking type -> (column, wire name)
VALUE_FIELDS = {
    "boolean": ("value_boolean", "valueBoolean"),
    "numeric": ("value_numeric", "valueNumeric"),
    "duration": ("value_duration", "valueDuration"),
}


def _habit_log_to_dict(log: HabitLog) -> dict:
    habit = log.habit
    return {
        "id": log.id,
        "userId": log.user_id,
        "habitId": log.habit_id,
        "valueBoolean": log.value_boolean,
        "valueNumeric": log.value_numeric,
        "valueDuration": log.value_duration,
        "notes": log.notes,
        "loggedAt": iso(log.logged_at),
        "createdAt": iso(log.created_at),
        "habit": {
            "id": habit.id,
            "name": habit.name,
            "trackingType": habit.tracking_type,
            "unit": habit.unit,
        } if habit else None,
    }


class HabitLogCreateRequest(CamelModel):
    habit_id: UUID
    value_boolean: Optional[bool] = None
    value_numeric: Optional[float] = None
    value_duration: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)
    logged_at: Optional[datetime] = None


class HabitLogUpdateRequest(UpdateModel):
    habit_id: Optional[UUID] = None
    value_boolean: Optional[bool] = None
    value_numeric: Optional[float] = None
    value_duration: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = Field(default=None, max_length=1000)
    logged_at: Optional[datetime] = None

    @field_validator("habit_id", "logged_at")
    @classmethod
    def _required_columns(cls, value, info: ValidationInfo):
        return not_null(value, info)


def _loggable_habit(db: Session, habit_id: UUID, user_id: str) -> Habit:
    habit = get_or_404(db, Habit, str(habit_id), HABIT)
    authorize(Operation.LOG, habit, user_id, HABIT)
    return habit


def require_value(habit: Habit, values: dict) -> None:
    """The value column matching the habit's tracking type must be present."""
    field = VALUE_FIELDS.get(habit.tracking_type)
    if field is None:
        return
    column, wire_name = field
    if values.get(column) is None:
        raise AppError.bad_request(f"{wire_name} is required for {habit.tracking_type} habits")


@router.get("")
def list_habit_logs(
    params: ListParams = Depends(list_params),
    habit_id: Optional[UUID] = Query(default=None, alias="habitId"),
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    query = log_query(
        db,
        HabitLog,
        identity.user_id,
        params.log_filter(habit_id),
        time_column=HabitLog.logged_at,
        resource_column=HabitLog.habit_id,
    )
    return page_payload(paginate(query, params.page, params.limit), _habit_log_to_dict)


@router.post("", status_code=201)
def create_habit_log(
    req: HabitLogCreateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    habit = _loggable_habit(db, req.habit_id, identity.user_id)
    require_value(habit, req.model_dump())

    now = datetime.utcnow()
    log = HabitLog(
        user_id=identity.user_id,
        habit_id=habit.id,
        value_boolean=req.value_boolean,
        value_numeric=req.value_numeric,
        value_duration=req.value_duration,
        notes=req.notes,
        logged_at=to_naive_utc(req.logged_at) or now,
        created_at=now,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return {"log": _habit_log_to_dict(log)}


@router.patch("/{log_id}")
def update_habit_log(
    log_id: str,
    req: HabitLogUpdateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    log = get_or_404(db, HabitLog, log_id, HABIT_LOG)
    authorize(Operation.UPDATE_LOG, log, identity.user_id, HABIT_LOG)

    habit = log.habit
    if "habit_id" in changes:
        habit = _loggable_habit(db, changes["habit_id"], identity.user_id)
        changes["habit_id"] = habit.id
    if "logged_at" in changes:
        changes["logged_at"] = to_naive_utc(changes["logged_at"])

    merged = {column: getattr(log, column) for column, _ in VALUE_FIELDS.values()}
    merged.update({k: v for k, v in changes.items() if k in merged})
    require_value(habit, merged)

    for key, value in changes.items():
        setattr(log, key, value)
    db.commit()
    db.refresh(log)
    return {"log": _habit_log_to_dict(log)}


@router.delete("/{log_id}")
def delete_habit_log(
    log_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    log = get_or_404(db, HabitLog, log_id, HABIT_LOG)
    authorize(Operation.DELETE_LOG, log, identity.user_id, HABIT_LOG)

    db.delete(log)
    db.commit()
    return {"message": "Habit log deleted successfully"}
