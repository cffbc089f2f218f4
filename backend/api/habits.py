from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import Field, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from api.errors import AppError
from api.schemas import CamelModel, UpdateModel, not_null, required_text
from auth.utils import TokenIdentity, get_current_identity
from db.database import get_db
from db.models import Habit
from services.ownership import HABIT, Operation, authorize, get_or_404, visible_to

router = APIRouter(prefix="/habits", tags=["habits"])

TrackingType = Literal["boolean", "numeric", "duration"]


def _habit_to_dict(habit: Habit) -> dict:
    return {
        "id": habit.id,
        "userId": habit.user_id,
        "name": habit.name,
        "trackingType": habit.tracking_type,
        "unit": habit.unit,
        "isActive": bool(habit.is_active),
    }


class HabitCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    tracking_type: TrackingType
    unit: Optional[str] = Field(default=None, max_length=50)

    @field_validator("name")
    @classmethod
    def _trimmed_name(cls, value, info: ValidationInfo):
        return required_text(value, info)


class HabitUpdateRequest(UpdateModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    tracking_type: Optional[TrackingType] = None
    unit: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None

    @field_validator("name", "tracking_type", "is_active")
    @classmethod
    def _required_columns(cls, value, info: ValidationInfo):
        return not_null(value, info)

    @field_validator("name")
    @classmethod
    def _trimmed_name(cls, value, info: ValidationInfo):
        return required_text(value, info)


@router.get("")
def list_habits(
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    habits = (
        db.query(Habit)
        .filter(visible_to(Habit, identity.user_id))
        .order_by(Habit.user_id.isnot(None), Habit.name.asc(), Habit.id.asc())
        .all()
    )
    return {"habits": [_habit_to_dict(h) for h in habits]}


@router.post("", status_code=201)
def create_habit(
    req: HabitCreateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    habit = Habit(
        user_id=identity.user_id,
        name=req.name,
        tracking_type=req.tracking_type,
        unit=req.unit,
        is_active=True,
    )
    db.add(habit)
    db.commit()
    db.refresh(habit)
    return {"habit": _habit_to_dict(habit)}


@router.patch("/{habit_id}")
def update_habit(
    habit_id: str,
    req: HabitUpdateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    habit = get_or_404(db, Habit, habit_id, HABIT)
    authorize(Operation.UPDATE, habit, identity.user_id, HABIT)

    for key, value in changes.items():
        setattr(habit, key, value)
    db.commit()
    db.refresh(habit)
    return {"habit": _habit_to_dict(habit)}


@router.delete("/{habit_id}")
def delete_habit(
    habit_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    habit = get_or_404(db, Habit, habit_id, HABIT)
    authorize(Operation.DELETE, habit, identity.user_id, HABIT)

    db.delete(habit)
    db.commit()
    return {"message": "Habit deleted successfully"}
