from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from api.errors import AppError
from api.schemas import CamelModel, ListParams, UpdateModel, iso, list_params, not_null, page_payload, to_naive_utc
from auth.utils import TokenIdentity, get_current_identity
from db.database import get_db
from db.models import MoodLog
from db.repository import log_query, paginate
from services.ownership import MOOD_LOG, Operation, authorize, get_or_404

router = APIRouter(prefix="/mood-logs", tags=["mood-logs"])


def _mood_log_to_dict(log: MoodLog) -> dict:
    return {
        "id": log.id,
        "userId": log.user_id,
        "moodScore": log.mood_score,
        "energyLevel": log.energy_level,
        "stressLevel": log.stress_level,
        "notes": log.notes,
        "loggedAt": iso(log.logged_at),
        "createdAt": iso(log.created_at),
    }


class MoodLogCreateRequest(CamelModel):
    mood_score: int = Field(ge=1, le=5)
    energy_level: Optional[int] = Field(default=None, ge=1, le=5)
    stress_level: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = Field(default=None, max_length=1000)
    logged_at: Optional[datetime] = None


class MoodLogUpdateRequest(UpdateModel):
    mood_score: Optional[int] = Field(default=None, ge=1, le=5)
    energy_level: Optional[int] = Field(default=None, ge=1, le=5)
    stress_level: Optional[int] = Field(default=None, ge=1, le=5)
    notes: Optional[str] = Field(default=None, max_length=1000)
    logged_at: Optional[datetime] = None

    @field_validator("mood_score", "logged_at")
    @classmethod
    def _required_columns(cls, value, info: ValidationInfo):
        return not_null(value, info)


@router.get("")
def list_mood_logs(
    params: ListParams = Depends(list_params),
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    query = log_query(db, MoodLog, identity.user_id, params.log_filter(), time_column=MoodLog.logged_at)
    return page_payload(paginate(query, params.page, params.limit), _mood_log_to_dict)


@router.post("", status_code=201)
def create_mood_log(
    req: MoodLogCreateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    now = datetime.utcnow()
    log = MoodLog(
        user_id=identity.user_id,
        mood_score=req.mood_score,
        energy_level=req.energy_level,
        stress_level=req.stress_level,
        notes=req.notes,
        logged_at=to_naive_utc(req.logged_at) or now,
        created_at=now,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return {"log": _mood_log_to_dict(log)}


@router.patch("/{log_id}")
def update_mood_log(
    log_id: str,
    req: MoodLogUpdateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    log = get_or_404(db, MoodLog, log_id, MOOD_LOG)
    authorize(Operation.UPDATE_LOG, log, identity.user_id, MOOD_LOG)

    if "logged_at" in changes:
        changes["logged_at"] = to_naive_utc(changes["logged_at"])
    for key, value in changes.items():
        setattr(log, key, value)
    db.commit()
    db.refresh(log)
    return {"log": _mood_log_to_dict(log)}


@router.delete("/{log_id}")
def delete_mood_log(
    log_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    log = get_or_404(db, MoodLog, log_id, MOOD_LOG)
    authorize(Operation.DELETE_LOG, log, identity.user_id, MOOD_LOG)

    db.delete(log)
    db.commit()
    return {"message": "Mood log deleted successfully"}
