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
from db.models import Symptom, SymptomLog
from db.repository import log_query, paginate
from services.ownership import SYMPTOM, SYMPTOM_LOG, Operation, authorize, get_or_404

router = APIRouter(prefix="/symptom-logs", tags=["symptom-logs"])


def _symptom_log_to_dict(log: SymptomLog) -> dict:
    symptom = log.symptom
    return {
        "id": log.id,
        "userId": log.user_id,
        "symptomId": log.symptom_id,
        "severity": log.severity,
        "notes": log.notes,
        "loggedAt": iso(log.logged_at),
        "createdAt": iso(log.created_at),
        "symptom": {
            "id": symptom.id,
            "name": symptom.name,
            "category": symptom.category,
        } if symptom else None,
    }


class SymptomLogCreateRequest(CamelModel):
    symptom_id: UUID
    severity: int = Field(ge=1, le=10)
    notes: Optional[str] = Field(default=None, max_length=1000)
    logged_at: Optional[datetime] = None


class SymptomLogUpdateRequest(UpdateModel):
    symptom_id: Optional[UUID] = None
    severity: Optional[int] = Field(default=None, ge=1, le=10)
    notes: Optional[str] = Field(default=None, max_length=1000)
    logged_at: Optional[datetime] = None

    @field_validator("symptom_id", "severity", "logged_at")
    @classmethod
    def _required_columns(cls, value, info: ValidationInfo):
        return not_null(value, info)


def _loggable_symptom(db: Session, symptom_id: UUID, user_id: str) -> Symptom:
    symptom = get_or_404(db, Symptom, str(symptom_id), SYMPTOM)
    authorize(Operation.LOG, symptom, user_id, SYMPTOM)
    return symptom


@router.get("")
def list_symptom_logs(
    params: ListParams = Depends(list_params),
    symptom_id: Optional[UUID] = Query(default=None, alias="symptomId"),
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    query = log_query(
        db,
        SymptomLog,
        identity.user_id,
        params.log_filter(symptom_id),
        time_column=SymptomLog.logged_at,
        resource_column=SymptomLog.symptom_id,
    )
    return page_payload(paginate(query, params.page, params.limit), _symptom_log_to_dict)


@router.post("", status_code=201)
def create_symptom_log(
    req: SymptomLogCreateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    symptom = _loggable_symptom(db, req.symptom_id, identity.user_id)

    now = datetime.utcnow()
    log = SymptomLog(
        user_id=identity.user_id,
        symptom_id=symptom.id,
        severity=req.severity,
        notes=req.notes,
        logged_at=to_naive_utc(req.logged_at) or now,
        created_at=now,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return {"log": _symptom_log_to_dict(log)}


@router.patch("/{log_id}")
def update_symptom_log(
    log_id: str,
    req: SymptomLogUpdateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    log = get_or_404(db, SymptomLog, log_id, SYMPTOM_LOG)
    authorize(Operation.UPDATE_LOG, log, identity.user_id, SYMPTOM_LOG)

    if "symptom_id" in changes:
        changes["symptom_id"] = _loggable_symptom(db, changes["symptom_id"], identity.user_id).id
    if "logged_at" in changes:
        changes["logged_at"] = to_naive_utc(changes["logged_at"])

    for key, value in changes.items():
        setattr(log, key, value)
    db.commit()
    db.refresh(log)
    return {"log": _symptom_log_to_dict(log)}


@router.delete("/{log_id}")
def delete_symptom_log(
    log_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    log = get_or_404(db, SymptomLog, log_id, SYMPTOM_LOG)
    authorize(Operation.DELETE_LOG, log, identity.user_id, SYMPTOM_LOG)

    db.delete(log)
    db.commit()
    return {"message": "Symptom log deleted successfully"}
