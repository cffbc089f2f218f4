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
from db.models import Medication, MedicationLog
from db.repository import log_query, paginate
from services.ownership import MEDICATION, MEDICATION_LOG, Operation, authorize, get_or_404

router = APIRouter(prefix="/medication-logs", tags=["medication-logs"])


def _medication_log_to_dict(log: MedicationLog) -> dict:
    medication = log.medication
    return {
        "id": log.id,
        "userId": log.user_id,
        "medicationId": log.medication_id,
        "taken": bool(log.taken),
        "takenAt": iso(log.taken_at),
        "notes": log.notes,
        "createdAt": iso(log.created_at),
        "medication": {
            "id": medication.id,
            "name": medication.name,
            "dosage": medication.dosage,
        } if medication else None,
    }


class MedicationLogCreateRequest(CamelModel):
    medication_id: UUID
    taken: bool
    taken_at: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=1000)


class MedicationLogUpdateRequest(UpdateModel):
    medication_id: Optional[UUID] = None
    taken: Optional[bool] = None
    taken_at: Optional[datetime] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("medication_id", "taken")
    @classmethod
    def _required_columns(cls, value, info: ValidationInfo):
        return not_null(value, info)


def _loggable_medication(db: Session, medication_id: UUID, user_id: str) -> Medication:
    medication = get_or_404(db, Medication, str(medication_id), MEDICATION)
    authorize(Operation.LOG, medication, user_id, MEDICATION)
    return medication


@router.get("")
def list_medication_logs(
    params: ListParams = Depends(list_params),
    medication_id: Optional[UUID] = Query(default=None, alias="medicationId"),
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    # taken_at is optional, so filtering and ordering use the creation time
    query = log_query(
        db,
        MedicationLog,
        identity.user_id,
        params.log_filter(medication_id),
        time_column=MedicationLog.created_at,
        resource_column=MedicationLog.medication_id,
    )
    return page_payload(paginate(query, params.page, params.limit), _medication_log_to_dict)


@router.post("", status_code=201)
def create_medication_log(
    req: MedicationLogCreateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    medication = _loggable_medication(db, req.medication_id, identity.user_id)

    log = MedicationLog(
        user_id=identity.user_id,
        medication_id=medication.id,
        taken=req.taken,
        taken_at=to_naive_utc(req.taken_at),
        notes=req.notes,
        created_at=datetime.utcnow(),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return {"log": _medication_log_to_dict(log)}


@router.patch("/{log_id}")
def update_medication_log(
    log_id: str,
    req: MedicationLogUpdateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    log = get_or_404(db, MedicationLog, log_id, MEDICATION_LOG)
    authorize(Operation.UPDATE_LOG, log, identity.user_id, MEDICATION_LOG)

    if "medication_id" in changes:
        changes["medication_id"] = _loggable_medication(db, changes["medication_id"], identity.user_id).id
    if "taken_at" in changes:
        changes["taken_at"] = to_naive_utc(changes["taken_at"])

    for key, value in changes.items():
        setattr(log, key, value)
    db.commit()
    db.refresh(log)
    return {"log": _medication_log_to_dict(log)}


@router.delete("/{log_id}")
def delete_medication_log(
    log_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    log = get_or_404(db, MedicationLog, log_id, MEDICATION_LOG)
    authorize(Operation.DELETE_LOG, log, identity.user_id, MEDICATION_LOG)

    db.delete(log)
    db.commit()
    return {"message": "Medication log deleted successfully"}
