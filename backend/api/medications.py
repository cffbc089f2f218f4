from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from api.errors import AppError
from api.schemas import CamelModel, UpdateModel, iso, not_null, required_text
from auth.utils import TokenIdentity, get_current_identity
from db.database import get_db
from db.models import Medication
from services.ownership import MEDICATION, Operation, authorize, get_or_404

router = APIRouter(prefix="/medications", tags=["medications"])


def _medication_to_dict(medication: Medication) -> dict:
    return {
        "id": medication.id,
        "userId": medication.user_id,
        "name": medication.name,
        "dosage": medication.dosage,
        "frequency": medication.frequency,
        "isActive": bool(medication.is_active),
        "createdAt": iso(medication.created_at),
    }


class MedicationCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    dosage: Optional[str] = Field(default=None, max_length=100)
    frequency: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def _trimmed_name(cls, value, info: ValidationInfo):
        return required_text(value, info)


class MedicationUpdateRequest(UpdateModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    dosage: Optional[str] = Field(default=None, max_length=100)
    frequency: Optional[str] = Field(default=None, max_length=100)
    is_active: Optional[bool] = None

    @field_validator("name", "is_active")
    @classmethod
    def _required_columns(cls, value, info: ValidationInfo):
        return not_null(value, info)

    @field_validator("name")
    @classmethod
    def _trimmed_name(cls, value, info: ValidationInfo):
        return required_text(value, info)


@router.get("")
def list_medications(
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    # Medications have no system defaults: only the requester's own rows.
    medications = (
        db.query(Medication)
        .filter(Medication.user_id == identity.user_id)
        .order_by(Medication.is_active.desc(), Medication.name.asc(), Medication.id.asc())
        .all()
    )
    return {"medications": [_medication_to_dict(m) for m in medications]}


@router.post("", status_code=201)
def create_medication(
    req: MedicationCreateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    medication = Medication(
        user_id=identity.user_id,
        name=req.name,
        dosage=req.dosage,
        frequency=req.frequency,
        is_active=True,
    )
    db.add(medication)
    db.commit()
    db.refresh(medication)
    return {"medication": _medication_to_dict(medication)}


@router.patch("/{medication_id}")
def update_medication(
    medication_id: str,
    req: MedicationUpdateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    medication = get_or_404(db, Medication, medication_id, MEDICATION)
    authorize(Operation.UPDATE, medication, identity.user_id, MEDICATION)

    for key, value in changes.items():
        setattr(medication, key, value)
    db.commit()
    db.refresh(medication)
    return {"medication": _medication_to_dict(medication)}


@router.delete("/{medication_id}")
def delete_medication(
    medication_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    medication = get_or_404(db, Medication, medication_id, MEDICATION)
    authorize(Operation.DELETE, medication, identity.user_id, MEDICATION)

    db.delete(medication)
    db.commit()
    return {"message": "Medication deleted successfully"}
