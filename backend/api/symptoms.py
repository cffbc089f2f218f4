from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import Field, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from api.errors import AppError
from api.schemas import CamelModel, UpdateModel, not_null, required_text
from auth.utils import TokenIdentity, get_current_identity
from db.database import get_db
from db.models import Symptom
from services.ownership import SYMPTOM, Operation, authorize, get_or_404, visible_to

router = APIRouter(prefix="/symptoms", tags=["symptoms"])


def _symptom_to_dict(symptom: Symptom) -> dict:
    return {
        "id": symptom.id,
        "userId": symptom.user_id,
        "name": symptom.name,
        "category": symptom.category,
        "isActive": bool(symptom.is_active),
    }


class SymptomCreateRequest(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def _trimmed_name(cls, value, info: ValidationInfo):
        return required_text(value, info)


class SymptomUpdateRequest(UpdateModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category: Optional[str] = Field(default=None, max_length=100)
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
def list_symptoms(
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    symptoms = (
        db.query(Symptom)
        .filter(visible_to(Symptom, identity.user_id))
        # system defaults first
        .order_by(Symptom.user_id.isnot(None), Symptom.name.asc(), Symptom.id.asc())
        .all()
    )
    return {"symptoms": [_symptom_to_dict(s) for s in symptoms]}


@router.post("", status_code=201)
def create_symptom(
    req: SymptomCreateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    symptom = Symptom(
        user_id=identity.user_id,
        name=req.name,
        category=req.category or None,
        is_active=True,
    )
    db.add(symptom)
    db.commit()
    db.refresh(symptom)
    return {"symptom": _symptom_to_dict(symptom)}


@router.patch("/{symptom_id}")
def update_symptom(
    symptom_id: str,
    req: SymptomUpdateRequest,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    symptom = get_or_404(db, Symptom, symptom_id, SYMPTOM)
    authorize(Operation.UPDATE, symptom, identity.user_id, SYMPTOM)

    for key, value in changes.items():
        setattr(symptom, key, value)
    db.commit()
    db.refresh(symptom)
    return {"symptom": _symptom_to_dict(symptom)}


@router.delete("/{symptom_id}")
def delete_symptom(
    symptom_id: str,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    symptom = get_or_404(db, Symptom, symptom_id, SYMPTOM)
    authorize(Operation.DELETE, symptom, identity.user_id, SYMPTOM)

    db.delete(symptom)
    db.commit()
    return {"message": "Symptom deleted successfully"}
