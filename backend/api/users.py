import logging
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends
from pydantic import Field, ValidationInfo, field_validator
from sqlalchemy.orm import Session

from api.errors import AppError
from api.schemas import UpdateModel, not_null
from auth.models import user_to_dict
from auth.utils import TokenIdentity, get_current_identity
from db.database import get_db, get_session_factory
from db.models import User
from services.stats_service import compute_user_stats

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


class ProfileUpdate(UpdateModel):
    display_name: Optional[str] = Field(default=None, max_length=100)
    timezone: Optional[str] = Field(default=None, min_length=1, max_length=64)

    @field_validator("timezone")
    @classmethod
    def _valid_timezone(cls, value, info: ValidationInfo):
        value = not_null(value, info)
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value}")
        return value


def _current_user(identity: TokenIdentity, db: Session) -> User:
    user = db.get(User, identity.user_id)
    if not user:
        raise AppError.not_found("User not found")
    return user


@router.get("/me")
def get_me(
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return {"user": user_to_dict(_current_user(identity, db))}


@router.patch("/me")
def update_me(
    req: ProfileUpdate,
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    changes = req.changes()
    if not changes:
        raise AppError.no_fields_to_update()

    user = _current_user(identity, db)
    for key, value in changes.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return {"user": user_to_dict(user)}


@router.delete("/me")
def delete_me(
    identity: TokenIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    user = _current_user(identity, db)
    db.delete(user)
    db.commit()
    logger.info("Deleted account %s", identity.user_id)
    return {"message": "Account deleted successfully"}


@router.get("/me/stats")
def get_my_stats(
    identity: TokenIdentity = Depends(get_current_identity),
    session_factory=Depends(get_session_factory),
):
    return {"stats": compute_user_stats(session_factory, identity.user_id).to_dict()}
