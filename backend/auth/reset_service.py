from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth.utils import hash_password
from config import settings
from db.models import PasswordResetToken, User

logger = logging.getLogger(__name__)

INVALID_RESET_TOKEN = "Invalid or expired reset token"


class ResetTokenError(Exception):
    """Unknown, expired, or already-consumed reset token. One message for every case."""

    def __init__(self) -> None:
        super().__init__(INVALID_RESET_TOKEN)
        self.message = INVALID_RESET_TOKEN


@dataclass(frozen=True)
class IssuedResetToken:
    raw_token: str
    expires_at: datetime


def _utcnow() -> datetime:
    # Naive UTC to match stored DateTime columns.
    return datetime.utcnow()


def _hash_token(raw_token: str) -> str:
    return hashlib.sha256((raw_token or "").encode("utf-8")).hexdigest()

def _issue_once(db: Session, user_id: str, now: datetime | None) -> IssuedResetToken:
    issued_at = now or _utcnow()
    raw_token = secrets.token_urlsafe(32)
    expires_at = issued_at + timedelta(minutes=settings.RESET_TOKEN_TTL_MINUTES)
    try:
        (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.user_id == user_id)
            .delete(synchronize_session=False)
        )
        db.add(
            PasswordResetToken(
                user_id=user_id,
                token_hash=_hash_token(raw_token),
                expires_at=expires_at,
                created_at=issued_at,
            )
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        raise
    return IssuedResetToken(raw_token=raw_token, expires_at=expires_at)


def create_reset_token(db: Session, user_id: str, now: datetime | None = None) -> IssuedResetToken:
    """
    Replace any reset token the user holds with a fresh one.

    The delete and the insert commit together. The unique index on
    ``user_id`` rejects a concurrent insert for the same user; the loser
    rolls back and retries so that exactly one token survives.
    """
    attempts = max(int(settings.RESET_TOKEN_ISSUE_ATTEMPTS), 1)
    for _ in range(attempts - 1):
        try:
            return _issue_once(db, user_id, now)
        except IntegrityError:
            logger.warning("Concurrent reset token issuance for user %s; retrying", user_id)
    return _issue_once(db, user_id, now)


def consume_reset_token(
    db: Session,
    raw_token: str,
    new_password: str,
    now: datetime | None = None,
) -> str:
    """
    Set a new password for the token's owner and delete the token in one transaction.

    The token row is claimed with a conditional delete before the password
    changes; of two requests racing on the same token only the one whose
    delete matched a row goes on to update the password.
    """
    row = (
        db.query(PasswordResetToken)
        .filter(PasswordResetToken.token_hash == _hash_token(raw_token))
        .first()
    )
    if row is None:
        raise ResetTokenError()

    if row.expires_at < (now or _utcnow()):
        db.delete(row)
        db.commit()
        raise ResetTokenError()

    token_id, user_id = row.id, row.user_id
    password_hash = hash_password(new_password)
    # end the read snapshot so the claim below sees concurrent commits
    db.rollback()

    try:
        claimed = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.id == token_id)
            .delete(synchronize_session=False)
        )
        if claimed != 1:
            db.rollback()
            raise ResetTokenError()
        user = db.get(User, user_id)
        if user is None:
            db.rollback()
            raise ResetTokenError()
        user.password_hash = password_hash
        db.commit()
    except ResetTokenError:
        raise
    except Exception:
        db.rollback()
        raise
    return user_id
