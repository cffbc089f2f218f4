import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from api.errors import AppError, ErrorCode
from auth.models import (
    ForgotPasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    user_to_dict,
)
from auth.notifier import ResetNotifier, get_reset_notifier
from auth.reset_service import ResetTokenError, consume_reset_token, create_reset_token
from auth.utils import (
    TokenError,
    TokenPair,
    hash_password,
    issue_tokens,
    verify_password_or_dummy,
    verify_refresh,
)
from db.database import get_db
from db.models import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent"


def _tokens_payload(tokens: TokenPair) -> dict:
    return {"accessToken": tokens.access_token, "refreshToken": tokens.refresh_token}


def _auth_payload(user: User) -> dict:
    return {"user": user_to_dict(user), **_tokens_payload(issue_tokens(user.id, user.email))}


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(req: RegisterRequest, db: Session = Depends(get_db)):
    if db.query(User).filter(User.email == req.email).first():
        raise AppError.conflict("Email already registered")

    user = User(
        email=req.email,
        password_hash=hash_password(req.password),
        display_name=req.display_name,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        db.rollback()
        raise AppError.conflict("Email already registered")
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return _auth_payload(user)


@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == req.email).first()
    if not verify_password_or_dummy(req.password, user.password_hash if user else None):
        raise AppError.unauthorized("Invalid email or password", ErrorCode.INVALID_CREDENTIALS)
    return _auth_payload(user)


@router.post("/refresh")
def refresh(req: RefreshRequest, db: Session = Depends(get_db)):
    try:
        identity = verify_refresh(req.refresh_token)
    except TokenError:
        raise AppError.unauthorized("Invalid or expired refresh token")
    user = db.get(User, identity.user_id)
    if not user:
        logger.warning("Refresh attempted for missing user %s", identity.user_id)
        raise AppError.unauthorized("Invalid or expired refresh token")
    return _tokens_payload(issue_tokens(user.id, user.email))


@router.post("/logout")
def logout():
    # Tokens are stateless; the client discards them.
    return {"message": "Logged out successfully"}


@router.post("/forgot-password")
def forgot_password(
    req: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    notifier: ResetNotifier = Depends(get_reset_notifier),
):
    user = db.query(User).filter(User.email == req.email).first()
    if user:
        issued = create_reset_token(db, user.id)
        notifier.send_reset_token(user.email, issued.raw_token, issued.expires_at)
    return {"message": FORGOT_PASSWORD_MESSAGE}


@router.post("/reset-password")
def reset_password(req: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        user_id = consume_reset_token(db, req.token, req.password)
    except ResetTokenError as exc:
        logger.warning("Rejected password reset attempt")
        raise AppError.bad_request(exc.message, ErrorCode.INVALID_RESET_TOKEN)
    logger.info("Password reset completed for user %s", user_id)
    return {"message": "Password has been reset successfully"}
