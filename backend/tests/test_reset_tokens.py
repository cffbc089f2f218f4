from __future__ import annotations

import sys
import threading
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy.exc import IntegrityError


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth import reset_service  # noqa: E402
from auth.reset_service import (  # noqa: E402
    INVALID_RESET_TOKEN,
    ResetTokenError,
    consume_reset_token,
    create_reset_token,
)
from auth.utils import hash_password, verify_password  # noqa: E402
from db.database import SessionLocal  # noqa: E402
from db.models import PasswordResetToken, User  # noqa: E402


@pytest.fixture
def user(db_session):
    row = User(email="reset@example.com", password_hash=hash_password("OldPassword1"))
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


def _token_count(db_session, user_id: str) -> int:
    return db_session.query(PasswordResetToken).filter(PasswordResetToken.user_id == user_id).count()


def test_issue_stores_a_hash_not_the_raw_token(db_session, user):
    issued = create_reset_token(db_session, user.id)
    row = db_session.query(PasswordResetToken).filter(PasswordResetToken.user_id == user.id).one()
    assert row.token_hash != issued.raw_token
    assert len(row.token_hash) == 64
    assert issued.expires_at - row.created_at == timedelta(minutes=60)


def test_reissue_replaces_previous_token(db_session, user):
    first = create_reset_token(db_session, user.id)
    second = create_reset_token(db_session, user.id)
    assert first.raw_token != second.raw_token
    assert _token_count(db_session, user.id) == 1

    with pytest.raises(ResetTokenError):
        consume_reset_token(db_session, first.raw_token, "NewPassword1")
    assert consume_reset_token(db_session, second.raw_token, "NewPassword1") == user.id


def test_consume_updates_password_and_is_single_use(db_session, user):
    issued = create_reset_token(db_session, user.id)
    consume_reset_token(db_session, issued.raw_token, "NewPassword1")

    db_session.expire_all()
    refreshed = db_session.get(User, user.id)
    assert verify_password("NewPassword1", refreshed.password_hash)
    assert not verify_password("OldPassword1", refreshed.password_hash)
    assert _token_count(db_session, user.id) == 0

    with pytest.raises(ResetTokenError) as excinfo:
        consume_reset_token(db_session, issued.raw_token, "Another1234")
    assert excinfo.value.message == INVALID_RESET_TOKEN


def test_expired_token_is_deleted_and_rejected(db_session, user):
    issued = create_reset_token(db_session, user.id, now=datetime.utcnow() - timedelta(hours=2))

    with pytest.raises(ResetTokenError) as excinfo:
        consume_reset_token(db_session, issued.raw_token, "NewPassword1")
    assert excinfo.value.message == INVALID_RESET_TOKEN
    assert _token_count(db_session, user.id) == 0

    db_session.expire_all()
    assert verify_password("OldPassword1", db_session.get(User, user.id).password_hash)


def test_unknown_token_is_rejected(db_session, user):
    with pytest.raises(ResetTokenError):
        consume_reset_token(db_session, "never-issued", "NewPassword1")


def test_deleting_user_removes_reset_tokens(db_session, user):
    create_reset_token(db_session, user.id)
    db_session.delete(user)
    db_session.commit()
    assert db_session.query(PasswordResetToken).count() == 0


def _run_in_threads(count: int, fn) -> list:
    results: list = [None] * count

    def _target(index: int) -> None:
        db = SessionLocal()
        try:
            results[index] = ("ok", fn(db))
        except ResetTokenError as exc:
            results[index] = ("rejected", exc.message)
        finally:
            db.close()

    threads = [threading.Thread(target=_target, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    return results


def test_issue_retries_after_integrity_conflict(db_session, user, monkeypatch):
    other = User(email="other@example.com", password_hash=hash_password("OtherPass1"))
    db_session.add(other)
    db_session.commit()
    db_session.add(
        PasswordResetToken(
            user_id=other.id,
            token_hash=reset_service._hash_token("colliding"),
            expires_at=datetime.utcnow() + timedelta(hours=1),
        )
    )
    db_session.commit()

    values = iter(["colliding", "fresh"])
    monkeypatch.setattr(reset_service.secrets, "token_urlsafe", lambda _n: next(values))

    issued = create_reset_token(db_session, user.id)
    assert issued.raw_token == "fresh"
    assert _token_count(db_session, user.id) == 1
    assert _token_count(db_session, other.id) == 1


def test_issue_gives_up_after_configured_attempts(db_session, user, monkeypatch):
    other = User(email="blocked@example.com", password_hash=hash_password("OtherPass1"))
    db_session.add(other)
    db_session.commit()
    db_session.add(
        PasswordResetToken(
            user_id=other.id,
            token_hash=reset_service._hash_token("always-taken"),
            expires_at=datetime.utcnow() + timedelta(hours=1),
        )
    )
    db_session.commit()
    monkeypatch.setattr(reset_service.secrets, "token_urlsafe", lambda _n: "always-taken")

    with pytest.raises(IntegrityError):
        create_reset_token(db_session, user.id)
    assert _token_count(db_session, user.id) == 0


def test_concurrent_issuance_leaves_one_token(user, monkeypatch):
    user_id = user.id
    gate = threading.Barrier(2, timeout=10)
    real_token_urlsafe = reset_service.secrets.token_urlsafe

    def _together(nbytes):
        gate.wait()
        return real_token_urlsafe(nbytes)

    monkeypatch.setattr(reset_service.secrets, "token_urlsafe", _together)

    results = _run_in_threads(2, lambda db: create_reset_token(db, user_id).raw_token)
    assert [status for status, _ in results] == ["ok", "ok"]

    db = SessionLocal()
    try:
        rows = db.query(PasswordResetToken).filter(PasswordResetToken.user_id == user_id).all()
        assert len(rows) == 1
        assert rows[0].token_hash in {reset_service._hash_token(raw) for _, raw in results}
    finally:
        db.close()


def test_concurrent_consumption_succeeds_once(user, monkeypatch):
    user_id = user.id
    db = SessionLocal()
    try:
        issued = create_reset_token(db, user_id)
    finally:
        db.close()

    # both requests have read the live token before either claims it
    gate = threading.Barrier(2, timeout=10)
    real_hash_password = reset_service.hash_password

    def _together(password):
        gate.wait()
        return real_hash_password(password)

    monkeypatch.setattr(reset_service, "hash_password", _together)

    results = _run_in_threads(2, lambda db: consume_reset_token(db, issued.raw_token, "NewPassword1"))
    assert sorted(status for status, _ in results) == ["ok", "rejected"]
    assert ("rejected", INVALID_RESET_TOKEN) in results

    db = SessionLocal()
    try:
        assert _token_count(db, user_id) == 0
        assert verify_password("NewPassword1", db.get(User, user_id).password_hash)
    finally:
        db.close()
