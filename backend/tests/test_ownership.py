from __future__ import annotations

import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from api.errors import AppError, ErrorCode  # noqa: E402
from db.models import Medication, Symptom, SymptomLog  # noqa: E402
from services.ownership import (  # noqa: E402
    HABIT,
    MEDICATION,
    SYMPTOM,
    SYMPTOM_LOG,
    SYSTEM,
    Classification,
    Operation,
    UserOwner,
    authorize,
    classify,
    decide,
    owner_of,
)


def test_owner_of_maps_null_to_system_default():
    assert owner_of(None) is SYSTEM
    assert owner_of("u1") == UserOwner("u1")


def test_classify_distinguishes_requester_from_others():
    assert classify(SYSTEM, "u1") is Classification.SYSTEM_DEFAULT
    assert classify(UserOwner("u1"), "u1") is Classification.OWNED_BY_REQUESTER
    assert classify(UserOwner("u2"), "u1") is Classification.OWNED_BY_OTHER


@pytest.mark.parametrize(
    ("operation", "kind", "reason"),
    [
        (Operation.UPDATE, SYMPTOM, "Cannot modify system default symptoms"),
        (Operation.DELETE, SYMPTOM, "Cannot delete system default symptoms"),
        (Operation.UPDATE, HABIT, "Cannot modify system default habits"),
        (Operation.DELETE, HABIT, "Cannot delete system default habits"),
    ],
)
def test_system_defaults_are_read_only(operation, kind, reason):
    decision = decide(operation, Classification.SYSTEM_DEFAULT, kind)
    assert not decision.allowed
    assert decision.reason == reason
    assert decision.code is ErrorCode.CANNOT_MODIFY_SYSTEM_DEFAULT


def test_other_users_resources_cannot_be_written():
    update = decide(Operation.UPDATE, Classification.OWNED_BY_OTHER, SYMPTOM)
    delete = decide(Operation.DELETE, Classification.OWNED_BY_OTHER, MEDICATION)
    assert update.reason == "Cannot modify another user's symptom"
    assert delete.reason == "Cannot delete another user's medication"


def test_owner_may_write_own_resource():
    assert decide(Operation.UPDATE, Classification.OWNED_BY_REQUESTER, HABIT).allowed
    assert decide(Operation.DELETE, Classification.OWNED_BY_REQUESTER, MEDICATION).allowed


def test_logging_allowed_against_system_default_and_own():
    assert decide(Operation.LOG, Classification.SYSTEM_DEFAULT, SYMPTOM).allowed
    assert decide(Operation.LOG, Classification.OWNED_BY_REQUESTER, SYMPTOM).allowed
    denied = decide(Operation.LOG, Classification.OWNED_BY_OTHER, HABIT)
    assert not denied.allowed
    assert denied.reason == "Cannot log another user's habit"


def test_medication_without_owner_is_treated_as_foreign():
    decision = decide(Operation.LOG, Classification.SYSTEM_DEFAULT, MEDICATION)
    assert not decision.allowed
    assert decision.reason == "Cannot log another user's medication"


def test_log_writes_belong_to_owner_only():
    assert decide(Operation.UPDATE_LOG, Classification.OWNED_BY_REQUESTER, SYMPTOM_LOG).allowed
    assert decide(Operation.UPDATE_LOG, Classification.OWNED_BY_OTHER, SYMPTOM_LOG).reason == (
        "Cannot modify another user's log"
    )
    assert decide(Operation.DELETE_LOG, Classification.OWNED_BY_OTHER, SYMPTOM_LOG).reason == (
        "Cannot delete another user's log"
    )


def test_authorize_raises_forbidden_with_reason():
    symptom = Symptom(id="s1", user_id=None, name="Headache")
    with pytest.raises(AppError) as excinfo:
        authorize(Operation.DELETE, symptom, "u1", SYMPTOM)
    assert excinfo.value.status_code == 403
    assert excinfo.value.message == "Cannot delete system default symptoms"


def test_authorize_passes_for_owner():
    medication = Medication(id="m1", user_id="u1", name="Ibuprofen")
    authorize(Operation.UPDATE, medication, "u1", MEDICATION)

    log = SymptomLog(id="l1", user_id="u1", symptom_id="s1", severity=3)
    authorize(Operation.DELETE_LOG, log, "u1", SYMPTOM_LOG)


def test_read_of_foreign_row_reports_not_found():
    symptom = Symptom(id="s2", user_id="u2", name="Custom")
    with pytest.raises(AppError) as excinfo:
        authorize(Operation.READ, symptom, "u1", SYMPTOM)
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Symptom not found"


def test_persisted_row_cannot_change_owner(db_session, make_user):
    owner = make_user()
    symptom = Symptom(user_id=owner["user"]["id"], name="Tingling")
    db_session.add(symptom)
    db_session.commit()

    with pytest.raises(ValueError):
        symptom.user_id = None

    default = db_session.query(Symptom).filter(Symptom.user_id.is_(None)).first()
    with pytest.raises(ValueError):
        default.user_id = owner["user"]["id"]
