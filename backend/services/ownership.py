"""
Ownership authorization shared by every resource and log domain.

Resource definitions are either system defaults (no owner) or owned by one
user. Logs are always owned by one user. Every handler classifies the target
row relative to the requester and asks ``decide`` whether the operation is
permitted; the denial reason is returned to the client verbatim.

Precedence:
1. Missing rows are reported as not found before classification runs.
2. Writes on a resource: system default -> deny, other user's -> deny.
3. Logging against a resource: system default or own -> allow.
4. Writes on a log: only the owner.
5. Resource lists: system defaults plus the requester's own rows.
6. Log lists: the requester's rows only.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session

from api.errors import AppError, ErrorCode


@dataclass(frozen=True)
class SystemOwner:
    pass


@dataclass(frozen=True)
class UserOwner:
    user_id: str


Owner = Union[SystemOwner, UserOwner]

SYSTEM = SystemOwner()


def owner_of(user_id: str | None) -> Owner:
    return SYSTEM if user_id is None else UserOwner(user_id)


class Classification(str, Enum):
    SYSTEM_DEFAULT = "system_default"
    OWNED_BY_REQUESTER = "owned_by_requester"
    OWNED_BY_OTHER = "owned_by_other"


class Operation(str, Enum):
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LOG = "log"
    UPDATE_LOG = "update_log"
    DELETE_LOG = "delete_log"


@dataclass(frozen=True)
class ResourceKind:
    name: str
    plural: str
    allows_system_default: bool = True

    @property
    def not_found_message(self) -> str:
        return f"{self.name[:1].upper()}{self.name[1:]} not found"


SYMPTOM = ResourceKind("symptom", "symptoms")
HABIT = ResourceKind("habit", "habits")
MEDICATION = ResourceKind("medication", "medications", allows_system_default=False)
SYMPTOM_LOG = ResourceKind("symptom log", "symptom logs", allows_system_default=False)
MOOD_LOG = ResourceKind("mood log", "mood logs", allows_system_default=False)
MEDICATION_LOG = ResourceKind("medication log", "medication logs", allows_system_default=False)
HABIT_LOG = ResourceKind("habit log", "habit logs", allows_system_default=False)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None
    code: ErrorCode | None = None


ALLOW = Decision(allowed=True)


def classify(owner: Owner, requester_id: str) -> Classification:
    if isinstance(owner, SystemOwner):
        return Classification.SYSTEM_DEFAULT
    if owner.user_id == requester_id:
        return Classification.OWNED_BY_REQUESTER
    return Classification.OWNED_BY_OTHER


def decide(operation: Operation, classification: Classification, kind: ResourceKind) -> Decision:
    if classification is Classification.SYSTEM_DEFAULT and not kind.allows_system_default:
        # a domain without system defaults treats an ownerless row as foreign
        classification = Classification.OWNED_BY_OTHER

    if operation in (Operation.UPDATE, Operation.DELETE):
        verb = "modify" if operation is Operation.UPDATE else "delete"
        if classification is Classification.SYSTEM_DEFAULT:
            return Decision(
                False,
                f"Cannot {verb} system default {kind.plural}",
                ErrorCode.CANNOT_MODIFY_SYSTEM_DEFAULT,
            )
        if classification is Classification.OWNED_BY_OTHER:
            code = ErrorCode.CANNOT_MODIFY_OTHER_USER if verb == "modify" else ErrorCode.CANNOT_DELETE_OTHER_USER
            return Decision(False, f"Cannot {verb} another user's {kind.name}", code)
        return ALLOW

    if operation is Operation.LOG:
        if classification is Classification.OWNED_BY_OTHER:
            return Decision(False, f"Cannot log another user's {kind.name}", ErrorCode.CANNOT_LOG_OTHER_USER)
        return ALLOW

    if operation in (Operation.UPDATE_LOG, Operation.DELETE_LOG):
        if classification is Classification.OWNED_BY_REQUESTER:
            return ALLOW
        if operation is Operation.UPDATE_LOG:
            return Decision(False, "Cannot modify another user's log", ErrorCode.CANNOT_MODIFY_OTHER_USER)
        return Decision(False, "Cannot delete another user's log", ErrorCode.CANNOT_DELETE_OTHER_USER)

    if operation is Operation.READ:
        if classification is Classification.OWNED_BY_OTHER:
            return Decision(False, kind.not_found_message, ErrorCode.NOT_FOUND)
        return ALLOW

    raise ValueError(f"Unsupported operation: {operation}")


def authorize(operation: Operation, row: Any, requester_id: str, kind: ResourceKind) -> None:
    decision = decide(operation, classify(row.owner, requester_id), kind)
    if decision.allowed:
        return
    if decision.code is ErrorCode.NOT_FOUND:
        raise AppError.not_found(decision.reason or kind.not_found_message)
    raise AppError.forbidden(decision.reason or "Forbidden", decision.code or ErrorCode.CANNOT_MODIFY_OTHER_USER)


def get_or_404(db: Session, model, row_id: str, kind: ResourceKind):
    row = db.get(model, row_id)
    if row is None:
        raise AppError.not_found(kind.not_found_message)
    return row


def visible_to(model, requester_id: str):
    """Filter for resource lists: system defaults plus the requester's own rows."""
    return or_(model.user_id.is_(None), model.user_id == requester_id)
