from __future__ import annotations

import logging
from datetime import datetime
from typing import Protocol

logger = logging.getLogger(__name__)


class ResetNotifier(Protocol):
    def send_reset_token(self, email: str, raw_token: str, expires_at: datetime) -> None:
        ...


class LoggingResetNotifier:
    """Default hand-off: records that a reset was issued. Delivery belongs to an external mailer."""

    def send_reset_token(self, email: str, raw_token: str, expires_at: datetime) -> None:
        _ = raw_token
        logger.info("Password reset token issued for %s (expires %s)", email, expires_at.isoformat())


_default_notifier = LoggingResetNotifier()


def get_reset_notifier() -> ResetNotifier:
    return _default_notifier
