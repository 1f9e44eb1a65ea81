# Overview: Post-commit, fire-and-forget outbound notifications.

"""
Notification dispatch

Services call publish() only after their transaction has committed. The
message is handed to whatever notifier the application registered in
app.extensions["notifier"] (push gateway, polling inbox, socket registry...).
Delivery is at-most-once and best-effort: a failing notifier is logged and
never propagates back into the business operation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from flask import current_app, has_app_context

from ..time_utils import utcnow, to_utc_z


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundNotification:
    party_id: int
    event_name: str
    payload: dict[str, Any] = field(default_factory=dict)
    emitted_at: str = field(default_factory=lambda: to_utc_z(utcnow()))


class Notifier(Protocol):
    def send(self, message: OutboundNotification) -> None: ...


class LoggingNotifier:
    """Default transport: writes each message to the application log."""

    def send(self, message: OutboundNotification) -> None:
        logger.info(
            "notify party=%s event=%s payload=%s",
            message.party_id, message.event_name, message.payload,
        )


class RecordingNotifier:
    """In-memory transport, handy for tests and local debugging."""

    def __init__(self):
        self.messages: list[OutboundNotification] = []

    def send(self, message: OutboundNotification) -> None:
        self.messages.append(message)

    def events_for(self, party_id: int) -> list[str]:
        return [m.event_name for m in self.messages if m.party_id == party_id]

    def clear(self) -> None:
        self.messages.clear()


def get_notifier() -> Notifier:
    if has_app_context():
        notifier = current_app.extensions.get("notifier")
        if notifier is not None:
            return notifier
    return LoggingNotifier()


def publish(party_id: int | None, event_name: str, payload: dict | None = None) -> bool:
    """
    Hand one message to the notifier. Returns False when delivery failed.

    Must be called after commit; never inside run_in_transaction.
    """
    if party_id is None:
        return False
    message = OutboundNotification(party_id=party_id, event_name=event_name, payload=payload or {})
    try:
        get_notifier().send(message)
    except Exception:
        logger.warning("Notification %s to party %s failed", event_name, party_id, exc_info=True)
        return False
    return True
