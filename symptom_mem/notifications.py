# symptom_mem/notifications.py

from typing import Protocol

from .models import InsightResponse


class NotificationSink(Protocol):
    """Fire-and-forget delivery of a trimmed response. Failures never reach the caller."""

    def notify(self, user_id: str, response: InsightResponse) -> None: ...

