"""Notification dispatcher Protocol.

notify() is fire-and-forget: implementations swallow and log their own
failures and report delivery as a bool. Callers never roll back on False.
"""

from typing import Protocol


class NotificationDispatcherProtocol(Protocol):
    async def notify(self, user_id: str, title: str, body: str, link: str | None = None) -> bool: ...
