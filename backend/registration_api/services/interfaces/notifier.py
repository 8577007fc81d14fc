"""
Email notifier interface.
Sends are best-effort: implementations log failures and return False
instead of raising, so a registration never depends on email delivery.
"""

from abc import ABC, abstractmethod
from typing import Iterable


class Notifier(ABC):
    @abstractmethod
    async def send(self, subject: str, body: str, recipients: Iterable[str]) -> bool:
        """
        Send a plain-text message.

        Returns:
            True if the provider accepted the message
        """


class NullNotifier(Notifier):
    """Used when no sender is configured."""

    async def send(self, subject: str, body: str, recipients: Iterable[str]) -> bool:
        return False
