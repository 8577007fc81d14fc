"""
Service interfaces for dependency inversion.
Storage, payments and email can be swapped without touching the
reservation logic.
"""

from .notifier import Notifier, NullNotifier
from .payment import PaymentProvider
from .store import DocumentStore, VersionedDocument

__all__ = ['DocumentStore', 'VersionedDocument', 'PaymentProvider', 'Notifier', 'NullNotifier']
