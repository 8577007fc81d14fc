"""
Infrastructure layer - durable store backends.
Keeps business logic clean from implementation details.
"""

from .memory_store import MemoryDocumentStore

__all__ = ['MemoryDocumentStore']
