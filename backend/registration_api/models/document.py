"""
Versioned JSON document table backing the SQL store.

Key design decisions:
- `version` column enables optimistic locking: every update is conditioned on
  the version that was read, and bumps it
- The document body is opaque JSON; invariants are enforced by the services
"""

from sqlalchemy import JSON, CheckConstraint, Column, Integer, String

from registration_api.db.base import Base, TimestampMixin


class StoredDocument(Base, TimestampMixin):
    __tablename__ = "registration_documents"

    key = Column(String(512), primary_key=True)
    data = Column(JSON, nullable=False)

    # Optimistic locking version counter
    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("version > 0", name="check_document_version_positive"),
    )

    def __repr__(self) -> str:
        return f"<StoredDocument(key={self.key}, version={self.version})>"
