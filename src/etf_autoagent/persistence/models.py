"""SQLAlchemy models for the persistence layer.

Verification state is stored as JSON documents in a single namespaced
key-value table with an optional expiry.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class KeyValueRow(Base):
    """One stored entry.

    Attributes:
        id: Surrogate primary key.
        namespace: Logical store the entry belongs to.
        key: Entry key, unique within its namespace.
        value_json: JSON-encoded value.
        expires_at: UTC expiry, or None for entries that never expire.
        updated_at: UTC time of the last write.
    """

    __tablename__ = "kv_entries"
    __table_args__ = (
        UniqueConstraint("namespace", "key", name="uq_kv_namespace_key"),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    namespace: Mapped[str] = mapped_column(String(64), index=True)
    key: Mapped[str] = mapped_column(String(256), index=True)
    value_json: Mapped[str] = mapped_column(Text)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
