"""
docapi — Document Mixin
=========================

What:  Columns every persisted document shares.
How:   Mixed into each declarative entity next to `Base`.

Columns:
    id          UUID string primary key, generated in Python so SQLite and
                PostgreSQL behave the same
    created_at  UTC creation time; the default listing order sorts on it
    version     internal bookkeeping counter, bumped on every update and
                hidden from listings unless a client projects it explicitly
"""

import uuid
from datetime import datetime, timezone
from typing import ClassVar, Tuple

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

# Fields clients may never write through the generic handlers
PROTECTED_FIELDS = frozenset({"id", "created_at", "version"})

# Excluded from projections when the client does not ask for specific fields
INTERNAL_FIELDS = ("version",)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentMixin:
    # Never returned, filtered, sorted or selected through a Collection
    HIDDEN_FIELDS: ClassVar[Tuple[str, ...]] = ()

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_id,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        index=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    def validate(self) -> None:
        """Raise ValueError when the document breaks a model rule."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id})>"
