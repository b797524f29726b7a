"""
Note Model
Activity log entries attached to any CRM entity.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import CheckConstraint, DateTime, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from dealhealth.database.base import Base, UUIDMixin


class NoteEntityType(str, Enum):
    """Entities a note can attach to."""
    ACCOUNT = "account"
    DEAL = "deal"
    CONTACT = "contact"
    CONTRACT = "contract"
    HID = "hid"


class Note(Base, UUIDMixin):
    """
    Activity note.

    Polymorphic: (entity_type, entity_id) identifies the owning record,
    so there is no foreign key.
    """

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)

    entity_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    note_text: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "entity_type in ('account', 'deal', 'contact', 'contract', 'hid')",
            name="ck_notes_entity_type",
        ),
        Index("ix_notes_entity", "entity_type", "entity_id", "created_at"),
    )
