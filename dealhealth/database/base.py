"""
Base Model Module
Declarative base and common mixins for the deal models.
"""

import re
import uuid
from datetime import datetime

from sqlalchemy import DateTime, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    declared_attr,
    mapped_column,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Table names are derived from the class name:
        Deal -> deals
        DealStage -> deal_stages
        Note -> notes
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        name = re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower()
        if name.endswith("s") or name.endswith("x") or name.endswith("ch") or name.endswith("sh"):
            return name + "es"
        elif name.endswith("y") and name[-2] not in "aeiou":
            return name[:-1] + "ies"
        else:
            return name + "s"

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        attrs = []

        if hasattr(self, "id"):
            attrs.append(f"id={self.id}")

        for attr in ["deal_name", "stage_name", "health_score"]:
            if hasattr(self, attr):
                value = getattr(self, attr)
                if value is not None:
                    attrs.append(f"{attr}={value!r}")

        return f"<{class_name}({', '.join(attrs)})>"


class TimestampMixin:
    """Adds created_at and updated_at timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UUIDMixin:
    """Adds a UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        nullable=False,
    )
