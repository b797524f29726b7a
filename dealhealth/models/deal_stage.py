"""
Deal Stage Model
Lookup table of pipeline stages.
"""

from typing import Optional

from sqlalchemy import Boolean, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from dealhealth.database.base import Base, TimestampMixin, UUIDMixin


class DealStage(Base, UUIDMixin, TimestampMixin):
    """
    Pipeline stage.

    Attributes:
        stage_name: Display name, unique (e.g. "Short Listed")
        sort_order: Position in the pipeline, 1-based
        is_closed: Stage ends the deal
        is_won: Stage ends the deal as won
        is_lost: Stage ends the deal as lost
        win_probability: Expected win percentage (0-100) used by the health score
    """

    stage_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    sort_order: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    is_closed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_won: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_lost: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    win_probability: Mapped[Optional[int]] = mapped_column(
        SmallInteger,
        nullable=True,
        comment="Expected win percentage for deals in this stage (0-100)",
    )
