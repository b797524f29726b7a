"""
Deal Model
Sales opportunity with its persisted health score.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, SmallInteger, String, Text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealhealth.database.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from dealhealth.models.deal_stage import DealStage


class Deal(Base, UUIDMixin, TimestampMixin):
    """
    Sales opportunity.

    Attributes:
        id: Unique identifier (UUID)
        stage_id: Current pipeline stage
        deal_name: Display name
        deal_notes: Inline free-text notes on the deal
        value_amount: Deal value (ACV)
        currency: ISO currency code
        close_date: Expected close date
        last_activity_at: Last recorded touch on the deal

        Health Score (written by the scoring service):
            health_score: Composite score 0-100
            hs_stage_probability, hs_velocity, hs_activity_recency,
            hs_close_date, hs_acv, hs_notes_signal: Factor scores 0-100
            health_debug: Diagnostic trace of the last calculation
            health_scored_at: When the score was last calculated
    """

    stage_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("deal_stages.id"),
        nullable=False,
        index=True,
    )

    deal_name: Mapped[str] = mapped_column(String(255), nullable=False)

    deal_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    value_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(15, 2),
        nullable=True,
    )

    currency: Mapped[str] = mapped_column(
        String(3),
        default="USD",
        server_default="USD",
        nullable=False,
    )

    close_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    last_activity_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Health score
    health_score: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    hs_stage_probability: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    hs_velocity: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    hs_activity_recency: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    hs_close_date: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    hs_acv: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    hs_notes_signal: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)

    health_debug: Mapped[Optional[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=True,
        comment="Intermediate values from the last health score calculation",
    )

    health_scored_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    stage: Mapped[Optional["DealStage"]] = relationship(
        "DealStage",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_deals_health_score", "health_score"),
    )

    def health_components(self) -> Optional[dict[str, Optional[int]]]:
        """Persisted factor scores keyed like ScoreBreakdown, None if never scored."""
        if self.health_score is None:
            return None
        return {
            "stage_probability": self.hs_stage_probability,
            "velocity": self.hs_velocity,
            "activity_recency": self.hs_activity_recency,
            "close_date_integrity": self.hs_close_date,
            "acv": self.hs_acv,
            "notes_signal": self.hs_notes_signal,
        }
