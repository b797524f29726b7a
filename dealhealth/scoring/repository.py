"""
Deal Repository
Reads the inputs of a health score calculation and writes the result back.
"""

from datetime import datetime
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, AsyncSessionTransaction
from sqlalchemy.orm import selectinload

from dealhealth.models import Deal, DealStage, Note, NoteEntityType
from dealhealth.scoring.health_score_calculator import ScoreResult


class DealRepository:
    """Database access for deal health scoring."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_deal(self, deal_id: UUID) -> Deal | None:
        """
        Get deal by ID with its stage loaded.

        Args:
            deal_id: Deal UUID

        Returns:
            Deal if found, None otherwise
        """
        query = (
            select(Deal)
            .options(selectinload(Deal.stage))
            .where(Deal.id == deal_id)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_deal_notes(self, deal_id: UUID) -> Sequence[Note]:
        """Activity notes attached to a deal, newest first."""
        query = (
            select(Note)
            .where(Note.entity_type == NoteEntityType.DEAL.value)
            .where(Note.entity_id == deal_id)
            .order_by(Note.created_at.desc())
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def list_positive_values(self) -> list[Decimal]:
        """Deal values across all deals, excluding null and non-positive amounts."""
        query = (
            select(Deal.value_amount)
            .where(Deal.value_amount.is_not(None))
            .where(Deal.value_amount > 0)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_deal_ids(self) -> list[UUID]:
        result = await self.session.execute(select(Deal.id).order_by(Deal.created_at))
        return list(result.scalars().all())

    async def save_health_score(self, deal: Deal, result: ScoreResult, scored_at: datetime) -> Deal:
        """
        Persist a health score onto the deal.

        Args:
            deal: Deal to update
            result: Calculated score
            scored_at: When the score was calculated

        Returns:
            Updated deal
        """
        breakdown = result.breakdown
        deal.health_score = result.score
        deal.hs_stage_probability = breakdown.stage_probability
        deal.hs_velocity = breakdown.velocity
        deal.hs_activity_recency = breakdown.activity_recency
        deal.hs_close_date = breakdown.close_date_integrity
        deal.hs_acv = breakdown.acv
        deal.hs_notes_signal = breakdown.notes_signal
        deal.health_debug = result.debug
        deal.health_scored_at = scored_at
        await self.session.flush()
        return deal

    async def list_stages_missing_probability(self) -> Sequence[DealStage]:
        query = (
            select(DealStage)
            .where(DealStage.win_probability.is_(None))
            .order_by(DealStage.sort_order)
        )
        result = await self.session.execute(query)
        return result.scalars().all()

    async def flush(self) -> None:
        await self.session.flush()

    def savepoint(self) -> AsyncSessionTransaction:
        """
        Nested transaction for one unit of work.

        Leaving the block with an exception rolls back to the savepoint and
        keeps the outer transaction usable.
        """
        return self.session.begin_nested()
