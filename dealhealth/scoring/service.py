"""
Deal Health Service
Assembles deal snapshots, runs the calculator and persists the results.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence
from uuid import UUID
from zoneinfo import ZoneInfo

from dealhealth.config import settings
from dealhealth.models import Deal, Note
from dealhealth.scoring.exceptions import DealNotFoundError
from dealhealth.scoring.health_score_calculator import (
    DealSnapshot,
    ScoreResult,
    compute_health_score,
)
from dealhealth.scoring.repository import DealRepository
from dealhealth.scoring.stages import default_win_probability

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def scoring_clock() -> datetime:
    """Current time in the configured scoring timezone."""
    return datetime.now(ZoneInfo(settings.scoring_timezone))


def _as_float(value: Any) -> Optional[float]:
    return None if value is None else float(value)


def build_snapshot(deal: Deal, notes: Sequence[Note]) -> DealSnapshot:
    """
    Build the calculator input for a deal.

    Args:
        deal: Deal with its stage loaded
        notes: Activity notes for the deal, newest first

    Returns:
        DealSnapshot ready for compute_health_score()
    """
    stage = deal.stage
    value_amount = _as_float(deal.value_amount)

    return DealSnapshot(
        win_probability=stage.win_probability if stage is not None else None,
        stage_name=stage.stage_name if stage is not None else None,
        # Zero-valued deals are treated as unsized
        value_amount=value_amount or None,
        close_date=deal.close_date,
        last_activity_at=deal.last_activity_at,
        deal_notes_inline=deal.deal_notes,
        latest_note_at=notes[0].created_at if notes else None,
        all_notes_text=" ".join(note.note_text for note in notes),
    )


class DealHealthService:
    """
    Recomputes deal health scores.

    Triggered after note changes, deal edits and imports. Recomputing the
    same deal twice with the same data gives the same result, so concurrent
    triggers can simply overwrite each other.
    """

    def __init__(self, repository: DealRepository, clock: Optional[Clock] = None):
        self.repository = repository
        self.clock = clock or scoring_clock

    async def _score(
        self,
        deal: Deal,
        population: Sequence[Any],
        now: datetime,
    ) -> ScoreResult:
        notes = await self.repository.list_deal_notes(deal.id)
        snapshot = build_snapshot(deal, notes)
        result = compute_health_score(snapshot, population, now)
        await self.repository.save_health_score(deal, result, now)
        return result

    async def recompute(self, deal_id: UUID, now: Optional[datetime] = None) -> ScoreResult:
        """
        Recompute and persist the health score of one deal.

        Args:
            deal_id: Deal UUID
            now: Evaluation moment (defaults to the service clock)

        Returns:
            The calculated ScoreResult

        Raises:
            DealNotFoundError: If the deal does not exist
        """
        deal = await self.repository.get_deal(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)

        now = now or self.clock()
        population = await self.repository.list_positive_values()
        result = await self._score(deal, population, now)

        logger.info(
            "Recomputed health score for deal %s: %s (%s)",
            deal_id,
            result.score,
            result.band.value,
        )
        return result

    async def recompute_all(self, now: Optional[datetime] = None) -> dict[str, int]:
        """
        Recompute every deal against one shared population sample.

        Each deal runs in its own savepoint. A failure on one deal rolls back
        only that deal's writes, is logged and counted, and the batch continues.

        Returns:
            Dictionary with processed and failed counts
        """
        now = now or self.clock()
        population = await self.repository.list_positive_values()
        deal_ids = await self.repository.list_deal_ids()

        processed = 0
        failed = 0
        for deal_id in deal_ids:
            try:
                async with self.repository.savepoint():
                    deal = await self.repository.get_deal(deal_id)
                    if deal is None:
                        raise DealNotFoundError(deal_id)
                    await self._score(deal, population, now)
                processed += 1
            except Exception as e:
                failed += 1
                logger.error("Failed to recompute health score for deal %s: %s", deal_id, e, exc_info=True)

        logger.info("Bulk health score recompute: %d processed, %d failed", processed, failed)
        return {"processed": processed, "failed": failed}

    async def get_persisted(self, deal_id: UUID) -> Deal:
        """
        Get a deal with its last stored health score.

        Raises:
            DealNotFoundError: If the deal does not exist
        """
        deal = await self.repository.get_deal(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal

    async def backfill_stage_probabilities(self) -> int:
        """
        Fill in win probabilities for stages that have none configured.

        Returns:
            Number of stages updated
        """
        stages = await self.repository.list_stages_missing_probability()
        for stage in stages:
            stage.win_probability = default_win_probability(
                is_won=stage.is_won,
                is_lost=stage.is_lost,
                sort_order=stage.sort_order,
            )
            logger.info("Stage %r win probability set to %d", stage.stage_name, stage.win_probability)
        if stages:
            await self.repository.flush()
        return len(stages)
