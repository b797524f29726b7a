"""
Deal Health Router
API endpoints for calculating and reading deal health scores.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from dealhealth.core.errors import ErrorCode, create_error_response
from dealhealth.database.connection import get_async_session
from dealhealth.scoring.exceptions import DealNotFoundError
from dealhealth.scoring.health_score_calculator import band_for_score
from dealhealth.scoring.repository import DealRepository
from dealhealth.scoring.schemas import (
    HealthScoreComponents,
    HealthScoreResponse,
    RecomputeSummary,
)
from dealhealth.scoring.service import DealHealthService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/deals", tags=["Deal Health"])


def get_health_service(db: AsyncSession = Depends(get_async_session)) -> DealHealthService:
    """Dependency that provides a DealHealthService bound to the request session."""
    return DealHealthService(DealRepository(db))


@router.post(
    "/health-score/recompute",
    response_model=RecomputeSummary,
    summary="Recompute all deal health scores",
    description="Recalculate and persist the health score of every deal, e.g. after an import.",
)
async def recompute_all_health_scores(
    service: DealHealthService = Depends(get_health_service),
) -> RecomputeSummary:
    now = service.clock()
    summary = await service.recompute_all(now=now)
    return RecomputeSummary(
        processed=summary["processed"],
        failed=summary["failed"],
        calculated_at=now.isoformat(),
    )


@router.post(
    "/{deal_id}/health-score",
    response_model=HealthScoreResponse,
    summary="Recompute a deal health score",
    description="Calculate the deal health score from current deal data and persist it.",
)
async def recompute_health_score(
    deal_id: UUID,
    service: DealHealthService = Depends(get_health_service),
) -> HealthScoreResponse:
    """
    Recalculate one deal.

    Called after notes are added, the deal is edited, or deals are imported.
    """
    now = service.clock()
    try:
        result = await service.recompute(deal_id, now=now)
    except DealNotFoundError as e:
        raise create_error_response(ErrorCode.DEAL_NOT_FOUND, message=e.message)

    return HealthScoreResponse(
        deal_id=str(deal_id),
        score=result.score,
        band=result.band.value,
        components=HealthScoreComponents(**result.breakdown.to_dict()),
        debug=result.debug,
        calculated_at=now.isoformat(),
    )


@router.get(
    "/{deal_id}/health-score",
    response_model=HealthScoreResponse,
    summary="Get the stored deal health score",
)
async def get_health_score(
    deal_id: UUID,
    service: DealHealthService = Depends(get_health_service),
) -> HealthScoreResponse:
    try:
        deal = await service.get_persisted(deal_id)
    except DealNotFoundError as e:
        raise create_error_response(ErrorCode.DEAL_NOT_FOUND, message=e.message)

    components = deal.health_components()
    band = band_for_score(deal.health_score)
    return HealthScoreResponse(
        deal_id=str(deal_id),
        score=deal.health_score,
        band=band.value if band else None,
        components=HealthScoreComponents(**components) if components else None,
        debug=deal.health_debug,
        calculated_at=deal.health_scored_at.isoformat() if deal.health_scored_at else None,
    )
