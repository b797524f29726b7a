"""
Deal Health Schemas
Pydantic models for health score API responses.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field


class HealthScoreComponents(BaseModel):
    """Per-factor scores (0-100)."""

    stage_probability: Optional[int] = Field(None, description="Stage win probability factor")
    velocity: Optional[int] = Field(None, description="Days since activity vs. stage benchmark")
    activity_recency: Optional[int] = Field(None, description="Days since the latest note or activity")
    close_date_integrity: Optional[int] = Field(None, description="Close date reliability, penalized by push signals")
    acv: Optional[int] = Field(None, description="Deal value percentile across all deals")
    notes_signal: Optional[int] = Field(None, description="Positive/negative keywords found in notes")


class HealthScoreResponse(BaseModel):
    """Health score of a single deal."""

    deal_id: str = Field(..., description="Deal identifier")
    score: Optional[int] = Field(None, description="Composite health score 0-100 (None if never scored)")
    band: Optional[str] = Field(None, description="Health band: healthy, at_risk, or critical")
    components: Optional[HealthScoreComponents] = Field(None, description="Per-factor breakdown")
    debug: Optional[dict[str, Any]] = Field(None, description="Intermediate values from the calculation")
    calculated_at: Optional[str] = Field(None, description="ISO timestamp of the calculation")


class RecomputeSummary(BaseModel):
    """Result of a bulk recompute."""

    processed: int = Field(..., description="Deals scored successfully")
    failed: int = Field(..., description="Deals that could not be scored")
    calculated_at: str = Field(..., description="ISO timestamp used as the evaluation moment")
