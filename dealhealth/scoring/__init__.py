"""
Deal Health Scoring
Composite 0-100 health score for sales deals.
"""

from dealhealth.scoring.health_score_calculator import (
    DealHealthScoreCalculator,
    DealSnapshot,
    HealthBand,
    ScoreBreakdown,
    ScoreResult,
    compute_health_score,
)

__all__ = [
    "DealHealthScoreCalculator",
    "DealSnapshot",
    "HealthBand",
    "ScoreBreakdown",
    "ScoreResult",
    "compute_health_score",
]
