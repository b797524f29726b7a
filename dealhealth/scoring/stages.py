"""
Pipeline Stage Lookups
Stage benchmarks and default win probabilities used by the health score.
"""

from types import MappingProxyType
from typing import Mapping, Optional


# Expected days in stage before a deal is considered slow
STAGE_BENCHMARK_DAYS: Mapping[str, int] = MappingProxyType({
    "solution qualified": 14,
    "presenting to edm": 21,
    "short listed": 21,
    "contract negotiations": 28,
    "contract signed": 14,
    "implementing": 30,
})

DEFAULT_BENCHMARK_DAYS = 21


def normalize_stage_name(stage_name: Optional[str]) -> str:
    """Lower-case and collapse whitespace so lookups ignore casing."""
    if not stage_name:
        return ""
    return " ".join(stage_name.split()).lower()


def benchmark_days_for(stage_name: Optional[str]) -> int:
    """Benchmark days for a stage, falling back to the default benchmark."""
    return STAGE_BENCHMARK_DAYS.get(normalize_stage_name(stage_name), DEFAULT_BENCHMARK_DAYS)


def default_win_probability(is_won: bool, is_lost: bool, sort_order: int) -> int:
    """
    Seed win probability for a stage that has none configured.

    Closed stages are pinned (lost → 0, won → 100); open stages step up
    with their position in the pipeline.

    Args:
        is_won: Stage closes the deal as won
        is_lost: Stage closes the deal as lost (takes precedence over is_won)
        sort_order: Position of the stage in the pipeline (1-based)

    Returns:
        Win probability 0-100
    """
    if is_lost:
        return 0
    if is_won:
        return 100
    if sort_order <= 2:
        return 20
    if sort_order <= 4:
        return 45
    if sort_order <= 6:
        return 70
    return 85
