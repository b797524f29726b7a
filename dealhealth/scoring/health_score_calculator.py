"""
Deal Health Score Calculator

Calculates a composite Deal Health Score (0-100) from six weighted factors:
- Stage Probability (25)
- Velocity vs. stage benchmark (20)
- Activity Recency (15)
- Close Date Integrity (10)
- ACV percentile (15)
- Notes Signal (15)

Pure computation: no I/O and no clock access. The evaluation moment is passed
in by the caller and every day count is measured from midnight of that date.
"""

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Sequence

from dealhealth.scoring.stages import benchmark_days_for, normalize_stage_name

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86_400

PUSH_SIGNALS: tuple[str, ...] = ("pushed", "delayed", "moved out", "rescheduled")

POSITIVE_KEYWORDS: tuple[str, ...] = (
    "budget confirmed",
    "legal engaged",
    "exec sponsor",
    "timeline committed",
    "verbal commit",
    "procurement",
)

# "pushed" and "delayed" also count as push signals for close date integrity
NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "no response",
    "circling back",
    "waiting on approval",
    "reviewing internally",
    "pushed",
    "delayed",
    "stalled",
)

FACTOR_WEIGHTS: Mapping[str, int] = MappingProxyType({
    "stage_probability": 25,
    "velocity": 20,
    "activity_recency": 15,
    "close_date_integrity": 10,
    "acv": 15,
    "notes_signal": 15,
})

DEFAULT_STAGE_PROBABILITY = 35
DEFAULT_VELOCITY = 70
DEFAULT_ACTIVITY_RECENCY = 40
DEFAULT_CLOSE_DATE_BASE = 60
DEFAULT_ACV = 40
NOTES_SIGNAL_BASE = 50


class HealthBand(str, Enum):
    """Health bands shown next to a deal."""
    HEALTHY = "healthy"    # 80-100
    AT_RISK = "at_risk"    # 60-79
    CRITICAL = "critical"  # <60


def band_for_score(score: Optional[int]) -> Optional[HealthBand]:
    """Get health band from score (None when the deal has not been scored)."""
    if score is None:
        return None
    if score >= 80:
        return HealthBand.HEALTHY
    if score >= 60:
        return HealthBand.AT_RISK
    return HealthBand.CRITICAL


@dataclass(frozen=True)
class DealSnapshot:
    """
    Inputs for a single health score calculation.

    Attributes:
        win_probability: Stage-level expected win percentage (0-100)
        stage_name: Free-text stage label
        value_amount: Deal value; None or <= 0 means unsized
        close_date: Expected close date
        last_activity_at: Last recorded touch on the deal
        deal_notes_inline: Notes field stored on the deal itself
        latest_note_at: Timestamp of the newest activity note
        all_notes_text: All activity note texts joined together
    """
    win_probability: Optional[float] = None
    stage_name: Optional[str] = None
    value_amount: Optional[float] = None
    close_date: Optional[date] = None
    last_activity_at: Optional[datetime] = None
    deal_notes_inline: Optional[str] = None
    latest_note_at: Optional[datetime] = None
    all_notes_text: str = ""


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-factor scores, each an integer 0-100."""
    stage_probability: int
    velocity: int
    activity_recency: int
    close_date_integrity: int
    acv: int
    notes_signal: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class ScoreResult:
    """Composite score with its breakdown and a diagnostic trace."""
    score: int
    breakdown: ScoreBreakdown
    debug: dict[str, Any] = field(default_factory=dict)

    @property
    def band(self) -> HealthBand:
        return band_for_score(self.score)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "band": self.band.value,
            "components": self.breakdown.to_dict(),
            "debug": self.debug,
        }


def _clamp(value: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, value))


def _finite(value: Any) -> Optional[float]:
    """Return value as a float, or None if missing or not a finite number."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _midnight(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def _align(ts: datetime, reference: datetime) -> datetime:
    """Make ts comparable with reference (both naive or both aware)."""
    ts_aware = ts.tzinfo is not None and ts.utcoffset() is not None
    ref_aware = reference.tzinfo is not None and reference.utcoffset() is not None
    if ts_aware == ref_aware:
        return ts
    if ref_aware:
        return ts.replace(tzinfo=reference.tzinfo)
    return ts.astimezone(timezone.utc).replace(tzinfo=None)


def days_since(ts: Optional[datetime], today_midnight: datetime) -> Optional[int]:
    """Whole days elapsed from ts to midnight, never negative."""
    if ts is None:
        return None
    elapsed = (today_midnight - _align(ts, today_midnight)).total_seconds()
    return max(0, math.floor(elapsed / SECONDS_PER_DAY))


def days_until(close_date: Optional[date], today_midnight: datetime) -> Optional[int]:
    """Days from midnight until the close date, rounded up (negative if overdue)."""
    if close_date is None:
        return None
    if isinstance(close_date, datetime):
        target = _align(close_date, today_midnight)
    else:
        target = datetime.combine(close_date, time.min, tzinfo=today_midnight.tzinfo)
    remaining = (target - today_midnight).total_seconds()
    return math.ceil(remaining / SECONDS_PER_DAY)


def _matched(text: str, phrases: Iterable[str]) -> list[str]:
    """Phrases found at least once in already lower-cased text."""
    return [phrase for phrase in phrases if phrase in text]


class DealHealthScoreCalculator:
    """
    Calculates the Deal Health Score (0-100).

    Each factor scorer is total: missing inputs map to a fixed default
    and out-of-range inputs are clamped.
    """

    @staticmethod
    def _score_stage_probability(win_probability: Optional[float]) -> int:
        """Stage probability: clamped win probability, 35 when unknown."""
        probability = _finite(win_probability)
        if probability is None:
            return DEFAULT_STAGE_PROBABILITY
        return _round_half_up(max(0.0, min(100.0, probability)))

    @staticmethod
    def _score_velocity(days_since_activity: Optional[int], stage_name: Optional[str]) -> int:
        """Velocity: days since activity against the stage benchmark."""
        if days_since_activity is None:
            return DEFAULT_VELOCITY

        ratio = days_since_activity / benchmark_days_for(stage_name)
        if ratio <= 0.8:
            return 100
        elif ratio <= 1.2:
            return 70
        elif ratio <= 1.5:
            return 40
        else:
            return 10

    @staticmethod
    def _score_activity_recency(days_since_touch: Optional[int]) -> int:
        """Activity recency: days since the latest note (or activity)."""
        if days_since_touch is None:
            return DEFAULT_ACTIVITY_RECENCY

        if days_since_touch <= 7:
            return 100
        elif days_since_touch <= 14:
            return 70
        elif days_since_touch <= 30:
            return 40
        else:
            return 10

    @staticmethod
    def _score_close_date_integrity(
        days_to_close: Optional[int],
        stage_key: str,
        push_signals: Sequence[str],
    ) -> int:
        """Close date integrity: proximity of close date minus 20 per push signal."""
        if days_to_close is None:
            base = DEFAULT_CLOSE_DATE_BASE
        elif days_to_close < 0:
            # Overdue is expected once the deal is implementing or won
            base = 100 if "implement" in stage_key or "won" in stage_key else 10
        elif days_to_close <= 30:
            base = 70
        else:
            base = 100

        return _clamp(base - len(push_signals) * 20, 10, 100)

    @staticmethod
    def _acv_percentile(value_amount: Optional[float], population: Sequence[Any]) -> Optional[float]:
        """Fraction of the population strictly below the deal value."""
        value = _finite(value_amount)
        if value is None or value <= 0 or not population:
            return None
        values = [_finite(v) for v in population]
        below = sum(1 for v in values if v is not None and v < value)
        return below / len(population)

    @staticmethod
    def _score_acv(percentile: Optional[float]) -> int:
        """ACV: percentile rank of the deal value."""
        if percentile is None:
            return DEFAULT_ACV

        if percentile >= 0.8:
            return 100
        elif percentile >= 0.4:
            return 70
        else:
            return 40

    @staticmethod
    def _score_notes_signal(positive: Sequence[str], negative: Sequence[str]) -> int:
        """Notes signal: 50, +10 per positive keyword, -10 per negative keyword."""
        return _clamp(NOTES_SIGNAL_BASE + 10 * len(positive) - 10 * len(negative), 0, 100)

    @staticmethod
    def _aggregate(breakdown: ScoreBreakdown) -> int:
        """Weighted average of the factors, rounded half-up and clamped."""
        components = breakdown.to_dict()
        total_weight = sum(FACTOR_WEIGHTS.values())
        weighted_sum = sum(weight * components[name] for name, weight in FACTOR_WEIGHTS.items())
        if total_weight <= 0:
            return 0
        # Exact integer rounding of weighted_sum / total_weight
        score = (2 * weighted_sum + total_weight) // (2 * total_weight)
        return _clamp(score, 0, 100)

    @staticmethod
    def calculate(
        snapshot: DealSnapshot,
        comparison_population: Sequence[Any],
        now: datetime,
    ) -> ScoreResult:
        """
        Calculate the Deal Health Score.

        Args:
            snapshot: Deal inputs assembled by the caller
            comparison_population: Positive deal values to rank against
            now: Evaluation moment; day counts start from its midnight

        Returns:
            ScoreResult with score, per-factor breakdown and debug trace
        """
        today_midnight = _midnight(now)
        stage_key = normalize_stage_name(snapshot.stage_name)
        notes_text = " ".join([snapshot.deal_notes_inline or "", snapshot.all_notes_text or ""]).lower()

        days_since_activity = days_since(snapshot.last_activity_at, today_midnight)
        days_since_touch = days_since(
            snapshot.latest_note_at or snapshot.last_activity_at,
            today_midnight,
        )
        days_to_close = days_until(snapshot.close_date, today_midnight)

        push_signals = _matched(notes_text, PUSH_SIGNALS)
        positive = _matched(notes_text, POSITIVE_KEYWORDS)
        negative = _matched(notes_text, NEGATIVE_KEYWORDS)
        percentile = DealHealthScoreCalculator._acv_percentile(
            snapshot.value_amount, comparison_population or ()
        )

        breakdown = ScoreBreakdown(
            stage_probability=DealHealthScoreCalculator._score_stage_probability(snapshot.win_probability),
            velocity=DealHealthScoreCalculator._score_velocity(days_since_activity, snapshot.stage_name),
            activity_recency=DealHealthScoreCalculator._score_activity_recency(days_since_touch),
            close_date_integrity=DealHealthScoreCalculator._score_close_date_integrity(
                days_to_close, stage_key, push_signals
            ),
            acv=DealHealthScoreCalculator._score_acv(percentile),
            notes_signal=DealHealthScoreCalculator._score_notes_signal(positive, negative),
        )
        score = DealHealthScoreCalculator._aggregate(breakdown)

        logger.debug("Deal health score %s (%s)", score, breakdown)

        return ScoreResult(
            score=score,
            breakdown=breakdown,
            debug={
                "days_since_activity": days_since_activity,
                "days_since_touch": days_since_touch,
                "days_until_close": days_to_close,
                "stage_name": snapshot.stage_name,
                "benchmark_days": benchmark_days_for(snapshot.stage_name),
                "push_signals": push_signals,
                "acv_percentile": percentile,
                "notes_keywords": {"positive": positive, "negative": negative},
            },
        )


def compute_health_score(
    snapshot: DealSnapshot,
    comparison_population: Sequence[Any],
    now: datetime,
) -> ScoreResult:
    """Score a deal snapshot against a comparison population at a given moment."""
    return DealHealthScoreCalculator.calculate(snapshot, comparison_population, now)
