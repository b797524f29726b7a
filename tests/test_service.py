"""
Deal Health Service Tests
Snapshot assembly, persistence and bulk recompute against an in-memory repository.
Run: pytest tests/test_service.py -v
"""

import asyncio
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from dealhealth.scoring.exceptions import DealNotFoundError
from dealhealth.scoring.health_score_calculator import HealthBand, ScoreBreakdown
from dealhealth.scoring.service import build_snapshot
from tests.conftest import NOW, TODAY, days_ago, make_deal, make_note, make_stage


class TestBuildSnapshot:
    def test_reads_stage_and_notes(self, scored_deal, repository):
        snapshot = build_snapshot(scored_deal, repository.notes[scored_deal.id])

        assert snapshot.win_probability == 45
        assert snapshot.stage_name == "Short Listed"
        assert snapshot.value_amount == 50000.0
        assert snapshot.close_date == TODAY + timedelta(days=45)
        assert snapshot.deal_notes_inline == "Champion is the VP of Sales."
        assert snapshot.latest_note_at == days_ago(2)
        assert snapshot.all_notes_text == "Budget confirmed and legal engaged No response from the CFO yet"

    def test_deal_without_stage_or_notes(self):
        deal = make_deal(stage=None, value_amount=Decimal("0"))
        snapshot = build_snapshot(deal, [])

        assert snapshot.win_probability is None
        assert snapshot.stage_name is None
        assert snapshot.value_amount is None
        assert snapshot.latest_note_at is None
        assert snapshot.all_notes_text == ""

    def test_stage_without_probability(self):
        deal = make_deal(stage=make_stage("Discovery", 1, None))
        assert build_snapshot(deal, []).win_probability is None


class TestRecompute:
    def test_scores_and_persists(self, service, repository, scored_deal):
        result = asyncio.run(service.recompute(scored_deal.id))

        assert result.breakdown == ScoreBreakdown(
            stage_probability=45,
            velocity=100,
            activity_recency=100,
            close_date_integrity=100,
            acv=70,
            notes_signal=60,
        )
        # (1125 + 2000 + 1500 + 1000 + 1050 + 900) / 100 = 75.75
        assert result.score == 76
        assert result.band == HealthBand.AT_RISK

        assert scored_deal.health_score == 76
        assert scored_deal.hs_stage_probability == 45
        assert scored_deal.hs_velocity == 100
        assert scored_deal.hs_activity_recency == 100
        assert scored_deal.hs_close_date == 100
        assert scored_deal.hs_acv == 70
        assert scored_deal.hs_notes_signal == 60
        assert scored_deal.health_debug["notes_keywords"] == {
            "positive": ["budget confirmed", "legal engaged"],
            "negative": ["no response"],
        }
        assert scored_deal.health_scored_at == NOW
        assert repository.session.flushes == 1

    def test_explicit_now_overrides_clock(self, service, scored_deal):
        later = NOW + timedelta(days=60)
        result = asyncio.run(service.recompute(scored_deal.id, now=later))
        # close date is now overdue and the last note is 62 days old
        assert result.breakdown.close_date_integrity == 10
        assert result.breakdown.activity_recency == 10
        assert scored_deal.health_scored_at == later

    def test_recompute_is_idempotent(self, service, scored_deal):
        first = asyncio.run(service.recompute(scored_deal.id))
        second = asyncio.run(service.recompute(scored_deal.id))
        assert first == second

    def test_unknown_deal(self, service):
        missing = uuid.uuid4()
        with pytest.raises(DealNotFoundError) as exc_info:
            asyncio.run(service.recompute(missing))
        assert exc_info.value.deal_id == missing
        assert str(missing) in exc_info.value.message


class TestRecomputeAll:
    def test_counts_processed_and_failed(self, service, repository, scored_deal):
        bare = repository.add_deal(make_deal(stage=None))
        broken = repository.add_deal(make_deal(stage=make_stage("Implementing", 7, 85)))
        repository.broken_deal_ids.add(broken.id)

        summary = asyncio.run(service.recompute_all())

        assert summary == {"processed": 2, "failed": 1}
        assert scored_deal.health_score == 76
        assert bare.health_score == 48
        assert broken.health_score is None

    def test_failed_write_rolls_back_only_that_deal(self, service, repository, scored_deal):
        failing = repository.add_deal(make_deal(stage=make_stage("Implementing", 7, 85)))
        later = repository.add_deal(make_deal(stage=None))
        repository.failing_write_ids.add(failing.id)

        summary = asyncio.run(service.recompute_all())

        assert summary == {"processed": 2, "failed": 1}
        assert scored_deal.health_score == 76
        assert later.health_score == 48
        session = repository.session
        assert session.savepoints == 3
        assert session.rollbacks == 1
        assert session.flushes == 2
        assert not session.failed

    def test_empty_pipeline(self, service):
        assert asyncio.run(service.recompute_all()) == {"processed": 0, "failed": 0}


class TestPersistedScore:
    def test_returns_deal(self, service, scored_deal):
        deal = asyncio.run(service.get_persisted(scored_deal.id))
        assert deal is scored_deal
        assert deal.health_components() is None

    def test_components_after_recompute(self, service, scored_deal):
        asyncio.run(service.recompute(scored_deal.id))
        assert scored_deal.health_components()["acv"] == 70

    def test_unknown_deal(self, service):
        with pytest.raises(DealNotFoundError):
            asyncio.run(service.get_persisted(uuid.uuid4()))


class TestBackfillStageProbabilities:
    def test_fills_missing_only(self, service, repository):
        configured = make_stage("Short Listed", 4, 50)
        missing_open = make_stage("Contract Signed", 6, None)
        missing_won = make_stage("Closed Implemented", 8, None, is_won=True)
        for stage in (configured, missing_open, missing_won):
            repository.add_deal(make_deal(stage=stage))

        updated = asyncio.run(service.backfill_stage_probabilities())

        assert updated == 2
        assert configured.win_probability == 50
        assert missing_open.win_probability == 70
        assert missing_won.win_probability == 100
        assert repository.session.flushes == 1

    def test_nothing_to_do(self, service):
        assert asyncio.run(service.backfill_stage_probabilities()) == 0
