"""
Shared fixtures for deal health tests.
An in-memory repository stands in for the database.
"""

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy.exc import OperationalError, PendingRollbackError

from dealhealth.models import Deal, DealStage, Note, NoteEntityType
from dealhealth.scoring.repository import DealRepository
from dealhealth.scoring.service import DealHealthService

NOW = datetime(2026, 3, 15, 14, 30, tzinfo=timezone.utc)
MIDNIGHT = datetime(2026, 3, 15, tzinfo=timezone.utc)
TODAY = date(2026, 3, 15)


def days_ago(days: float) -> datetime:
    return MIDNIGHT - timedelta(days=days)


def make_stage(
    stage_name: str = "Short Listed",
    sort_order: int = 4,
    win_probability: Optional[int] = 45,
    is_won: bool = False,
    is_lost: bool = False,
) -> DealStage:
    return DealStage(
        id=uuid.uuid4(),
        stage_name=stage_name,
        sort_order=sort_order,
        is_closed=is_won or is_lost,
        is_won=is_won,
        is_lost=is_lost,
        win_probability=win_probability,
    )


def make_deal(stage: Optional[DealStage] = None, **fields) -> Deal:
    deal = Deal(
        id=fields.pop("id", uuid.uuid4()),
        deal_name=fields.pop("deal_name", "Acme renewal"),
        currency="USD",
        **fields,
    )
    deal.stage = stage
    if stage is not None:
        deal.stage_id = stage.id
    return deal


def make_note(deal: Deal, text: str, created_at: datetime) -> Note:
    return Note(
        id=uuid.uuid4(),
        entity_type=NoteEntityType.DEAL.value,
        entity_id=deal.id,
        note_text=text,
        created_at=created_at,
    )


class FakeSavepoint:
    def __init__(self, session: "FakeSession"):
        self.session = session

    async def __aenter__(self) -> "FakeSavepoint":
        self.session.savepoints += 1
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.session.rollbacks += 1
            self.session.failed = False
        return False


class FakeSession:
    """
    Just enough of AsyncSession for the repository write path.

    A failed flush leaves the session unusable until a rollback, the way a
    real session behaves; leaving a savepoint with an error restores it.
    """

    def __init__(self):
        self.flushes = 0
        self.savepoints = 0
        self.rollbacks = 0
        self.failed = False
        self.fail_next_flush = False

    def check_usable(self) -> None:
        if self.failed:
            raise PendingRollbackError("previous flush failed")

    async def flush(self) -> None:
        self.check_usable()
        if self.fail_next_flush:
            self.fail_next_flush = False
            self.failed = True
            raise OperationalError("UPDATE deals", {}, Exception("update aborted"))
        self.flushes += 1

    def begin_nested(self) -> FakeSavepoint:
        self.check_usable()
        return FakeSavepoint(self)


class FakeDealRepository(DealRepository):
    """DealRepository with queries answered from memory."""

    def __init__(self, population: Optional[list] = None):
        super().__init__(FakeSession())
        self.deals: dict[uuid.UUID, Deal] = {}
        self.notes: dict[uuid.UUID, list[Note]] = {}
        self.stages: list[DealStage] = []
        self.population = population
        self.broken_deal_ids: set[uuid.UUID] = set()
        self.failing_write_ids: set[uuid.UUID] = set()

    def add_deal(self, deal: Deal, notes: Optional[list[Note]] = None) -> Deal:
        self.deals[deal.id] = deal
        self.notes[deal.id] = sorted(notes or [], key=lambda n: n.created_at, reverse=True)
        if deal.stage is not None and deal.stage not in self.stages:
            self.stages.append(deal.stage)
        return deal

    async def get_deal(self, deal_id):
        self.session.check_usable()
        return self.deals.get(deal_id)

    async def list_deal_notes(self, deal_id):
        self.session.check_usable()
        if deal_id in self.broken_deal_ids:
            raise RuntimeError("notes unavailable")
        return self.notes.get(deal_id, [])

    async def save_health_score(self, deal, result, scored_at):
        if deal.id in self.failing_write_ids:
            self.session.fail_next_flush = True
        return await super().save_health_score(deal, result, scored_at)

    async def list_positive_values(self):
        if self.population is not None:
            return list(self.population)
        return [
            d.value_amount for d in self.deals.values()
            if d.value_amount is not None and d.value_amount > 0
        ]

    async def list_deal_ids(self):
        return list(self.deals)

    async def list_stages_missing_probability(self):
        return sorted(
            (s for s in self.stages if s.win_probability is None),
            key=lambda s: s.sort_order,
        )


@pytest.fixture
def repository() -> FakeDealRepository:
    return FakeDealRepository(population=[Decimal("10000"), Decimal("20000"), Decimal("50000"), Decimal("80000")])


@pytest.fixture
def service(repository) -> DealHealthService:
    return DealHealthService(repository, clock=lambda: NOW)


@pytest.fixture
def scored_deal(repository) -> Deal:
    """Short Listed deal that scores 76 at NOW against the fixture population."""
    deal = make_deal(
        stage=make_stage("Short Listed", 4, 45),
        value_amount=Decimal("50000.00"),
        close_date=TODAY + timedelta(days=45),
        last_activity_at=days_ago(5),
        deal_notes="Champion is the VP of Sales.",
    )
    notes = [
        make_note(deal, "Budget confirmed and legal engaged", days_ago(2)),
        make_note(deal, "No response from the CFO yet", days_ago(12)),
    ]
    return repository.add_deal(deal, notes)
