import os
import random
import pytest
from datetime import datetime, timedelta, timezone
from typing import Callable, List

from flashstudy.models import (
    BasicContent,
    Card,
    ClozeContent,
    ImageOcclusionContent,
    OcclusionRect,
    ScheduleState,
)
from flashstudy.stores import InMemoryCardStore, InMemoryProgressStore

NOW = datetime(2024, 3, 10, 9, 30, tzinfo=timezone.utc)


# each test runs on cwd to its temp dir, so no stray .env reaches Settings
@pytest.fixture(autouse=True)
def go_to_tmpdir(request, monkeypatch):
    """
    Run the test inside its own tmpdir with no FLASHSTUDY_* variables set.

    Parameters:
        request: The pytest `request` fixture used to obtain the per-test `tmpdir` fixture.
        monkeypatch: Used to strip flashstudy settings from the environment.
    """
    tmpdir = request.getfixturevalue("tmpdir")
    for name in list(os.environ):
        if name.startswith("FLASHSTUDY_"):
            monkeypatch.delenv(name)
    with tmpdir.as_cwd():
        yield


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock() -> Callable[[], datetime]:
    """A clock frozen at NOW."""
    return lambda: NOW


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def make_card() -> Callable[..., Card]:
    """
    Build a basic card in deck "deck-a" created ``offset`` minutes after a
    fixed epoch and due ``due_in`` days from NOW (negative means overdue).
    """

    def _make(
        card_id: str,
        offset: int = 0,
        due_in: int = 0,
        deck_id: str = "deck-a",
    ) -> Card:
        return Card(
            id=card_id,
            deck_id=deck_id,
            content=BasicContent(front=f"Q {card_id}", back=f"A {card_id}"),
            schedule=ScheduleState(due_at=NOW + timedelta(days=due_in)),
            created_at=datetime(2024, 1, 1, tzinfo=timezone.utc)
            + timedelta(minutes=offset),
        )

    return _make


@pytest.fixture
def three_cards(make_card) -> List[Card]:
    """Cards c1, c2, c3 all due, passed in reverse creation order."""
    return [
        make_card("c3", offset=3),
        make_card("c1", offset=1),
        make_card("c2", offset=2),
    ]


@pytest.fixture
def five_cards_two_due(make_card) -> List[Card]:
    return [
        make_card("d1", offset=1, due_in=-2),
        make_card("f1", offset=2, due_in=3),
        make_card("d2", offset=3, due_in=0),
        make_card("f2", offset=4, due_in=1),
        make_card("f3", offset=5, due_in=10),
    ]


@pytest.fixture
def occlusion_card() -> Card:
    return Card(
        id="io-1",
        deck_id="deck-a",
        content=ImageOcclusionContent(
            image="https://example.com/heart.png",
            occlusions=[
                OcclusionRect(id="r1", x=10, y=10, width=20, height=10),
                OcclusionRect(id="r2", x=50, y=40, width=15, height=15),
            ],
        ),
        schedule=ScheduleState(due_at=NOW),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def cloze_card() -> Card:
    return Card(
        id="cz-1",
        deck_id="deck-a",
        content=ClozeContent(
            text="{{c1::Paris}} is the capital of {{c2::France}}.",
            cloze_index=2,
        ),
        schedule=ScheduleState(due_at=NOW),
        created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )


@pytest.fixture
def card_store(three_cards) -> InMemoryCardStore:
    return InMemoryCardStore(three_cards)


@pytest.fixture
def progress_store() -> InMemoryProgressStore:
    return InMemoryProgressStore()
