import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from .exceptions import ClozeFormatError
from .models import Card, ClozeContent, ScheduleState
from .scheduler import BaseScheduler

logger = logging.getLogger(__name__)

# {{c1::answer}} or {{c1::answer::hint}}
CLOZE_PATTERN = re.compile(r"\{\{c(\d+)::(.*?)(?:::(.*?))?\}\}", re.DOTALL)


def _initial_schedule(
    now: datetime, scheduler: Optional[BaseScheduler]
) -> ScheduleState:
    if scheduler is not None:
        return scheduler.initial_schedule(now)
    return ScheduleState.initial(now)


@dataclass(frozen=True)
class DeckCounts:
    total: int
    due: int


def count_cards(cards: Iterable[Card], now: datetime) -> DeckCounts:
    """Total and due card counts, as shown next to a deck or folder."""
    total = 0
    due = 0
    for card in cards:
        total += 1
        if card.is_due(now):
            due += 1
    return DeckCounts(total=total, due=due)


def reset_schedules(
    cards: Iterable[Card],
    now: datetime,
    scheduler: Optional[BaseScheduler] = None,
) -> List[Card]:
    """
    Return copies of ``cards`` with their review history forgotten.

    Every copy gets the initial schedule and is due at ``now``.
    """
    schedule = _initial_schedule(now, scheduler)
    reset = [card.with_schedule(schedule.model_copy()) for card in cards]
    logger.info(f"Reset schedules of {len(reset)} card(s)")
    return reset


def cloze_indices(text: str) -> List[int]:
    """Distinct deletion indices used in ``text``, ascending."""
    found = {int(match.group(1)) for match in CLOZE_PATTERN.finditer(text)}
    return sorted(index for index in found if index > 0)


def make_cloze_cards(
    deck_id: str,
    text: str,
    now: datetime,
    visual_aid: Optional[str] = None,
    scheduler: Optional[BaseScheduler] = None,
) -> List[Card]:
    """
    Expand cloze text into one card per distinct deletion index.

    New cards start from ``scheduler``'s initial schedule when one is given.

    Raises:
        ClozeFormatError: If ``text`` contains no ``{{cN::...}}`` deletion.
    """
    indices = cloze_indices(text)
    if not indices:
        raise ClozeFormatError("Cloze text has no {{cN::...}} deletions.")
    return [
        Card(
            deck_id=deck_id,
            content=ClozeContent(text=text, cloze_index=index),
            visual_aid=visual_aid,
            schedule=_initial_schedule(now, scheduler),
            # offsets keep sibling cards in deletion order
            created_at=now + timedelta(microseconds=offset),
        )
        for offset, index in enumerate(indices)
    ]
