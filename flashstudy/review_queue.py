"""
Review queue construction, reordering and resumption.

A queue is built once per session. Its membership only ever shrinks
(explicit deletions); edits to queued cards are refreshed in place.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from .exceptions import ProgressValidationError
from .models import Card, SessionProgress, StudyMode

logger = logging.getLogger(__name__)


def sort_by_creation(cards: Iterable[Card]) -> List[Card]:
    """Default queue order: oldest card first, ties broken by id."""
    return sorted(cards, key=lambda c: (c.created_at, c.id))


def shuffled_copy(cards: Iterable[Card], rng: random.Random) -> List[Card]:
    """Uniform random permutation (Fisher-Yates, via ``Random.shuffle``)."""
    result = list(cards)
    rng.shuffle(result)
    return result


def select_cards(
    cards: Iterable[Card], mode: StudyMode, now: datetime
) -> List[Card]:
    """Cram reviews the whole deck; standard only what is due at ``now``."""
    if StudyMode(mode) is StudyMode.CRAM:
        return list(cards)
    return [card for card in cards if card.is_due(now)]


@dataclass
class ReviewQueue:
    """Ordered cards of one session plus the current position."""

    cards: List[Card] = field(default_factory=list)
    position: int = 0
    shuffled: bool = False

    def __len__(self) -> int:
        return len(self.cards)

    @property
    def is_empty(self) -> bool:
        return not self.cards

    @property
    def current(self) -> Optional[Card]:
        if 0 <= self.position < len(self.cards):
            return self.cards[self.position]
        return None

    @property
    def is_last(self) -> bool:
        return bool(self.cards) and self.position == len(self.cards) - 1

    @property
    def card_ids(self) -> List[str]:
        return [card.id for card in self.cards]

    def index_of(self, card_id: str) -> int:
        for index, card in enumerate(self.cards):
            if card.id == card_id:
                return index
        return -1

    def snapshot(self) -> SessionProgress:
        return SessionProgress(
            card_ids=self.card_ids,
            position=self.position,
            shuffled=self.shuffled,
        )

    def refresh(self, updated_cards: Iterable[Card]) -> int:
        """
        Swap in fresh copies of queued cards, matched by id.

        Order, position and membership are untouched; queued cards missing
        from ``updated_cards`` are kept as they are. Returns the number of
        entries replaced.
        """
        by_id: Dict[str, Card] = {card.id: card for card in updated_cards}
        replaced = 0
        for index, card in enumerate(self.cards):
            fresh = by_id.get(card.id)
            if fresh is not None and fresh is not card:
                self.cards[index] = fresh
                replaced += 1
        return replaced

    def replace(self, card: Card) -> None:
        index = self.index_of(card.id)
        if index != -1:
            self.cards[index] = card

    def remove(self, card_id: str) -> bool:
        """
        Drop a card. Removing a card before the current one keeps the
        current card in focus; removing the current card moves focus to its
        successor, or to the new last card when it was last.
        """
        index = self.index_of(card_id)
        if index == -1:
            return False
        del self.cards[index]
        if index < self.position:
            self.position -= 1
        elif self.position >= len(self.cards):
            self.position = max(0, len(self.cards) - 1)
        return True

    def reorder(self, shuffled: bool, rng: random.Random) -> None:
        """
        Shuffle or restore creation order, keeping the current card in focus.
        """
        current = self.current
        if shuffled:
            self.cards = shuffled_copy(self.cards, rng)
        else:
            self.cards = sort_by_creation(self.cards)
        self.shuffled = shuffled
        new_index = self.index_of(current.id) if current is not None else -1
        self.position = new_index if new_index != -1 else 0


def build_queue(
    cards: Iterable[Card],
    mode: StudyMode,
    now: datetime,
    shuffled: bool = False,
    rng: Optional[random.Random] = None,
) -> ReviewQueue:
    """Build a fresh queue for ``mode`` at ``now``."""
    selected = select_cards(cards, mode, now)
    if shuffled:
        ordered = shuffled_copy(selected, rng or random.Random())
    else:
        ordered = sort_by_creation(selected)
    logger.debug(
        f"Built {StudyMode(mode).value} queue: {len(ordered)} card(s), "
        f"shuffled={shuffled}"
    )
    return ReviewQueue(cards=ordered, position=0, shuffled=shuffled)


def restore_queue(
    progress: SessionProgress, cards: Iterable[Card]
) -> ReviewQueue:
    """
    Rebuild a queue from a stored snapshot.

    Raises:
        ProgressValidationError: If the snapshot is empty, references a card
            that no longer exists, or its position is out of range. A stale
            position is never clamped.
    """
    if not progress.card_ids:
        raise ProgressValidationError("Stored progress has no cards.")

    by_id: Dict[str, Card] = {card.id: card for card in cards}
    missing = [card_id for card_id in progress.card_ids if card_id not in by_id]
    if missing:
        raise ProgressValidationError(
            f"Stored progress references {len(missing)} missing card(s): "
            f"{', '.join(missing[:5])}"
        )
    if len(set(progress.card_ids)) != len(progress.card_ids):
        raise ProgressValidationError("Stored progress repeats card ids.")
    if progress.position >= len(progress.card_ids):
        raise ProgressValidationError(
            f"Stored position {progress.position} is out of range for "
            f"{len(progress.card_ids)} card(s)."
        )

    return ReviewQueue(
        cards=[by_id[card_id] for card_id in progress.card_ids],
        position=progress.position,
        shuffled=progress.shuffled,
    )
