"""
Collaborator interfaces the review session talks to.

The hosting application owns cards, decks and persisted progress; the
session engine only reads cards and sends one-way requests back.
"""

from typing import Callable, List, Optional, Protocol, Union

from .models import Card, SessionProgress, StudyMode

CardListener = Callable[[List[Card]], None]
Unsubscribe = Callable[[], None]


class CardRepository(Protocol):
    def get_cards_for_deck(self, deck_id: str) -> List[Card]: ...

    def request_card_update(self, card: Card) -> None: ...

    def request_card_deletion(self, card_id: str) -> None: ...

    def subscribe(self, deck_id: str, listener: CardListener) -> Unsubscribe:
        """Call ``listener`` with the deck's cards after every change."""
        ...


class ProgressSink(Protocol):
    """The write half of a progress store, all the engine needs."""

    def save_progress(self, key: str, progress: SessionProgress) -> None: ...

    def clear_progress(self, key: str) -> None: ...


class ProgressStore(ProgressSink, Protocol):
    def load_progress(self, key: str) -> Optional[SessionProgress]: ...


def session_key(deck_id: str, mode: Union[StudyMode, str]) -> str:
    """Conventional progress key: one resumable session per deck and mode."""
    return f"{deck_id}:{StudyMode(mode).value}"
