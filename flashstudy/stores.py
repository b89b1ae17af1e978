"""
In-memory card and progress stores.

Reference implementations of the collaborator interfaces in
``flashstudy.interfaces``; hosts with real persistence bring their own.
"""

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .exceptions import CardStoreError
from .interfaces import CardListener, Unsubscribe
from .models import Card, SessionProgress

logger = logging.getLogger(__name__)


class InMemoryCardStore:
    """
    Holds cards keyed by id and notifies per-deck listeners on every change.
    """

    def __init__(self, cards: Optional[Iterable[Card]] = None):
        self._cards: Dict[str, Card] = {}
        self._listeners: Dict[str, List[CardListener]] = defaultdict(list)
        for card in cards or ():
            self._cards[card.id] = card

    def __len__(self) -> int:
        return len(self._cards)

    def get_card(self, card_id: str) -> Optional[Card]:
        return self._cards.get(card_id)

    def get_cards_for_deck(self, deck_id: str) -> List[Card]:
        return [card for card in self._cards.values() if card.deck_id == deck_id]

    def add_card(self, card: Card) -> Card:
        if card.id in self._cards:
            raise CardStoreError(f"Card {card.id} already exists.")
        self._cards[card.id] = card
        self._notify(card.deck_id)
        return card

    def add_cards(self, cards: Iterable[Card]) -> List[Card]:
        return [self.add_card(card) for card in cards]

    def request_card_update(self, card: Card) -> None:
        existing = self._cards.get(card.id)
        if existing is None:
            raise CardStoreError(f"Cannot update unknown card {card.id}.")
        self._cards[card.id] = card
        self._notify(card.deck_id)
        if existing.deck_id != card.deck_id:
            self._notify(existing.deck_id)

    def request_card_deletion(self, card_id: str) -> None:
        card = self._cards.pop(card_id, None)
        if card is None:
            logger.warning(f"Deletion requested for unknown card {card_id}")
            return
        self._notify(card.deck_id)

    def subscribe(self, deck_id: str, listener: CardListener) -> Unsubscribe:
        self._listeners[deck_id].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[deck_id]:
                self._listeners[deck_id].remove(listener)

        return unsubscribe

    def _notify(self, deck_id: str) -> None:
        listeners = list(self._listeners.get(deck_id, ()))
        if not listeners:
            return
        cards = self.get_cards_for_deck(deck_id)
        for listener in listeners:
            listener(cards)


class InMemoryProgressStore:
    """
    Keeps session snapshots as plain JSON-compatible dicts, the way browser
    or key-value storage would, and validates them again on load.
    """

    def __init__(self):
        self._entries: Dict[str, Dict[str, Any]] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def load_progress(self, key: str) -> Optional[SessionProgress]:
        raw = self._entries.get(key)
        if raw is None:
            return None
        try:
            return SessionProgress.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed progress for {key}: {e}")
            return None

    def save_progress(self, key: str, progress: SessionProgress) -> None:
        self._entries[key] = progress.model_dump(mode="json")

    def clear_progress(self, key: str) -> None:
        self._entries.pop(key, None)

    def put_raw(self, key: str, raw: Dict[str, Any]) -> None:
        """Store an unvalidated payload, e.g. one written by older code."""
        self._entries[key] = dict(raw)

    def get_raw(self, key: str) -> Optional[Dict[str, Any]]:
        raw = self._entries.get(key)
        return dict(raw) if raw is not None else None
