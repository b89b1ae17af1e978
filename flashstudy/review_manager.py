"""
This module defines the ReviewSessionManager class, which connects a
ReviewSession to the card repository and progress store of the hosting
application for one deck and study mode.
"""

import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Union

from .config import Settings, get_settings
from .deck_utils import DeckCounts, count_cards, reset_schedules
from .interfaces import CardRepository, ProgressStore, Unsubscribe, session_key
from .models import Card, SessionState, StudyMode
from .review_session import ReviewSession
from .scheduler import BaseScheduler, SM2Scheduler

# Initialize logger
logger = logging.getLogger(__name__)


class ReviewSessionManager:
    """
    Manages a review session for one deck.

    This class is responsible for:
    - Deriving the progress key from the deck and study mode.
    - Loading the deck's cards and any stored progress at start.
    - Forwarding card store changes to the session for reconciliation.
    - Reporting deck and session statistics.
    """

    def __init__(
        self,
        card_store: CardRepository,
        progress_store: ProgressStore,
        deck_id: str,
        mode: Optional[Union[StudyMode, str]] = None,
        settings: Optional[Settings] = None,
        scheduler: Optional[BaseScheduler] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_complete: Optional[Callable[[], None]] = None,
    ):
        """
        Parameters:
            card_store: Supplies the deck's cards and receives update/delete requests.
            progress_store: Loads, saves and clears resumable session snapshots.
            deck_id: Deck to review.
            mode: Study mode; falls back to ``settings.default_mode``.
            settings: Library settings; read from the environment when omitted.
            scheduler: Scheduling algorithm; SM-2 configured from ``settings`` by default.
            rng: Randomness for shuffling.
            clock: Source of the current time.
            on_complete: Called once when the learner grades the last queued card.
        """
        self.settings = settings or get_settings()
        self.card_store = card_store
        self.progress_store = progress_store
        self.deck_id = deck_id
        self.mode = StudyMode(mode or self.settings.default_mode)
        self.session_key = session_key(deck_id, self.mode)
        self.scheduler = scheduler or SM2Scheduler(
            self.settings.scheduler_config()
        )
        self.session = ReviewSession(
            deck_id=deck_id,
            on_card_update=card_store.request_card_update,
            on_card_delete=card_store.request_card_deletion,
            mode=self.mode,
            progress_sink=progress_store,
            progress_key=self.session_key,
            on_complete=on_complete,
            scheduler=self.scheduler,
            rng=rng,
            clock=clock,
            shuffle=self.settings.shuffle_by_default,
        )
        self._unsubscribe: Optional[Unsubscribe] = None

    def start(self) -> SessionState:
        """
        Load the deck and initialize the session, resuming stored progress
        when it is still valid. Subscribes to card changes on first call.
        """
        logger.info(
            f"Starting {self.mode.value} review of deck '{self.deck_id}'"
        )
        cards = self.card_store.get_cards_for_deck(self.deck_id)
        stored = self.progress_store.load_progress(self.session_key)
        state = self.session.initialize(cards, stored_progress=stored)
        if self._unsubscribe is None:
            self._unsubscribe = self.card_store.subscribe(
                self.deck_id, self.session.reconcile
            )
        return state

    def restart(self) -> SessionState:
        """Drop stored progress and build a fresh queue."""
        self.session.restart()
        return self.start()

    def close(self) -> None:
        """Stop listening to card store changes."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.debug(f"Closed review of deck '{self.deck_id}'")

    def reset_deck(self, now: Optional[datetime] = None) -> List[Card]:
        """
        Forget the review history of every card in the deck.

        Each card gets the scheduler's initial schedule, due at ``now``, and is
        written back through the card store. Queued copies of an active
        session are refreshed by the store's change notifications.
        """
        now = now or self.session.clock()
        cards = reset_schedules(
            self.card_store.get_cards_for_deck(self.deck_id), now, self.scheduler
        )
        for card in cards:
            self.card_store.request_card_update(card)
        return cards

    def get_deck_stats(self, now: Optional[datetime] = None) -> DeckCounts:
        """Total and currently due cards in the deck."""
        now = now or self.session.clock()
        return count_cards(self.card_store.get_cards_for_deck(self.deck_id), now)

    def get_session_stats(self) -> Dict[str, Any]:
        """
        Session statistics merged with deck counts.

        Returns:
            dict: the keys of ``ReviewSession.get_session_stats`` plus
            ``state``, ``deck_total_cards`` and ``deck_due_cards``.
        """
        stats: Dict[str, Any] = dict(self.session.get_session_stats())
        deck_counts = self.get_deck_stats()
        stats.update(
            {
                "state": self.session.state.value,
                "deck_total_cards": deck_counts.total,
                "deck_due_cards": deck_counts.due,
            }
        )
        return stats
