"""
This module defines the ReviewSession class, the state machine that walks a
learner through a review queue. It builds or resumes the queue, tracks the
current card and its reveal state, grades cards through a scheduler and
reports card changes and resumable progress to its collaborators.
"""

import logging
import math
import random
import threading
from datetime import datetime
from typing import Callable, Dict, Iterable, Optional, Set, Tuple, Union

from .constants import MAX_QUALITY, MIN_QUALITY
from .exceptions import ProgressValidationError
from .interfaces import ProgressSink, session_key
from .models import (
    Card,
    Direction,
    ExhaustionReason,
    ImageOcclusionContent,
    RevealState,
    SessionProgress,
    SessionState,
    StudyMode,
    ensure_aware,
    utc_now,
)
from .review_queue import ReviewQueue, build_queue, restore_queue
from .scheduler import BaseScheduler, SM2Scheduler

logger = logging.getLogger(__name__)


class ReviewSession:
    """
    Drives one study pass over a deck.

    States: ``UNINITIALIZED`` until :meth:`initialize`, then ``ACTIVE`` while
    the queue has cards and ``EXHAUSTED`` once it is empty or completed. While
    active the current card is either unrevealed or revealed.

    Operations that cannot apply (grading an unrevealed card, navigating an
    exhausted session, ...) are silent no-ops since rapid input reaches them
    in normal use. Public methods are serialised with a re-entrant lock.
    """

    def __init__(
        self,
        deck_id: str,
        on_card_update: Callable[[Card], None],
        on_card_delete: Callable[[str], None],
        mode: Union[StudyMode, str] = StudyMode.STANDARD,
        progress_sink: Optional[ProgressSink] = None,
        progress_key: Optional[str] = None,
        on_complete: Optional[Callable[[], None]] = None,
        scheduler: Optional[BaseScheduler] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        shuffle: bool = False,
    ):
        """
        Create a session for ``deck_id`` in ``mode``.

        Parameters:
            deck_id: Deck whose cards are studied.
            on_card_update: Receives a card copy carrying its new schedule.
            on_card_delete: Receives the id of a card the learner deleted.
            mode: ``standard`` (due cards only) or ``cram`` (every card).
            progress_sink: Where resumable snapshots are saved and cleared.
            progress_key: Key for the snapshots; defaults to deck and mode.
            on_complete: Called once when the last card of the queue is graded.
            scheduler: Scheduling algorithm, SM-2 by default.
            rng: Source of randomness for shuffling.
            clock: Returns the current time; due filtering and scheduling use it.
            shuffle: Shuffle fresh queues instead of using creation order.
        """
        self.deck_id = deck_id
        self.mode = StudyMode(mode)
        self.on_card_update = on_card_update
        self.on_card_delete = on_card_delete
        self.progress_sink = progress_sink
        self.progress_key = progress_key or session_key(deck_id, self.mode)
        self.on_complete = on_complete
        self.scheduler = scheduler or SM2Scheduler()
        self.rng = rng or random.Random()
        self.clock = clock or utc_now

        self._lock = threading.RLock()
        self._shuffle = shuffle
        self._queue = ReviewQueue(shuffled=shuffle)
        self._state = SessionState.UNINITIALIZED
        self._exhaustion_reason: Optional[ExhaustionReason] = None
        self._reveal = RevealState.UNREVEALED
        self._visible_occlusions: Set[str] = set()
        self._graded_count = 0

    # --- Read-only state ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def exhaustion_reason(self) -> Optional[ExhaustionReason]:
        return self._exhaustion_reason

    @property
    def reveal_state(self) -> RevealState:
        return self._reveal

    @property
    def is_revealed(self) -> bool:
        return self._reveal is RevealState.REVEALED

    @property
    def visible_occlusions(self) -> Set[str]:
        return set(self._visible_occlusions)

    @property
    def position(self) -> int:
        return self._queue.position

    @property
    def queue(self) -> Tuple[Card, ...]:
        return tuple(self._queue.cards)

    @property
    def shuffled(self) -> bool:
        return self._shuffle

    @property
    def current_card(self) -> Optional[Card]:
        if self._state is not SessionState.ACTIVE:
            return None
        return self._queue.current

    @property
    def is_last_card(self) -> bool:
        return self._state is SessionState.ACTIVE and self._queue.is_last

    def get_session_stats(self) -> Dict[str, int]:
        """
        Returns:
            dict: ``total_cards`` in the queue, zero-based ``position``,
            ``reviewed_cards`` graded so far and ``remaining_cards`` from the
            current one to the end (0 unless the session is active).
        """
        with self._lock:
            active = self._state is SessionState.ACTIVE
            return {
                "total_cards": len(self._queue),
                "position": self._queue.position,
                "reviewed_cards": self._graded_count,
                "remaining_cards": (
                    len(self._queue) - self._queue.position if active else 0
                ),
            }

    # --- Lifecycle ---

    def initialize(
        self,
        cards: Iterable[Card],
        stored_progress: Optional[SessionProgress] = None,
        now: Optional[datetime] = None,
    ) -> SessionState:
        """
        Resume from ``stored_progress`` when it is still valid, otherwise
        build a fresh queue from ``cards``.

        An empty queue is a valid outcome: the session becomes exhausted with
        reason ``EMPTY_DECK`` when there are no cards at all and
        ``NOTHING_DUE`` when none is due. Calling this on an initialized
        session does nothing; use :meth:`restart` first.
        """
        with self._lock:
            if self._state is not SessionState.UNINITIALIZED:
                logger.debug(
                    f"Session {self.progress_key} already initialized; ignoring."
                )
                return self._state

            cards = list(cards)
            now = ensure_aware(now or self.clock())
            queue: Optional[ReviewQueue] = None

            if stored_progress is not None:
                try:
                    queue = restore_queue(stored_progress, cards)
                    logger.info(
                        f"Resumed session {self.progress_key} at position "
                        f"{queue.position + 1}/{len(queue)}"
                    )
                except ProgressValidationError as e:
                    logger.warning(
                        f"Discarding stored progress for {self.progress_key}: {e}"
                    )
                    self._clear_progress()

            if queue is None:
                queue = build_queue(
                    cards, self.mode, now, shuffled=self._shuffle, rng=self.rng
                )
                logger.info(
                    f"Initialized {self.mode.value} session {self.progress_key} "
                    f"with {len(queue)} of {len(cards)} card(s)"
                )

            self._queue = queue
            self._shuffle = queue.shuffled
            self._graded_count = 0
            self._reset_reveal()

            if queue.is_empty:
                self._state = SessionState.EXHAUSTED
                self._exhaustion_reason = (
                    ExhaustionReason.NOTHING_DUE
                    if cards
                    else ExhaustionReason.EMPTY_DECK
                )
            else:
                self._state = SessionState.ACTIVE
                self._exhaustion_reason = None
                self.persist_progress()
            return self._state

    def restart(self) -> None:
        """Forget stored progress so the next initialize builds afresh."""
        with self._lock:
            self._clear_progress()
            self._queue = ReviewQueue(shuffled=self._shuffle)
            self._state = SessionState.UNINITIALIZED
            self._exhaustion_reason = None
            self._graded_count = 0
            self._reset_reveal()
            logger.info(f"Restarted session {self.progress_key}")

    def reconcile(self, updated_cards: Iterable[Card]) -> int:
        """
        Refresh queued cards from the card store's latest list.

        Queue order, position and membership never change here; cards gone
        from the store stay queued until explicitly deleted.
        """
        with self._lock:
            if self._queue.is_empty:
                return 0
            replaced = self._queue.refresh(updated_cards)
            if replaced:
                logger.debug(
                    f"Reconciled {replaced} queued card(s) in {self.progress_key}"
                )
            return replaced

    # --- Ordering and navigation ---

    def set_shuffle(self, enabled: bool) -> None:
        """
        Shuffle the queue, or restore creation order, keeping the current
        card current. Outside an active session only the preference for the
        next fresh build is recorded.
        """
        with self._lock:
            self._shuffle = enabled
            if self._state is not SessionState.ACTIVE:
                self._queue.shuffled = enabled
                return
            before = self._queue.current
            self._queue.reorder(enabled, self.rng)
            after = self._queue.current
            if before is None or after is None or before.id != after.id:
                self._reset_reveal()
            self.persist_progress()

    def advance(self, direction: Union[Direction, str] = Direction.NEXT) -> bool:
        """Step one card forward or back; returns False at either end."""
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return False
            step = 1 if Direction(direction) is Direction.NEXT else -1
            target = self._queue.position + step
            if not 0 <= target < len(self._queue):
                return False
            self._move_to(target)
            return True

    def next(self) -> bool:
        return self.advance(Direction.NEXT)

    def previous(self) -> bool:
        return self.advance(Direction.PREVIOUS)

    def jump_to(self, fraction: float) -> int:
        """
        Seek to ``floor(fraction * (len - 1))``, e.g. from a progress bar.

        ``fraction`` is clamped to [0, 1]. Returns the resulting position.
        """
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return self._queue.position
            fraction = max(0.0, min(1.0, fraction))
            target = math.floor(fraction * (len(self._queue) - 1))
            if target != self._queue.position:
                self._move_to(target)
            return self._queue.position

    # --- Reveal ---

    def reveal(self) -> bool:
        """
        Show the answer of the current card. Image-occlusion cards disclose
        every mask at once.
        """
        with self._lock:
            card = self.current_card
            if card is None:
                return False
            self._reveal = RevealState.REVEALED
            if isinstance(card.content, ImageOcclusionContent):
                self._visible_occlusions = {
                    rect.id for rect in card.content.occlusions
                }
            return True

    def reveal_region(self, rect_id: str) -> bool:
        """Uncover a single mask of the current image-occlusion card."""
        with self._lock:
            card = self.current_card
            if card is None or not isinstance(
                card.content, ImageOcclusionContent
            ):
                return False
            if rect_id not in {rect.id for rect in card.content.occlusions}:
                logger.debug(f"Unknown occlusion {rect_id} on card {card.id}")
                return False
            self._visible_occlusions.add(rect_id)
            return True

    # --- Grading and deletion ---

    def grade(
        self, quality: int, now: Optional[datetime] = None
    ) -> Optional[Card]:
        """
        Grade the revealed current card and move on.

        Returns:
            The updated card sent to ``on_card_update``, or None when the
            session is not active or the card is not revealed yet.

        Raises:
            ValueError: If ``quality`` is outside the 0-5 scale while a
                revealed card is waiting for its grade.
        """
        with self._lock:
            card = self.current_card
            if card is None or self._reveal is not RevealState.REVEALED:
                return None
            if not MIN_QUALITY <= int(quality) <= MAX_QUALITY:
                raise ValueError(
                    f"Invalid quality: {quality}. "
                    f"Must be {MIN_QUALITY}-{MAX_QUALITY}."
                )

            new_schedule = self.scheduler.compute_next_schedule(
                card.schedule, int(quality), ensure_aware(now or self.clock())
            )
            updated_card = card.with_schedule(new_schedule)
            try:
                self.on_card_update(updated_card)
            except Exception:
                logger.exception(f"Failed to submit review for card {card.id}")
                raise

            self._queue.replace(updated_card)
            self._graded_count += 1
            logger.debug(
                f"Graded card {card.id} q={int(quality)}; next due "
                f"{new_schedule.due_at.isoformat()}"
            )

            if self._queue.is_last:
                self._complete()
            else:
                self._move_to(self._queue.position + 1)
            return updated_card

    def delete(self, card_id: Optional[str] = None) -> bool:
        """
        Ask the card store to delete ``card_id`` (the current card by
        default) and drop it from the queue.
        """
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return False
            if card_id is None:
                card_id = self._queue.current.id

            try:
                self.on_card_delete(card_id)
            except Exception:
                logger.exception(f"Failed to request deletion of card {card_id}")
                raise

            before = self._queue.current
            removed = self._queue.remove(card_id)
            after = self._queue.current
            if before is None or after is None or before.id != after.id:
                self._reset_reveal()
            if not removed:
                logger.debug(f"Deleted card {card_id} was not queued")
                return False

            if self._queue.is_empty:
                self._clear_progress()
                self._state = SessionState.EXHAUSTED
                self._exhaustion_reason = ExhaustionReason.ALL_DELETED
                logger.info(f"Session {self.progress_key} emptied by deletion")
            else:
                self.persist_progress()
            return True

    # --- Progress ---

    def persist_progress(self) -> Optional[SessionProgress]:
        """Send the current snapshot to the progress sink while active."""
        with self._lock:
            if self._state is not SessionState.ACTIVE:
                return None
            snapshot = self._queue.snapshot()
            if self.progress_sink is not None:
                self.progress_sink.save_progress(self.progress_key, snapshot)
            return snapshot

    # --- Internals ---

    def _move_to(self, index: int) -> None:
        self._queue.position = index
        self._reset_reveal()
        self.persist_progress()

    def _reset_reveal(self) -> None:
        self._reveal = RevealState.UNREVEALED
        self._visible_occlusions = set()

    def _clear_progress(self) -> None:
        if self.progress_sink is not None:
            self.progress_sink.clear_progress(self.progress_key)

    def _complete(self) -> None:
        self._clear_progress()
        self._state = SessionState.EXHAUSTED
        self._exhaustion_reason = ExhaustionReason.COMPLETED
        self._reset_reveal()
        logger.info(
            f"Completed session {self.progress_key}: "
            f"{self._graded_count} card(s) graded"
        )
        if self.on_complete is not None:
            self.on_complete()
