"""Flashstudy - SM-2 scheduling and review sessions for flashcard decks."""

from .models import (
    BasicContent,
    Card,
    ClozeContent,
    Direction,
    ExhaustionReason,
    ImageOcclusionContent,
    OcclusionRect,
    Rating,
    RevealState,
    ScheduleState,
    SessionProgress,
    SessionState,
    StudyMode,
)
from .scheduler import SM2Scheduler, SM2SchedulerConfig, compute_next_schedule
from .review_session import ReviewSession
from .review_manager import ReviewSessionManager
from .stores import InMemoryCardStore, InMemoryProgressStore

__all__ = [
    "BasicContent",
    "Card",
    "ClozeContent",
    "Direction",
    "ExhaustionReason",
    "ImageOcclusionContent",
    "OcclusionRect",
    "Rating",
    "RevealState",
    "ScheduleState",
    "SessionProgress",
    "SessionState",
    "StudyMode",
    "SM2Scheduler",
    "SM2SchedulerConfig",
    "compute_next_schedule",
    "ReviewSession",
    "ReviewSessionManager",
    "InMemoryCardStore",
    "InMemoryProgressStore",
]
