"""
Data models for cards, their review schedule and resumable session progress.
"""

from __future__ import annotations

import uuid
from enum import Enum, IntEnum
from datetime import datetime, timezone
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import DEFAULT_EASINESS_FACTOR, MIN_EASINESS_FACTOR


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(ts: datetime) -> datetime:
    """Assumes UTC for a naive datetime; aware values keep their zone."""
    if ts.tzinfo is None or ts.tzinfo.utcoffset(ts) is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class Rating(IntEnum):
    """
    The four recall grades offered to the learner.

    The scale runs 0-5; 0 and 2 are valid scheduler input but no button
    produces them.
    """

    Again = 1
    Hard = 3
    Good = 4
    Easy = 5


class StudyMode(str, Enum):
    """Which cards of a deck make it into a review queue."""

    STANDARD = "standard"
    CRAM = "cram"


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"


class RevealState(str, Enum):
    UNREVEALED = "unrevealed"
    REVEALED = "revealed"


class ExhaustionReason(str, Enum):
    """
    Why a session has nothing left to show.

    EMPTY_DECK and NOTHING_DUE must stay distinguishable: the first invites
    the learner to create a card, the second tells them they are caught up.
    """

    EMPTY_DECK = "empty_deck"
    NOTHING_DUE = "nothing_due"
    COMPLETED = "completed"
    ALL_DELETED = "all_deleted"


class Direction(str, Enum):
    NEXT = "next"
    PREVIOUS = "previous"


class ScheduleState(BaseModel):
    """
    Per-card SM-2 scheduling data.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    interval: int = Field(
        default=0,
        ge=0,
        description="Days until the card is due again.",
    )
    repetition: int = Field(
        default=0,
        ge=0,
        description="Count of consecutive passing grades.",
    )
    easiness_factor: float = Field(
        default=DEFAULT_EASINESS_FACTOR,
        ge=MIN_EASINESS_FACTOR,
        description="Multiplier governing interval growth (floor 1.3).",
    )
    due_at: datetime = Field(
        default_factory=utc_now,
        description="Absolute timestamp at which the card becomes due.",
    )

    @field_validator("due_at")
    @classmethod
    def assume_utc_when_naive(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @classmethod
    def initial(cls, now: Optional[datetime] = None) -> "ScheduleState":
        """Schedule of a card that has never been reviewed, due immediately."""
        return cls(
            interval=0,
            repetition=0,
            easiness_factor=DEFAULT_EASINESS_FACTOR,
            due_at=now or utc_now(),
        )

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= ensure_aware(now)


class OcclusionRect(BaseModel):
    """A masked rectangle on an image, in percent of the image size."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    x: float = Field(..., ge=0, le=100)
    y: float = Field(..., ge=0, le=100)
    width: float = Field(..., ge=0, le=100)
    height: float = Field(..., ge=0, le=100)


class BasicContent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["basic"] = "basic"
    front: str = Field(..., description="Question text (Markdown).")
    back: str = Field(..., description="Answer text (Markdown).")


class ClozeContent(BaseModel):
    """
    Shared cloze text plus the deletion index this physical card reveals.

    Deletions are written ``{{c1::answer}}`` or ``{{c1::answer::hint}}``.
    """

    model_config = ConfigDict(extra="forbid")

    kind: Literal["cloze"] = "cloze"
    text: str
    cloze_index: int = Field(..., ge=1)


class ImageOcclusionContent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    kind: Literal["image_occlusion"] = "image_occlusion"
    image: str = Field(..., description="Image URL or data URI.")
    occlusions: List[OcclusionRect] = Field(default_factory=list)
    notes: str = Field(default="", description="Extra notes shown on reveal.")

    @field_validator("occlusions")
    @classmethod
    def validate_unique_ids(
        cls, occlusions: List[OcclusionRect]
    ) -> List[OcclusionRect]:
        seen = set()
        for rect in occlusions:
            if rect.id in seen:
                raise ValueError(f"Duplicate occlusion id '{rect.id}'.")
            seen.add(rect.id)
        return occlusions


CardContent = Annotated[
    Union[BasicContent, ClozeContent, ImageOcclusionContent],
    Field(discriminator="kind"),
]


class Card(BaseModel):
    """
    A single reviewable card.

    Cards belong to the external card store; the session engine only reads
    them and hands updated copies back through callbacks.
    """

    model_config = ConfigDict(validate_assignment=True, extra="forbid")

    id: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Stable card identity.",
    )
    deck_id: str = Field(..., min_length=1)
    content: CardContent
    visual_aid: Optional[str] = Field(
        default=None,
        description="Optional illustration shown alongside the content.",
    )
    schedule: ScheduleState = Field(default_factory=ScheduleState)
    created_at: datetime = Field(
        default_factory=utc_now,
        description="Creation timestamp, the default ordering key.",
    )

    @field_validator("created_at")
    @classmethod
    def assume_utc_when_naive(cls, value: datetime) -> datetime:
        return ensure_aware(value)

    @property
    def kind(self) -> str:
        return self.content.kind

    def is_due(self, now: datetime) -> bool:
        return self.schedule.is_due(now)

    def with_schedule(self, schedule: ScheduleState) -> "Card":
        """Return a copy of this card carrying ``schedule``."""
        return self.model_copy(update={"schedule": schedule})


class SessionProgress(BaseModel):
    """
    Resumable snapshot of a review session.

    Stored by an external progress store and possibly written by another
    code revision, so it is validated against the live card set before use.
    """

    model_config = ConfigDict(extra="ignore")

    card_ids: List[str] = Field(default_factory=list)
    position: int = Field(default=0, ge=0)
    shuffled: bool = False
