# flashstudy/scheduler.py

"""
Defines the BaseScheduler abstract class and the SM2Scheduler, a SuperMemo-2
variant computing a card's next interval and due date from a recall grade.
"""

import logging
import math
from abc import ABC, abstractmethod
import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from .constants import (
    DEFAULT_EASINESS_FACTOR,
    FIRST_INTERVAL_DAYS,
    LAPSE_INTERVAL_DAYS,
    MAX_QUALITY,
    MIN_EASINESS_FACTOR,
    PASSING_QUALITY,
    SECOND_INTERVAL_DAYS,
)
from .models import ScheduleState, ensure_aware

logger = logging.getLogger(__name__)


class BaseScheduler(ABC):
    """
    Abstract base class for all schedulers in flashstudy.
    """

    @abstractmethod
    def compute_next_schedule(
        self,
        current: ScheduleState,
        quality: int,
        now: datetime.datetime,
    ) -> ScheduleState:
        """
        Computes the next schedule of a card from its current one and a grade.

        Args:
            current: The card's schedule before this review.
            quality: Self-reported recall grade on the 0-5 scale.
            now: Timestamp of the review; the new due date is anchored on it.

        Returns:
            A new ScheduleState. The input is never modified.
        """
        pass

    def initial_schedule(self, now: datetime.datetime) -> ScheduleState:
        """Schedule given to a new or reset card, due at ``now``."""
        return ScheduleState.initial(now)


class SM2SchedulerConfig(BaseModel):
    """Configuration for the SM-2 Scheduler."""

    initial_easiness_factor: float = Field(
        default=DEFAULT_EASINESS_FACTOR, ge=MIN_EASINESS_FACTOR
    )
    min_easiness_factor: float = Field(
        default=MIN_EASINESS_FACTOR, ge=MIN_EASINESS_FACTOR
    )
    passing_quality: int = Field(default=PASSING_QUALITY, ge=0, le=MAX_QUALITY)
    first_interval: int = Field(default=FIRST_INTERVAL_DAYS, ge=1)
    second_interval: int = Field(default=SECOND_INTERVAL_DAYS, ge=1)
    lapse_interval: int = Field(default=LAPSE_INTERVAL_DAYS, ge=0)

    @model_validator(mode="after")
    def check_easiness_floor(self) -> "SM2SchedulerConfig":
        if self.initial_easiness_factor < self.min_easiness_factor:
            raise ValueError(
                "initial_easiness_factor must not be below min_easiness_factor"
            )
        return self


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def add_calendar_days(
    moment: datetime.datetime, days: int
) -> datetime.datetime:
    """
    Move ``moment`` forward by whole calendar days.

    Python adds a timedelta to the wall-clock fields of an aware datetime,
    so the time of day is kept even across a DST change in ``moment``'s zone.
    """
    return moment + datetime.timedelta(days=days)


class SM2Scheduler(BaseScheduler):
    """
    SuperMemo-2 scheduler.

    A pass (quality >= 3) grows the interval 1 -> 6 -> interval * EF; a fail
    resets repetition and sets the interval to one day. The easiness factor
    is updated on every review and clamped to a floor of 1.3.
    """

    def __init__(self, config: Optional[SM2SchedulerConfig] = None):
        if config is None:
            config = SM2SchedulerConfig()
        self.config = config

    def initial_schedule(self, now: datetime.datetime) -> ScheduleState:
        return ScheduleState(
            interval=0,
            repetition=0,
            easiness_factor=self.config.initial_easiness_factor,
            due_at=now,
        )

    def next_easiness_factor(self, easiness_factor: float, quality: int) -> float:
        miss = MAX_QUALITY - quality
        updated = easiness_factor + (0.1 - miss * (0.08 + miss * 0.02))
        return max(updated, self.config.min_easiness_factor)

    def compute_next_schedule(
        self,
        current: ScheduleState,
        quality: int,
        now: datetime.datetime,
    ) -> ScheduleState:
        if quality >= self.config.passing_quality:
            if current.repetition == 0:
                interval = self.config.first_interval
            elif current.repetition == 1:
                interval = self.config.second_interval
            else:
                interval = round_half_up(
                    current.interval * current.easiness_factor
                )
            repetition = current.repetition + 1
        else:
            repetition = 0
            interval = self.config.lapse_interval

        easiness_factor = self.next_easiness_factor(
            current.easiness_factor, quality
        )
        due_at = add_calendar_days(ensure_aware(now), interval)

        logger.debug(
            f"SM-2 q={quality}: interval {current.interval} -> {interval}, "
            f"repetition {current.repetition} -> {repetition}, "
            f"EF {current.easiness_factor:.2f} -> {easiness_factor:.2f}"
        )

        return ScheduleState(
            interval=interval,
            repetition=repetition,
            easiness_factor=easiness_factor,
            due_at=due_at,
        )


_default_scheduler = SM2Scheduler()


def compute_next_schedule(
    current: ScheduleState, quality: int, now: datetime.datetime
) -> ScheduleState:
    """Compute the next schedule with the default SM-2 configuration."""
    return _default_scheduler.compute_next_schedule(current, quality, now)


def is_due(schedule: ScheduleState, now: datetime.datetime) -> bool:
    """A card is due when its due date is at or before ``now``."""
    return schedule.is_due(now)
