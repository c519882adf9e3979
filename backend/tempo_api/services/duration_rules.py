"""Scheduling duration rules."""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import List, Tuple

from tempo_api.api.schemas.session import WORK, DurationSuggestion, StoryBlock
from tempo_api.core.config import Settings


@dataclass(frozen=True)
class SchedulingConfig:
    """Duration constraints applied to every generated session (minutes)."""

    min_task_duration: int = 5
    max_task_duration: int = 180
    short_break: int = 5
    long_break: int = 15
    debrief: int = 5
    block_size: int = 5
    max_work_without_break: int = 90
    # Work minutes a short break takes off the continuous-work counter,
    # regardless of the break's own length.
    short_break_credit: int = 25
    max_session_minutes: int = 24 * 60

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulingConfig":
        return cls(
            min_task_duration=settings.schedule_min_task_duration,
            max_task_duration=settings.schedule_max_task_duration,
            short_break=settings.schedule_short_break,
            long_break=settings.schedule_long_break,
            debrief=settings.schedule_debrief,
            block_size=settings.schedule_block_size,
            max_work_without_break=settings.schedule_max_work_without_break,
            short_break_credit=settings.schedule_short_break_credit,
            max_session_minutes=settings.schedule_max_session_minutes,
        )

    def with_overrides(self, **overrides: int) -> "SchedulingConfig":
        return replace(self, **overrides)

    def valid_duration_range(self) -> Tuple[int, int]:
        """Acceptable task length once surrounding breaks are accounted for."""
        return (
            self.min_task_duration + self.short_break,
            self.max_task_duration + self.long_break * 2,
        )

    def is_valid_task_duration(self, duration: int) -> bool:
        return self.min_task_duration <= duration <= self.max_task_duration


DEFAULT_SCHEDULING_CONFIG = SchedulingConfig()


def duration_suggestions(block: StoryBlock, config: SchedulingConfig) -> List[DurationSuggestion]:
    """Advice for work tasks whose length falls outside the configured task range."""
    suggestions: List[DurationSuggestion] = []
    for box in block.time_boxes:
        if box.type != WORK:
            continue
        for task in box.tasks:
            if task.duration > config.max_task_duration:
                parts = math.ceil(task.duration / config.max_task_duration)
                suggestions.append(
                    DurationSuggestion(
                        type="split",
                        task=task.title,
                        message=f"Consider splitting into {parts} parts of at most {config.max_task_duration} minutes",
                        details={
                            "duration": task.duration,
                            "maxDuration": config.max_task_duration,
                            "suggestedParts": parts,
                        },
                    )
                )
            elif 0 < task.duration < config.min_task_duration:
                suggestions.append(
                    DurationSuggestion(
                        type="extend",
                        task=task.title,
                        message=f"Tasks shorter than {config.min_task_duration} minutes are hard to time-box",
                        details={"duration": task.duration, "minDuration": config.min_task_duration},
                    )
                )
    return suggestions
