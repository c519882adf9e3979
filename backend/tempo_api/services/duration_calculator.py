"""Duration arithmetic over time-boxed segments."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable

from tempo_api.api.schemas.session import BREAK_TYPES, WORK, TimeBox


@dataclass(frozen=True)
class DurationSummary:
    work_duration: int
    break_duration: int
    total_duration: int

    @property
    def is_break_only(self) -> bool:
        return self.work_duration == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workDuration": self.work_duration,
            "breakDuration": self.break_duration,
            "totalDuration": self.total_duration,
        }


def calculate_duration_summary(time_boxes: Iterable[TimeBox]) -> DurationSummary:
    work = 0
    breaks = 0
    total = 0
    for box in time_boxes:
        total += box.duration
        if box.type == WORK:
            work += box.duration
        elif box.type in BREAK_TYPES:
            breaks += box.duration
    return DurationSummary(work_duration=work, break_duration=breaks, total_duration=total)


def calculate_total_duration(time_boxes: Iterable[TimeBox]) -> int:
    return sum(box.duration for box in time_boxes)
