"""Insert long breaks wherever continuous work would exceed the configured limit."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from tempo_api.api.schemas.session import LONG_BREAK, SHORT_BREAK, WORK, StoryBlock, TimeBox
from tempo_api.services.duration_calculator import calculate_duration_summary
from tempo_api.services.duration_rules import SchedulingConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkOverrun:
    index: int
    start_time: Optional[str]
    consecutive_work_minutes: int


def parse_time(value: Optional[str], *, now: Optional[datetime] = None) -> Optional[datetime]:
    """Parse an ISO timestamp or an ``HH:MM`` clock time (taken on ``now``'s day)."""
    if not value:
        return None
    text = value.strip()
    if "T" in text or text.endswith("Z"):
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    parts = text.split(":")
    if len(parts) >= 2:
        try:
            hour, minute = int(parts[0]), int(parts[1])
            base = now or datetime.now(timezone.utc)
            return base.replace(hour=hour, minute=minute, second=0, microsecond=0)
        except ValueError:
            return None
    return None


def format_time(value: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a ``Z`` suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def advance_work_counter(consecutive: int, box: TimeBox, config: SchedulingConfig) -> int:
    if box.type == WORK:
        return consecutive + box.duration
    if box.type == LONG_BREAK:
        return 0
    if box.type == SHORT_BREAK:
        return max(0, consecutive - config.short_break_credit)
    return consecutive


def insert_missing_breaks(
    blocks: List[StoryBlock],
    config: SchedulingConfig,
    *,
    now: Optional[datetime] = None,
) -> List[StoryBlock]:
    """
    Walk each block once, inserting a long break before any work segment that
    would push continuous work past ``config.max_work_without_break``.

    Start times are re-laid contiguously from the block's first segment.
    Blocks are modified in place and the same list is returned.
    """
    for block in blocks:
        clock = now or datetime.now(timezone.utc)
        if block.time_boxes:
            first_start = parse_time(block.time_boxes[0].start_time, now=clock)
            if first_start is None and block.time_boxes[0].start_time:
                logger.warning(
                    "Could not parse start time %r for block %r; using current time",
                    block.time_boxes[0].start_time,
                    block.title,
                )
            clock = first_start or clock

        rebuilt: List[TimeBox] = []
        consecutive = 0
        inserted = 0
        for box in block.time_boxes:
            projected = consecutive + box.duration
            if box.type == WORK and projected > config.max_work_without_break and consecutive > 0:
                label = box.tasks[0].title if box.tasks else "unknown"
                logger.debug(
                    "Inserting break before %r at %s (would reach %s min)",
                    label,
                    format_time(clock),
                    projected,
                )
                rebuilt.append(
                    TimeBox(
                        type=LONG_BREAK,
                        duration=config.long_break,
                        tasks=[],
                        start_time=format_time(clock),
                    )
                )
                clock += timedelta(minutes=config.long_break)
                consecutive = 0
                inserted += 1

            box.start_time = format_time(clock)
            clock += timedelta(minutes=box.duration)
            if box.end_time is not None:
                box.end_time = format_time(clock)
            rebuilt.append(box)
            consecutive = advance_work_counter(consecutive, box, config)

        if inserted:
            logger.info("Inserted %s break(s) into block %r", inserted, block.title)
        block.time_boxes = rebuilt
        block.total_duration = calculate_duration_summary(block.time_boxes).total_duration

    return blocks


def find_work_overrun(time_boxes: Sequence[TimeBox], config: SchedulingConfig) -> Optional[WorkOverrun]:
    """Return the first segment where continuous work exceeds the limit, if any."""
    consecutive = 0
    for index, box in enumerate(time_boxes):
        consecutive = advance_work_counter(consecutive, box, config)
        if box.type == WORK:
            if consecutive > config.max_work_without_break * 0.9:
                logger.debug(
                    "Approaching max work time: %s/%s min",
                    consecutive,
                    config.max_work_without_break,
                )
            if consecutive > config.max_work_without_break:
                return WorkOverrun(index=index, start_time=box.start_time, consecutive_work_minutes=consecutive)
    return None
