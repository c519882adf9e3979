"""Check that every submitted task made it into the generated schedule."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

from tempo_api.api.schemas.session import TaskPayload, TimeBoxTask
from tempo_api.services.title_matching import base_title, is_break_title

logger = logging.getLogger(__name__)


@dataclass
class CompletenessResult:
    is_missing_tasks: bool
    missing_tasks: List[str] = field(default_factory=list)
    scheduled_count: int = 0
    original_count: int = 0

    def to_details(self) -> Dict[str, Any]:
        return {
            "isMissingTasks": self.is_missing_tasks,
            "missingTasks": self.missing_tasks,
            "scheduledCount": self.scheduled_count,
            "originalCount": self.original_count,
        }


class TaskIdentityIndex:
    """
    Many-titles-to-one-id index over the submitted tasks.

    Split parts share one id, so an id may carry several variant titles. Two
    distinct ids may also share a title; title lookups then hand out the ids
    in submission order.
    """

    def __init__(self, tasks: Sequence[TaskPayload]):
        self.ids_in_order: List[str] = []
        self.titles_by_id: Dict[str, Set[str]] = {}
        self.ids_by_title: Dict[str, List[str]] = {}
        self.report_title_by_id: Dict[str, str] = {}
        for task in tasks:
            if task.id not in self.titles_by_id:
                self.ids_in_order.append(task.id)
                self.titles_by_id[task.id] = set()
                self.report_title_by_id[task.id] = task.original_title or task.title
            variants = [task.title, task.original_title]
            if task.split_info and task.split_info.original_title:
                variants.append(task.split_info.original_title)
            for variant in variants:
                if variant:
                    self._register(task.id, variant)

    def _register(self, task_id: str, title: str) -> None:
        key = title.strip().lower()
        self.titles_by_id[task_id].add(key)
        ids = self.ids_by_title.setdefault(key, [])
        if task_id not in ids:
            ids.append(task_id)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.titles_by_id

    def resolve_title(self, title: Optional[str], accounted: Set[str]) -> Optional[str]:
        if not title:
            return None
        ids = self.ids_by_title.get(title.strip().lower())
        if not ids:
            return None
        for task_id in ids:
            if task_id not in accounted:
                return task_id
        return ids[0]


def validate_all_tasks_included(
    original_tasks: Sequence[TaskPayload],
    scheduled_tasks: Sequence[TimeBoxTask],
) -> CompletenessResult:
    index = TaskIdentityIndex(original_tasks)

    accounted: Set[str] = set()
    emitted_count = 0
    for task in scheduled_tasks:
        matched = _resolve_task(index, task, accounted)
        if matched is None and is_break_title(task.title):
            # Break placeholder with no submitted counterpart.
            continue
        emitted_count += 1
        if matched is None:
            logger.debug("Scheduled task %r matches no submitted task", task.title)
        else:
            accounted.add(matched)

    missing: List[str] = []
    for task_id in index.ids_in_order:
        if task_id in accounted:
            continue
        report_title = index.report_title_by_id[task_id]
        if report_title not in missing:
            missing.append(report_title)

    return CompletenessResult(
        is_missing_tasks=bool(missing),
        missing_tasks=missing,
        scheduled_count=emitted_count,
        original_count=len(original_tasks),
    )


def _resolve_task(index: TaskIdentityIndex, task: TimeBoxTask, accounted: Set[str]) -> Optional[str]:
    if task.id and task.id in index:
        return task.id
    origin = (task.split_info.original_title if task.split_info else None) or task.original_title
    for candidate in (origin, task.title, base_title(task.title)):
        matched = index.resolve_title(candidate, accounted)
        if matched:
            return matched
    return None
