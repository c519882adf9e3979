"""End-to-end session creation: generate, repair, and reconcile a session plan."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from tempo_api.api.schemas.session import (
    WORK,
    CreateSessionRequest,
    SessionPlan,
    TaskPayload,
    TimeBoxTask,
)
from tempo_api.core.config import Settings
from tempo_api.core.exceptions import (
    GenerationServiceError,
    SchedulingError,
    is_overloaded_error,
)
from tempo_api.observability.tracing import trace
from tempo_api.services.break_insertion import (
    find_work_overrun,
    format_time,
    insert_missing_breaks,
    parse_time,
)
from tempo_api.services.completeness import validate_all_tasks_included
from tempo_api.services.duration_calculator import calculate_duration_summary, calculate_total_duration
from tempo_api.services.duration_rules import SchedulingConfig, duration_suggestions
from tempo_api.services.plan_generator import PlanGenerator
from tempo_api.services.plan_parser import parse_session_plan
from tempo_api.services.retry_policy import RetryPolicy, Sleep
from tempo_api.services.text_completion import TextCompletionPort
from tempo_api.services.title_matching import find_original_story, is_break_block

logger = logging.getLogger(__name__)


class SchedulingStage(str, Enum):
    VALIDATING_INPUT = "validating-input"
    GENERATING = "generating"
    REPAIRING_JSON = "repairing-json"
    STRUCTURAL_CHECK = "structural-check"
    BREAK_INSERTION = "break-insertion"
    DURATION_REVALIDATION = "duration-revalidation"
    COMPLETENESS_CHECK = "completeness-check"
    DONE = "done"
    FAILED = "failed"


STAGE_ORDER = list(SchedulingStage)


class SessionScheduler:
    """
    Owns one session plan for the lifetime of a single request.

    Stages only move forward; the first error moves the scheduler to
    ``failed`` and propagates as a SchedulingError.
    """

    def __init__(
        self,
        completion: TextCompletionPort,
        settings: Settings,
        *,
        config: Optional[SchedulingConfig] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[Sleep] = None,
        now: Optional[datetime] = None,
    ):
        self.settings = settings
        self.config = config or SchedulingConfig.from_settings(settings)
        self.generator = PlanGenerator(
            completion,
            settings,
            self.config,
            retry_policy or RetryPolicy.from_settings(settings),
            sleep=sleep,
        )
        self.now = now
        self.stage = SchedulingStage.VALIDATING_INPUT
        self.error: Optional[SchedulingError] = None

    def _advance(self, stage: SchedulingStage) -> None:
        if STAGE_ORDER.index(stage) < STAGE_ORDER.index(self.stage):
            raise RuntimeError(f"Cannot move from {self.stage.value} back to {stage.value}")
        logger.debug("Session stage %s -> %s", self.stage.value, stage.value)
        self.stage = stage

    def _fail(self, error: SchedulingError) -> SchedulingError:
        logger.error("Session creation failed at %s: %s (%s)", self.stage.value, error.message, error.code)
        self.error = error
        self.stage = SchedulingStage.FAILED
        return error

    @property
    def generation_attempts(self) -> int:
        return self.generator.attempts

    async def create_session(
        self,
        request: CreateSessionRequest,
        *,
        request_id: Optional[str] = None,
    ) -> SessionPlan:
        try:
            plan = await self._run(request, request_id)
        except SchedulingError as exc:
            raise self._fail(exc)
        except Exception:
            self.stage = SchedulingStage.FAILED
            raise
        self._advance(SchedulingStage.DONE)
        return plan

    async def _run(self, request: CreateSessionRequest, request_id: Optional[str]) -> SessionPlan:
        self._advance(SchedulingStage.VALIDATING_INPUT)
        self._validate_input(request)

        self._advance(SchedulingStage.GENERATING)
        text = await self._generate(request, request_id)

        try:
            self._advance(SchedulingStage.REPAIRING_JSON)
            with trace("session.parse", request_id=request_id):
                plan = parse_session_plan(text)

            self._advance(SchedulingStage.STRUCTURAL_CHECK)
            logger.debug("Parsed %s story block(s)", len(plan.story_blocks))

            self._advance(SchedulingStage.BREAK_INSERTION)
            insert_missing_breaks(plan.story_blocks, self.config, now=self.now)

            self._advance(SchedulingStage.DURATION_REVALIDATION)
            self._revalidate_durations(plan, request)

            self._advance(SchedulingStage.COMPLETENESS_CHECK)
            self._check_completeness(plan, request)
        except SchedulingError:
            raise
        except Exception as exc:
            logger.exception("Unexpected error while processing session plan")
            raise SchedulingError(
                "Failed to process session plan",
                "PROCESSING_ERROR",
                {"message": str(exc), "stage": self.stage.value},
            ) from exc
        return plan

    def _validate_input(self, request: CreateSessionRequest) -> None:
        total_duration = sum(story.estimated_duration for story in request.stories)
        logger.debug("Received %s stories (%s min) for session creation", len(request.stories), total_duration)
        if request.story_mapping:
            logger.debug("Received mapping data for %s possible story titles", len(request.story_mapping))
        if total_duration > self.config.max_session_minutes:
            raise SchedulingError(
                "Total session duration exceeds maximum limit",
                "DURATION_EXCEEDED",
                {"totalDuration": total_duration, "maxDuration": self.config.max_session_minutes},
            )

    async def _generate(self, request: CreateSessionRequest, request_id: Optional[str]) -> str:
        try:
            return await self.generator.generate(request.stories, request.start_time, request_id=request_id)
        except GenerationServiceError as exc:
            raise SchedulingError(str(exc), exc.code, {"message": str(exc)}) from exc
        except Exception as exc:
            if is_overloaded_error(exc):
                raise SchedulingError(
                    "Service is temporarily overloaded, please try again",
                    "OVERLOADED",
                    {"attempts": self.generation_attempts},
                ) from exc
            raise

    def _revalidate_durations(self, plan: SessionPlan, request: CreateSessionRequest) -> None:
        for block in plan.story_blocks:
            summary = calculate_duration_summary(block.time_boxes)
            logger.debug(
                "Validating block %r: work=%s break=%s total=%s",
                block.title,
                summary.work_duration,
                summary.break_duration,
                summary.total_duration,
            )

            story = find_original_story(block.title, request.stories, request.story_mapping)
            if story is None:
                raise SchedulingError(
                    "Story not found in original stories",
                    "UNKNOWN_STORY",
                    {"block": block.title},
                )
            story.estimated_duration = summary.work_duration or summary.total_duration

            expected_total = summary.work_duration + summary.break_duration
            if summary.total_duration != expected_total and not (
                summary.is_break_only and summary.total_duration == summary.break_duration
            ):
                raise SchedulingError(
                    "Story block duration calculation error",
                    "BLOCK_DURATION_ERROR",
                    {"block": block.title, **summary.to_dict(), "expectedTotal": expected_total},
                )
            block.total_duration = summary.total_duration

            overrun = find_work_overrun(block.time_boxes, self.config)
            if overrun is not None:
                logger.error(
                    "Block %r exceeded max work time after break insertion: %s",
                    block.title,
                    [(box.type, box.duration) for box in block.time_boxes],
                )
                raise SchedulingError(
                    "Too much work time without a substantial break",
                    "EXCESSIVE_WORK_TIME",
                    {
                        "block": block.title,
                        "timeBox": overrun.start_time,
                        "consecutiveWorkTime": overrun.consecutive_work_minutes,
                        "maxAllowed": self.config.max_work_without_break,
                    },
                )

            suggestions = duration_suggestions(block, self.config)
            block.suggestions = suggestions or None

        self._refresh_summary(plan)

    def _refresh_summary(self, plan: SessionPlan) -> None:
        calculated = sum(calculate_total_duration(block.time_boxes) for block in plan.story_blocks)
        if calculated != plan.summary.total_duration:
            logger.debug("Reported total %s min, calculated %s min", plan.summary.total_duration, calculated)
        plan.summary.total_duration = calculated
        plan.summary.total_sessions = len(plan.story_blocks)

        latest_end: Optional[datetime] = None
        for block in plan.story_blocks:
            for box in block.time_boxes:
                start = parse_time(box.start_time)
                if start is None:
                    continue
                end = start + timedelta(minutes=box.duration)
                if latest_end is None or end > latest_end:
                    latest_end = end
        if latest_end is not None:
            plan.summary.end_time = format_time(latest_end)

    def _check_completeness(self, plan: SessionPlan, request: CreateSessionRequest) -> None:
        scheduled: List[TimeBoxTask] = []
        for block in plan.story_blocks:
            if is_break_block(block.title, request.stories, request.story_mapping):
                logger.debug("Skipping break block %r during task validation", block.title)
                continue
            scheduled.extend(task for box in block.time_boxes if box.type == WORK for task in box.tasks)

        returned_titles = {block.title.lower() for block in plan.story_blocks}
        missing_stories = [story.title for story in request.stories if story.title.lower() not in returned_titles]
        if missing_stories:
            logger.warning("AI response is missing entire stories: %s", ", ".join(missing_stories))

        original_tasks: List[TaskPayload] = [task for story in request.stories for task in story.tasks]
        result = validate_all_tasks_included(original_tasks, scheduled)
        logger.debug("Scheduled %s of %s tasks", result.scheduled_count, result.original_count)
        if result.is_missing_tasks:
            logger.error("Missing tasks in schedule: %s", result.missing_tasks)
            raise SchedulingError(
                "Some tasks are missing from the schedule",
                "MISSING_TASKS",
                result.to_details(),
            )

