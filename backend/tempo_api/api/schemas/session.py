"""Schemas for session creation requests and generated session plans."""
from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TaskCategory = Literal["focus", "learning", "review", "research", "social"]
StoryType = Literal["timeboxed", "flexible", "milestone"]

WORK = "work"
SHORT_BREAK = "short-break"
LONG_BREAK = "long-break"
DEBRIEF = "debrief"
BREAK_TYPES = frozenset({SHORT_BREAK, LONG_BREAK})


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SplitInfo(CamelModel):
    original_title: Optional[str] = None
    is_parent: bool = False
    part_number: Optional[int] = None
    total_parts: Optional[int] = None


class TaskBreak(CamelModel):
    after: int
    duration: int
    reason: str


class TaskPayload(CamelModel):
    """A task submitted by the user."""

    id: str
    title: str
    duration: int = Field(..., gt=0, description="Estimated minutes needed.")
    task_category: TaskCategory
    project_type: Optional[str] = None
    is_frog: bool
    is_flexible: bool
    original_title: Optional[str] = None
    split_info: Optional[SplitInfo] = None
    suggested_breaks: List[TaskBreak] = Field(default_factory=list)


class StoryPayload(CamelModel):
    title: str
    summary: str
    icon: str
    estimated_duration: int = Field(..., ge=0)
    type: StoryType
    project_type: str
    category: str
    tasks: List[TaskPayload]


class StoryMappingPayload(CamelModel):
    possible_title: str
    original_title: str


class CreateSessionRequest(CamelModel):
    stories: List[StoryPayload]
    start_time: str
    story_mapping: Optional[List[StoryMappingPayload]] = None


class TimeBoxTask(CamelModel):
    """A task as emitted by the generator inside a work segment."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    title: str
    duration: int = 0
    task_category: Optional[str] = None
    project_type: Optional[str] = None
    is_frog: Optional[bool] = None
    original_title: Optional[str] = None
    split_info: Optional[SplitInfo] = None
    suggested_breaks: List[TaskBreak] = Field(default_factory=list)


class TimeBox(CamelModel):
    model_config = ConfigDict(extra="allow")

    type: str
    duration: int = 0
    tasks: List[TimeBoxTask] = Field(default_factory=list)
    start_time: Optional[str] = None
    end_time: Optional[str] = None


class DurationSuggestion(CamelModel):
    type: str
    task: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class StoryBlock(CamelModel):
    model_config = ConfigDict(extra="allow")

    title: str
    summary: str = ""
    icon: str = ""
    time_boxes: List[TimeBox] = Field(default_factory=list)
    total_duration: int = 0
    suggestions: Optional[List[DurationSuggestion]] = None


class SessionSummary(CamelModel):
    total_sessions: int = 0
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    total_duration: int = 0


class SessionPlan(CamelModel):
    summary: SessionSummary
    story_blocks: List[StoryBlock]


class ErrorResponse(BaseModel):
    error: str
    code: str
    details: Optional[Any] = None
