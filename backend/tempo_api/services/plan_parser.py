"""Repair and parse free-text generator output into a SessionPlan."""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from tempo_api.api.schemas.session import SessionPlan
from tempo_api.core.exceptions import SchedulingError

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_ICON = "📋"
TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
MISSING_VALUE_RE = re.compile(r":\s*([}\],])")


def extract_json_span(text: str) -> str:
    """
    Return the first top-level object, from its ``{`` to the brace that closes it.

    Braces inside strings are ignored, as is any prose after the object. When
    the object never closes (output cut off mid-object) the span runs to the
    end of the text so the truncation repair sees it.
    """
    start = text.find("{")
    if start < 0:
        return text.strip()
    candidate = text[start:]
    closed_at = _scan(candidate)[2]
    if closed_at is not None:
        return candidate[:closed_at]
    return candidate.rstrip()


def _scan(text: str) -> tuple[List[str], bool, Optional[int]]:
    """Open brackets, whether the text ends inside a string, and where the first value closed."""
    stack: List[str] = []
    in_string = False
    escaped = False
    closed_at: Optional[int] = None
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            stack.append("}")
        elif char == "[":
            stack.append("]")
        elif char in "}]" and stack and stack[-1] == char:
            stack.pop()
            if not stack and closed_at is None:
                closed_at = index + 1
    return stack, in_string, closed_at


def looks_truncated(json_text: str) -> bool:
    stripped = json_text.rstrip()
    if stripped.endswith(",") or stripped.endswith(":"):
        return True
    if not stripped.endswith("}"):
        return True
    return stripped.count("{") > stripped.count("}")


def close_truncated_json(json_text: str) -> str:
    """Best-effort completion of JSON that was cut off mid-stream."""
    stack, in_string, _ = _scan(json_text)
    repaired = json_text.rstrip()
    if in_string:
        repaired += '"'
    if repaired.endswith(":"):
        repaired += " null"
    repaired = re.sub(r",\s*$", "", repaired)
    return repaired + "".join(reversed(stack))


def lenient_fix(json_text: str) -> str:
    """Drop trailing commas and fill empty values with null."""
    fixed = TRAILING_COMMA_RE.sub(r"\1", json_text)
    return MISSING_VALUE_RE.sub(r": null\1", fixed)


def _parse_error(message: str, error: Exception | str, response: str) -> SchedulingError:
    return SchedulingError(
        message,
        "JSON_PARSE_ERROR",
        {"error": str(error), "response": response},
    )


def load_plan_json(text: str) -> Any:
    json_text = extract_json_span(text)

    if looks_truncated(json_text):
        logger.warning("JSON appears to be truncated or malformed")
        if '"storyBlocks"' in json_text and '"summary"' in json_text:
            logger.warning("Attempting to reconstruct truncated JSON with the expected structure")
            json_text = close_truncated_json(json_text)
        else:
            raise _parse_error(
                "Failed to parse AI response as JSON",
                "JSON structure is too damaged to repair automatically",
                text,
            )

    try:
        return json.loads(json_text)
    except json.JSONDecodeError as initial_error:
        logger.warning("Standard JSON parsing failed, attempting repair: %s", initial_error)

    try:
        return json.loads(lenient_fix(json_text))
    except json.JSONDecodeError as exc:
        logger.error("JSON parsing failed after repair attempts: %s", exc)
        raise _parse_error("Failed to parse AI response as JSON", exc, text) from exc


def check_structure(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise SchedulingError(
            "AI response is missing required data structure",
            "INVALID_DATA_STRUCTURE",
            {"missingFields": ["summary", "storyBlocks"]},
        )
    missing: List[str] = []
    if not isinstance(data.get("summary"), dict):
        missing.append("summary")
    blocks = data.get("storyBlocks")
    if not blocks and not isinstance(blocks, list):
        missing.append("storyBlocks")
    elif not isinstance(blocks, list):
        missing.append("storyBlocks (not an array)")
    if missing:
        logger.error("Parsed data is missing required fields: %s", missing)
        raise SchedulingError(
            "AI response is missing required data structure",
            "INVALID_DATA_STRUCTURE",
            {"missingFields": missing},
        )
    return data


def repair_story_blocks(blocks: List[Any]) -> List[Dict[str, Any]]:
    """Fill placeholders into malformed blocks instead of failing the whole plan."""
    repaired: List[Dict[str, Any]] = []
    for index, block in enumerate(blocks):
        if not isinstance(block, dict):
            logger.error("Story block at index %s is not an object; replacing it", index)
            block = {}
        if not block.get("title") or not isinstance(block.get("timeBoxes"), list):
            logger.error("Story block at index %s is missing required fields", index)
            block["title"] = block.get("title") or f"Story Block {index + 1}"
            block["summary"] = block.get("summary") or f"Tasks for story block {index + 1}"
            block["icon"] = block.get("icon") or DEFAULT_BLOCK_ICON
            if not isinstance(block.get("timeBoxes"), list):
                logger.warning("Reconstructing missing timeBoxes for story block %s", index)
                block["timeBoxes"] = []
            block["totalDuration"] = sum(
                box.get("duration") or 0 for box in block["timeBoxes"] if isinstance(box, dict)
            )
        _normalize_legacy_keys(block)
        repaired.append(block)
    return repaired


def _normalize_legacy_keys(block: Dict[str, Any]) -> None:
    if "storyType" not in block and "type" in block:
        block["storyType"] = block.pop("type")
    if "projectType" not in block and "project" in block:
        block["projectType"] = block.pop("project")
    for box in block.get("timeBoxes") or []:
        if not isinstance(box, dict):
            continue
        if not isinstance(box.get("tasks"), list):
            box["tasks"] = []
        for task in box["tasks"]:
            if not isinstance(task, dict):
                continue
            if "taskCategory" not in task and "type" in task:
                task["taskCategory"] = task.pop("type")
            if "projectType" not in task and "project" in task:
                task["projectType"] = task.pop("project")


def parse_session_plan(text: str) -> SessionPlan:
    """Turn raw generator text into a validated SessionPlan or raise SchedulingError."""
    data = check_structure(load_plan_json(text))
    data["storyBlocks"] = repair_story_blocks(data["storyBlocks"])
    try:
        return SessionPlan.model_validate(data)
    except ValidationError as exc:
        raise SchedulingError(
            "AI response is missing required data structure",
            "INVALID_DATA_STRUCTURE",
            {"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc
