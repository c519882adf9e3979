"""Title normalization and matching between emitted and submitted titles."""
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence

from tempo_api.api.schemas.session import StoryMappingPayload, StoryPayload

logger = logging.getLogger(__name__)

PART_MARKER_RE = re.compile(r"\(\s*part\b", re.IGNORECASE)
NOISE_RE = re.compile(r"[^\w\s]+")
# "Break", "Short Break", "Lunch Break": at most one qualifier word before "break".
BREAK_TITLE_RE = re.compile(r"^\s*(?:\w+\s+)?break\s*$", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")
MIN_FUZZY_WORD_LENGTH = 3


def is_split_part(title: str) -> bool:
    """Return True for titles like ``"Write intro (Part 1 of 2)"``."""
    return bool(PART_MARKER_RE.search(title or ""))


def base_title(title: str) -> str:
    """Strip a trailing ``(Part X of Y)`` marker, keeping the original casing."""
    marker = PART_MARKER_RE.search(title or "")
    if not marker:
        return (title or "").strip()
    return title[: marker.start()].strip()


def normalize_title(title: str) -> str:
    """Lowercase, drop the part marker and formatting noise, collapse whitespace."""
    text = base_title(title).lower()
    text = NOISE_RE.sub(" ", text).replace("_", " ")
    return WHITESPACE_RE.sub(" ", text).strip()


def _significant_words(normalized: str) -> List[str]:
    return [word for word in normalized.split(" ") if len(word) >= MIN_FUZZY_WORD_LENGTH]


def _fuzzy_overlap(search_words: Sequence[str], candidate: str) -> int:
    candidate_words = _significant_words(normalize_title(candidate))
    return sum(
        1
        for word in search_words
        if any(other in word or word in other for other in candidate_words)
    )


def match_title(search_title: str, candidates: Iterable[str]) -> Optional[str]:
    """
    Find the candidate that refers to the same thing as ``search_title``.

    Split parts win over exact matches, which win over word-overlap matches.
    A split match returns the shared stem rather than the part's full title.
    """
    normalized_search = normalize_title(search_title)
    candidate_list = [candidate for candidate in candidates if candidate]

    for candidate in candidate_list:
        if is_split_part(candidate) and normalize_title(base_title(candidate)) == normalized_search:
            logger.debug("Split-part match for %r: %r", search_title, candidate)
            return base_title(candidate)

    for candidate in candidate_list:
        if normalize_title(candidate) == normalized_search:
            logger.debug("Exact match for %r: %r", search_title, candidate)
            return candidate

    search_words = _significant_words(normalized_search)
    if search_words:
        required = min(2, len(search_words))
        for candidate in candidate_list:
            if _fuzzy_overlap(search_words, candidate) >= required:
                logger.debug("Fuzzy match for %r: %r", search_title, candidate)
                return candidate

    logger.debug("No match found for %r", search_title)
    return None


def is_break_title(title: str) -> bool:
    """Return True for generator break labels such as "Short Break", not "Breakfast menu"."""
    return bool(BREAK_TITLE_RE.match(title or ""))


def break_story(title: str) -> StoryPayload:
    """Stand-in story for generator-emitted break blocks."""
    return StoryPayload(
        title=title,
        summary="Scheduled break time",
        icon="☕",
        estimated_duration=15,
        type="flexible",
        project_type="System",
        category="Break",
        tasks=[],
    )


def find_original_story(
    block_title: str,
    stories: Sequence[StoryPayload],
    story_mapping: Optional[Sequence[StoryMappingPayload]] = None,
) -> Optional[StoryPayload]:
    """
    Resolve an emitted story block title to the story the user submitted.

    Mapped and exact titles win over the break heuristic, so a story the user
    named "Break" is still their story. Fuzzy matching runs last.
    """
    story = _resolve_submitted_story(block_title, stories, story_mapping)
    if story is not None:
        return story

    if is_break_title(block_title):
        return break_story(block_title)

    matched = match_title(block_title, [story.title for story in stories])
    if matched is None:
        return None
    normalized = normalize_title(matched)
    for story in stories:
        if story.title == matched or normalize_title(story.title) == normalized:
            logger.debug("Story resolved via title match: %s -> %s", block_title, story.title)
            return story
    return None


def is_break_block(
    block_title: str,
    stories: Sequence[StoryPayload],
    story_mapping: Optional[Sequence[StoryMappingPayload]] = None,
) -> bool:
    """A generator-inserted break block: break-like title and no submitted story behind it."""
    return is_break_title(block_title) and _resolve_submitted_story(block_title, stories, story_mapping) is None


def _resolve_submitted_story(
    block_title: str,
    stories: Sequence[StoryPayload],
    story_mapping: Optional[Sequence[StoryMappingPayload]],
) -> Optional[StoryPayload]:
    for mapping in story_mapping or []:
        if mapping.possible_title != block_title:
            continue
        for story in stories:
            if story.title == mapping.original_title:
                logger.debug("Story resolved via mapping: %s -> %s", block_title, story.title)
                return story

    for story in stories:
        if story.title == block_title:
            return story
    return None
