from __future__ import annotations

from tempo_api.api.schemas.session import StoryMappingPayload, StoryPayload
from tempo_api.services.title_matching import (
    base_title,
    find_original_story,
    is_break_block,
    is_break_title,
    is_split_part,
    match_title,
    normalize_title,
)


def _story(title: str) -> StoryPayload:
    return StoryPayload(
        title=title,
        summary="",
        icon="📝",
        estimated_duration=30,
        type="timeboxed",
        project_type="Work",
        category="Writing",
        tasks=[],
    )


def test_split_part_titles_are_recognized() -> None:
    assert is_split_part("Write intro (Part 1 of 2)")
    assert is_split_part("Write intro (part 2 of 2)")
    assert not is_split_part("Write intro")
    assert base_title("Write Intro (Part 1 of 2)") == "Write Intro"
    assert base_title("  Write intro  ") == "Write intro"


def test_normalize_title_strips_noise_and_part_marker() -> None:
    assert normalize_title("  Write   Intro!! (part 2 of 3)") == "write intro"
    assert normalize_title("fix_login-bug") == "fix login bug"


def test_split_part_candidate_returns_stem() -> None:
    assert match_title("write intro", ["Write Intro (Part 1 of 2)"]) == "Write Intro"


def test_exact_normalized_match() -> None:
    assert match_title("Fix  bugs!", ["Deploy", "fix bugs"]) == "fix bugs"


def test_fuzzy_match_requires_two_shared_words() -> None:
    candidates = ["Plan the quarterly review"]

    assert match_title("Quarterly planning review", candidates) == "Plan the quarterly review"
    assert match_title("Quarterly taxes", candidates) is None


def test_short_words_never_fuzzy_match() -> None:
    assert match_title("a b", ["a b c"]) is None


def test_find_story_prefers_mapping_then_exact_then_fuzzy() -> None:
    stories = [_story("Launch website"), _story("Customer interviews")]
    mapping = [StoryMappingPayload(possible_title="Site go-live", original_title="Launch website")]

    assert find_original_story("Site go-live", stories, mapping).title == "Launch website"
    assert find_original_story("Customer interviews", stories).title == "Customer interviews"
    assert find_original_story("Run customer interviews", stories).title == "Customer interviews"
    assert find_original_story("Something unrelated", stories) is None


def test_break_blocks_resolve_to_synthetic_story() -> None:
    story = find_original_story("Lunch Break", [_story("Launch website")])

    assert is_break_title("Lunch Break")
    assert story is not None
    assert story.category == "Break"
    assert story.project_type == "System"
    assert story.tasks == []


def test_break_label_requires_whole_word_title() -> None:
    assert is_break_title("Break")
    assert is_break_title("short break")
    assert not is_break_title("Breakfast menu launch")
    assert not is_break_title("Break down requirements")


def test_submitted_story_wins_over_break_heuristic() -> None:
    stories = [_story("Breakfast menu launch"), _story("Coffee Break")]

    assert find_original_story("Breakfast menu launch", stories).category == "Writing"
    assert find_original_story("Coffee Break", stories).category == "Writing"
    assert not is_break_block("Coffee Break", stories)
    assert is_break_block("Long Break", stories)
