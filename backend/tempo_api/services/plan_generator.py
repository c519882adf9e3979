"""Generation of a draft session plan by the text-generation service."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from tempo_api.api.schemas.session import StoryPayload
from tempo_api.core.config import Settings
from tempo_api.observability.metrics import log_metric
from tempo_api.observability.tracing import trace
from tempo_api.services.duration_rules import SchedulingConfig
from tempo_api.services.retry_policy import RetryPolicy, Sleep
from tempo_api.services.text_completion import TextCompletionPort

logger = logging.getLogger(__name__)

PLAN_SHAPE = """{
  "summary": {
    "totalSessions": number,
    "startTime": "ISO string",
    "endTime": "ISO string",
    "totalDuration": number
  },
  "storyBlocks": [
    {
      "title": "Story title",
      "summary": "Story summary",
      "icon": "emoji",
      "timeBoxes": [
        {
          "type": "work" | "short-break" | "long-break" | "debrief",
          "duration": number,
          "tasks": [
            {
              "id": "string",
              "title": "string",
              "duration": number,
              "taskCategory": "focus" | "learning" | "review" | "research" | "social",
              "projectType": "string" (optional),
              "isFrog": boolean
            }
          ],
          "startTime": "ISO string",
          "endTime": "ISO string"
        }
      ],
      "totalDuration": number
    }
  ]
}"""


def _stories_for_prompt(stories: Sequence[StoryPayload]) -> List[Dict[str, Any]]:
    payload = []
    for story in stories:
        story_dict = story.model_dump(by_alias=True, exclude_none=True)
        for task in story_dict["tasks"]:
            task.setdefault("originalTitle", task["title"])
        payload.append(story_dict)
    return payload


def build_session_prompt(
    stories: Sequence[StoryPayload],
    start_time: str,
    config: SchedulingConfig,
) -> str:
    story_count = len(stories)
    task_count = sum(len(story.tasks) for story in stories)
    stories_json = json.dumps(_stories_for_prompt(stories), indent=2, ensure_ascii=False)
    return (
        "Based on these stories, create a detailed session plan with time boxes.\n\n"
        "### RULES\n"
        '1. Each story becomes a "story block" containing all its tasks and breaks.\n'
        "2. FROG tasks should be scheduled as early as possible.\n"
        "3. Follow all duration, break and constraints exactly as specified.\n"
        f"4. Round all times to {config.block_size}-minute increments.\n"
        f"5. Add a short break ({config.short_break} mins) between tasks within a story.\n"
        f"6. Add a longer break ({config.long_break} mins) between story blocks.\n"
        f"7. Add appropriate breaks to prevent working more than {config.max_work_without_break} minutes continuously.\n"
        "8. Keep your response as concise as possible while maintaining accuracy.\n\n"
        "### SESSION PARAMETERS\n"
        f"- Start Time: {start_time}\n"
        f"- Total Stories: {story_count}\n\n"
        "### STORIES DATA\n"
        f"{stories_json}\n\n"
        "### OUTPUT REQUIREMENT\n"
        "Respond with a JSON session plan that follows this exact structure:\n"
        f"{PLAN_SHAPE}\n\n"
        "### CRITICAL RULES\n"
        f"- YOU MUST INCLUDE ALL {story_count} STORIES AND ALL {task_count} TASKS - do not skip any.\n"
        "- Keep summaries extremely brief; a few words is sufficient.\n"
        "- Use short emoji icons.\n"
        "- Ensure your complete response fits within the available tokens.\n"
        "- Never omit or truncate any part of the JSON structure.\n"
        "- Produce valid, complete JSON with no trailing commas.\n"
        "- Never change the story or task order provided.\n"
        "- Preserve all task properties exactly as provided (id, title, duration, taskCategory, projectType, isFrog).\n"
        "- Use ISO date strings for all times.\n"
        "- Include an empty tasks array for break time boxes.\n"
        "- Ensure all durations are in minutes.\n"
        "- Calculate accurate start and end times for each time box.\n"
        '- If a task has "(Part X of Y)" in its title, include it exactly as written.'
    )


class PlanGenerator:
    """Ask the text-generation service for a draft plan, retrying while it is overloaded."""

    def __init__(
        self,
        completion: TextCompletionPort,
        settings: Settings,
        config: SchedulingConfig,
        retry_policy: RetryPolicy,
        *,
        sleep: Optional[Sleep] = None,
    ):
        self.completion = completion
        self.settings = settings
        self.config = config
        self.retry_policy = retry_policy
        self._sleep = sleep
        self.attempts = 0

    async def generate(
        self,
        stories: Sequence[StoryPayload],
        start_time: str,
        *,
        request_id: Optional[str] = None,
    ) -> str:
        prompt = build_session_prompt(stories, start_time, self.config)
        metadata = {
            "model": self.settings.generation_model,
            "stories": len(stories),
            "tasks": sum(len(story.tasks) for story in stories),
        }

        async def _call() -> str:
            self.attempts += 1
            return await self.completion.complete(
                prompt,
                model=self.settings.generation_model,
                max_tokens=self.settings.generation_max_tokens,
                temperature=self.settings.generation_temperature,
            )

        def _on_retry(retry_index: int, exc: BaseException) -> None:
            log_metric("session.generate.retry", 1, {"retry_index": retry_index})

        with trace("session.generate", metadata=metadata, request_id=request_id):
            text = await self.retry_policy.run(_call, sleep=self._sleep, on_retry=_on_retry)

        logger.debug("Raw session plan response: %s", text)
        return text
