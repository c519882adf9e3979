from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from tempo_api.api.routes import session as session_routes
from tempo_api.core.config import Settings, get_settings
from tempo_api.core.exceptions import GenerationOverloadedError
from tempo_api.main import app
from tempo_api.services.session_scheduler import SessionScheduler
from tempo_api.services.text_completion import TextCompletionPort

PLAN_TEXT = json.dumps(
    {
        "summary": {"totalSessions": 1, "startTime": "2026-01-05T09:00:00Z", "totalDuration": 95},
        "storyBlocks": [
            {
                "title": "Write report",
                "summary": "Report",
                "icon": "📝",
                "timeBoxes": [
                    {
                        "type": "work",
                        "duration": 30,
                        "startTime": "2026-01-05T09:00:00Z",
                        "tasks": [{"id": "t1", "title": "Draft outline", "duration": 30, "taskCategory": "focus"}],
                    },
                    {"type": "short-break", "duration": 5, "tasks": []},
                    {
                        "type": "work",
                        "duration": 60,
                        "tasks": [{"id": "t2", "title": "Write body", "duration": 60, "taskCategory": "focus"}],
                    },
                ],
            }
        ],
    }
)


class _FixedCompletion(TextCompletionPort):
    def __init__(self, response):
        self.response = response
        self.calls = 0

    async def complete(self, prompt, *, model, max_tokens, temperature):
        self.calls += 1
        if isinstance(self.response, Exception):
            raise self.response
        return self.response


async def _no_sleep(seconds: float) -> None:
    return None


def _payload(estimated_duration: int = 90) -> dict:
    return {
        "startTime": "2026-01-05T09:00:00Z",
        "stories": [
            {
                "title": "Write report",
                "summary": "Quarterly report",
                "icon": "📝",
                "estimatedDuration": estimated_duration,
                "type": "timeboxed",
                "projectType": "Work",
                "category": "Writing",
                "tasks": [
                    {
                        "id": "t1",
                        "title": "Draft outline",
                        "duration": 30,
                        "taskCategory": "focus",
                        "isFrog": True,
                        "isFlexible": False,
                    },
                    {
                        "id": "t2",
                        "title": "Write body",
                        "duration": 60,
                        "taskCategory": "focus",
                        "isFrog": False,
                        "isFlexible": False,
                    },
                ],
            }
        ],
    }


@pytest.fixture()
def client_with():
    """Yield a factory that wires the scheduler to a canned completion."""

    def _build(response) -> tuple[TestClient, _FixedCompletion]:
        completion = _FixedCompletion(response)
        app.dependency_overrides[session_routes.get_session_scheduler] = lambda: SessionScheduler(
            completion, get_settings(), sleep=_no_sleep
        )
        return TestClient(app), completion

    yield _build
    app.dependency_overrides.clear()


def test_create_session_returns_plan(client_with) -> None:
    test_client, completion = client_with(PLAN_TEXT)

    response = test_client.post("/api/tasks/create-session", json=_payload())

    assert response.status_code == 200
    body = response.json()
    assert body["summary"]["totalDuration"] == 95
    assert body["summary"]["endTime"] == "2026-01-05T10:35:00.000Z"
    block = body["storyBlocks"][0]
    assert block["totalDuration"] == 95
    assert "suggestions" not in block
    assert block["timeBoxes"][1]["startTime"] == "2026-01-05T09:30:00.000Z"
    assert block["timeBoxes"][0]["tasks"][0]["taskCategory"] == "focus"
    assert completion.calls == 1
    assert response.headers.get("X-Request-Id")


def test_invalid_body_is_validation_error(client_with) -> None:
    test_client, completion = client_with(PLAN_TEXT)

    response = test_client.post("/api/tasks/create-session", json={"stories": "nope"})

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["details"]
    assert completion.calls == 0


def test_non_positive_task_duration_is_rejected(client_with) -> None:
    test_client, _ = client_with(PLAN_TEXT)
    payload = _payload()
    payload["stories"][0]["tasks"][0]["duration"] = 0

    response = test_client.post("/api/tasks/create-session", json=payload)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_oversized_session_is_rejected(client_with) -> None:
    test_client, completion = client_with(PLAN_TEXT)

    response = test_client.post("/api/tasks/create-session", json=_payload(1500))

    assert response.status_code == 400
    assert response.json() == {
        "error": "Total session duration exceeds maximum limit",
        "code": "DURATION_EXCEEDED",
        "details": {"totalDuration": 1500, "maxDuration": 1440},
    }
    assert completion.calls == 0


def test_overloaded_generation_returns_529(client_with) -> None:
    test_client, completion = client_with(GenerationOverloadedError("overloaded"))

    response = test_client.post("/api/tasks/create-session", json=_payload())

    assert response.status_code == 529
    assert response.json()["code"] == "OVERLOADED"
    assert completion.calls == 4


def test_dropped_task_returns_missing_tasks(client_with) -> None:
    plan = json.loads(PLAN_TEXT)
    plan["storyBlocks"][0]["timeBoxes"] = plan["storyBlocks"][0]["timeBoxes"][:1]
    test_client, _ = client_with(json.dumps(plan))

    response = test_client.post("/api/tasks/create-session", json=_payload())

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "MISSING_TASKS"
    assert body["details"]["missingTasks"] == ["Write body"]


def test_missing_api_key_returns_401(monkeypatch) -> None:
    monkeypatch.setattr(session_routes, "get_settings", lambda: Settings(openai_api_key=None))

    response = TestClient(app).post("/api/tasks/create-session", json=_payload())

    assert response.status_code == 401
    assert response.json()["code"] == "MISSING_API_KEY"


def test_caller_api_key_header_is_used(monkeypatch) -> None:
    seen_keys: list[str | None] = []

    def _build(api_key):
        seen_keys.append(api_key)
        return _FixedCompletion(PLAN_TEXT)

    monkeypatch.setattr(session_routes, "get_settings", lambda: Settings(openai_api_key=None))
    monkeypatch.setattr(session_routes, "build_text_completion", _build)

    response = TestClient(app).post(
        "/api/tasks/create-session",
        json=_payload(),
        headers={"X-API-Key": "  sk-caller  "},
    )

    assert response.status_code == 200
    assert seen_keys == ["sk-caller"]


def test_unexpected_failure_returns_internal_error(client_with) -> None:
    test_client, completion = client_with(RuntimeError("socket closed"))

    response = test_client.post("/api/tasks/create-session", json=_payload())

    assert response.status_code == 500
    assert response.json() == {
        "error": "Failed to create session plan",
        "code": "INTERNAL_ERROR",
        "details": "socket closed",
    }
    assert completion.calls == 1
