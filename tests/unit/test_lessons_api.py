"""Route tests for lesson generation and ingestion."""

from __future__ import annotations

import json

import pytest
from httpx import ASGITransport, AsyncClient

from planwise.ai.errors import ContentPolicyError, ProviderTechnicalError
from planwise.ai.orchestrator import LessonOrchestrator
from planwise.ai.pipeline.runner import LessonPipeline
from planwise.ai.router import ProviderModels
from planwise.api.deps import get_credit_ledger, get_lesson_orchestrator, get_lesson_repository
from planwise.main import app
from planwise.services.credits import InMemoryCreditLedger
from planwise.storage.lessons_repo import InMemoryLessonRepository

VALID_LESSON = json.dumps({"title": "Tides", "level": "B2", "sections": [{"type": "reading", "content": "The moon pulls the sea."}]})
OWNER = {"x-owner-id": "owner-1"}


@pytest.fixture
def repository() -> InMemoryLessonRepository:
  return InMemoryLessonRepository()


@pytest.fixture
def ledger() -> InMemoryCreditLedger:
  return InMemoryCreditLedger(initial_balance=3)


@pytest.fixture
def install(make_model, repository, ledger):
  """Route requests to a scripted primary provider and in-memory collaborators."""

  def _install(*replies: object):
    model = make_model(*replies, provider="gemini")
    orchestrator = LessonOrchestrator(models={"gemini": ProviderModels(generation=model, correction=model)}, pipeline=LessonPipeline(), primary="gemini")
    app.dependency_overrides[get_lesson_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_lesson_repository] = lambda: repository
    app.dependency_overrides[get_credit_ledger] = lambda: ledger
    return model

  yield _install
  app.dependency_overrides.clear()


@pytest.fixture
async def async_client():
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client


@pytest.mark.anyio
async def test_generate_charges_and_saves_a_real_lesson(install, async_client, repository, ledger) -> None:
  """A successful lesson is charged once and stored with the session id."""
  install(VALID_LESSON)

  response = await async_client.post("/v1/lessons/generate", json={"topic": "Tides", "cefrLevel": "B2"}, headers={**OWNER, "x-session-id": "session-9"})

  assert response.status_code == 200
  body = response.json()
  assert body["billable"] is True
  assert body["provider"] == "gemini"
  assert body["state"] == "done"
  assert body["lesson"]["title"] == "Tides"
  assert body["attempts"] == [{"provider": "gemini", "state": "done", "outcome": "success"}]
  assert await ledger.balance("owner-1") == 2
  record = await repository.get(body["lessonId"])
  assert record is not None
  assert record.session_id == "session-9"
  assert record.owner_id == "owner-1"
  assert not record.is_error
  assert response.headers.get("x-request-id")


@pytest.mark.anyio
@pytest.mark.parametrize("reply", [ContentPolicyError("blocked"), ProviderTechnicalError("down"), '{"foo": 1}'])
async def test_generate_does_not_charge_error_lessons(install, async_client, repository, ledger, reply: object) -> None:
  """Policy, technical and structure failures return an error lesson for free."""
  install(reply)

  response = await async_client.post("/v1/lessons/generate", json={"topic": "Tides"}, headers=OWNER)

  assert response.status_code == 200
  body = response.json()
  assert body["billable"] is False
  assert body["lesson"]["error"]
  assert body["lesson"]["sections"][0]["type"] == "error"
  assert await ledger.balance("owner-1") == 3
  assert len(repository) == 1


@pytest.mark.anyio
async def test_generate_requires_credits(install, async_client) -> None:
  """Owners without credits are turned away before any provider call."""
  model = install(VALID_LESSON)
  app.dependency_overrides[get_credit_ledger] = lambda: InMemoryCreditLedger(initial_balance=0)

  response = await async_client.post("/v1/lessons/generate", json={"topic": "Tides"}, headers=OWNER)

  assert response.status_code == 402
  assert response.json()["detail"] == {"error": "INSUFFICIENT_CREDITS", "required": 1}
  assert model.calls == []


@pytest.mark.anyio
async def test_generate_requires_owner_identity(install, async_client) -> None:
  """Requests without an owner id are rejected."""
  install(VALID_LESSON)

  response = await async_client.post("/v1/lessons/generate", json={"topic": "Tides"})

  assert response.status_code == 401
  assert response.json()["detail"] == "Missing owner identity."


@pytest.mark.anyio
async def test_generate_rejects_invalid_body_without_echoing_input(install, async_client) -> None:
  """Validation errors are reported without the submitted payload."""
  install(VALID_LESSON)

  response = await async_client.post("/v1/lessons/generate", json={"topic": "", "lessonLength": 1}, headers=OWNER)

  assert response.status_code == 422
  errors = response.json()["detail"]
  assert errors
  assert all("input" not in error for error in errors)


@pytest.mark.anyio
async def test_ingest_recovers_fenced_output(install, async_client) -> None:
  """Raw provider text is repaired, validated and typed without a provider call."""
  model = install()
  raw = '```json\n{"title":"x","sections":[{"type":"vocab",},]}\n```'

  response = await async_client.post("/v1/lessons/ingest", json={"rawText": raw, "topic": "Tides"}, headers=OWNER)

  assert response.status_code == 200
  body = response.json()
  assert body["valid"] is True
  assert body["repaired"] is True
  assert "strip_trailing_commas" in body["appliedRules"]
  assert body["lesson"] == {"title": "x", "sections": [{"type": "vocab"}]}
  assert model.calls == []


@pytest.mark.anyio
async def test_ingest_reports_unparseable_text(install, async_client) -> None:
  """Text that cannot be parsed yields a structure error lesson."""
  install()

  response = await async_client.post("/v1/lessons/ingest", json={"rawText": "Sorry, I cannot generate this.", "topic": "Tides"}, headers=OWNER)

  body = response.json()
  assert body["valid"] is False
  assert body["error"].startswith("JSON parsing failed")
  assert body["lesson"]["title"] == "Lesson on Tides"
  assert body["lesson"]["sections"][0]["errorKind"] == "structure"


@pytest.mark.anyio
async def test_health(async_client) -> None:
  """The health endpoint reports the running version."""
  response = await async_client.get("/health")
  assert response.status_code == 200
  assert response.json()["status"] == "ok"


@pytest.mark.anyio
async def test_upstream_request_id_is_reused(install, async_client) -> None:
  """A well-formed gateway request id is echoed back; anything else is replaced."""
  install(VALID_LESSON, VALID_LESSON)

  kept = await async_client.post("/v1/lessons/generate", json={"topic": "Tides"}, headers={**OWNER, "x-request-id": "gateway-1234"})
  replaced = await async_client.post("/v1/lessons/generate", json={"topic": "Tides"}, headers={**OWNER, "x-request-id": "bad id with spaces"})

  assert kept.headers["x-request-id"] == "gateway-1234"
  assert replaced.headers["x-request-id"] != "bad id with spaces"
  assert len(replaced.headers["x-request-id"]) == 36
