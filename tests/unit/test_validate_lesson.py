"""Unit tests for minimum lesson-shape validation and error documents."""

from __future__ import annotations

import pytest

from planwise.ai.pipeline.contracts import GenerationRequest
from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import ErrorKind, ErrorSection
from planwise.schema.validate_lesson import INVALID_STRUCTURE_MESSAGE, build_error_document, build_error_lesson, structure_errors, validate_lesson_payload

REQUEST = GenerationRequest(topic="Space travel", cefr_level="A2")


def test_valid_payload_is_returned_unchanged() -> None:
  """A lesson with a title and sections passes through as the same object."""
  payload = {"title": "x", "sections": [{"type": "vocab"}]}
  result, ok = validate_lesson_payload(payload, REQUEST)
  assert ok
  assert result is payload
  assert result == {"title": "x", "sections": [{"type": "vocab"}]}


@pytest.mark.parametrize(
  "payload",
  [
    {"sections": [{"type": "warmup"}]},
    {"title": "", "sections": [{"type": "warmup"}]},
    {"title": 5, "sections": [{"type": "warmup"}]},
    {"title": "x"},
    {"title": "x", "sections": {"type": "warmup"}},
    {"title": "x", "sections": []},
    ["not", "an", "object"],
    "text",
    None,
  ],
)
def test_invalid_payload_becomes_structure_error_document(payload: object) -> None:
  """Anything without the minimum shape is swapped for a one-section error lesson."""
  result, ok = validate_lesson_payload(payload, REQUEST)
  assert not ok
  assert result["title"] == "Lesson on Space travel"
  assert result["level"] == "A2"
  assert result["error"] == INVALID_STRUCTURE_MESSAGE
  assert len(result["sections"]) == 1
  assert result["sections"][0]["type"] == "error"
  assert result["sections"][0]["errorKind"] == "structure"


def test_structure_errors_lists_every_problem() -> None:
  """Each missing part is reported separately."""
  errors = structure_errors({"title": "  "})
  assert len(errors) == 2
  assert errors[0].startswith("title")
  assert errors[1].startswith("sections")


@pytest.mark.parametrize(
  ("kind", "message", "section_title"),
  [
    (ErrorKind.STRUCTURE, "Invalid lesson structure", "Content Error"),
    (ErrorKind.POLICY, "Content policy restriction", "Content Policy Restriction"),
    (ErrorKind.TECHNICAL, "Lesson generation failed", "Generation Error"),
  ],
)
def test_error_documents_are_renderable_lessons(kind: ErrorKind, message: str, section_title: str) -> None:
  """Error documents type-check as lessons with exactly one error section."""
  document = build_error_lesson(REQUEST, kind, provider="gemini")
  assert document.is_error
  assert document.error == message
  assert document.provider == "gemini"
  assert len(document.sections) == 1
  section = document.sections[0]
  assert isinstance(section, ErrorSection)
  assert section.title == section_title
  assert section.error_kind is kind
  assert document.error_sections == [section]


def test_error_document_omits_missing_provider() -> None:
  """No provider key is written when none produced the failure."""
  assert "provider" not in build_error_document(REQUEST, ErrorKind.TECHNICAL)


def test_error_flag_only_comes_from_error_lessons() -> None:
  """Replaying an error document's payload keeps the content but not the flag."""
  payload = build_error_document(REQUEST, ErrorKind.POLICY)
  replayed = LessonDocument.from_payload(payload)
  assert not replayed.is_error
  assert "error" not in replayed.to_payload()
  assert build_error_lesson(REQUEST, ErrorKind.POLICY).to_payload()["error"] == payload["error"]
