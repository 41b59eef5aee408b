"""Helpers for validating lesson payloads and building error documents."""

from __future__ import annotations

import logging
from typing import Any

from planwise.ai.pipeline.contracts import GenerationRequest
from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import ErrorKind, error_section

logger = logging.getLogger(__name__)

INVALID_STRUCTURE_MESSAGE = "Invalid lesson structure"

_ERROR_COPY: dict[ErrorKind, tuple[str, str, str]] = {
  ErrorKind.STRUCTURE: (
    INVALID_STRUCTURE_MESSAGE,
    "Content Error",
    "The generated lesson was missing required parts and could not be displayed. Please try generating it again.",
  ),
  ErrorKind.POLICY: (
    "Content policy restriction",
    "Content Policy Restriction",
    "The AI provider declined to generate this lesson because the topic may conflict with its content policy. Please adjust the topic and try again.",
  ),
  ErrorKind.TECHNICAL: (
    "Lesson generation failed",
    "Generation Error",
    "We could not reach an AI provider to generate this lesson. No credits were used. Please try again shortly.",
  ),
}


def structure_errors(payload: Any) -> list[str]:
  """Return the human-readable reasons a parsed value is not a usable lesson."""
  if not isinstance(payload, dict):
    return [f"lesson: expected an object, got {type(payload).__name__}"]

  errors: list[str] = []
  title = payload.get("title")
  if not isinstance(title, str) or not title.strip():
    errors.append("title: a non-empty string is required")

  sections = payload.get("sections")
  if not isinstance(sections, list):
    errors.append("sections: an ordered list is required")
  elif not sections:
    errors.append("sections: at least one section is required")

  return errors


def validate_lesson_payload(payload: Any, request: GenerationRequest) -> tuple[dict[str, Any], bool]:
  """
  Check that a parsed value has the minimum lesson shape.

  Returns:
      Tuple where:
      - payload: the input itself when valid, otherwise a synthetic error document.
      - ok: bool indicating whether the input passed.
  """
  errors = structure_errors(payload)
  if not errors:
    return payload, True

  logger.warning("Lesson for topic %r failed structure checks: %s", request.topic, "; ".join(errors))
  return build_error_document(request, ErrorKind.STRUCTURE), False


def build_error_document(request: GenerationRequest, kind: ErrorKind, provider: str | None = None) -> dict[str, Any]:
  """Build a well-formed lesson with exactly one error section."""
  message, section_title, content = _ERROR_COPY[kind]
  document: dict[str, Any] = {
    "title": f"Lesson on {request.topic}",
    "level": request.cefr_level,
    "error": message,
    "sections": [error_section(title=section_title, content=content, kind=kind).to_payload()],
  }
  if provider:
    document["provider"] = provider
  return document


def build_error_lesson(request: GenerationRequest, kind: ErrorKind, provider: str | None = None) -> LessonDocument:
  """Typed form of `build_error_document`; the only way a document gets its error flag."""
  payload = build_error_document(request, kind, provider)
  return LessonDocument.from_payload(payload, error=payload["error"])
