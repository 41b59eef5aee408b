"""Two-attempt JSON parsing for language-model output."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from planwise.ai.json_repair import repair_json_text
from planwise.ai.normalizer import normalize_response

logger = logging.getLogger(__name__)

_PREVIEW_CHARS = 50


class StructuredParseError(ValueError):
  """Raised when text cannot be parsed even after the repair pass."""

  def __init__(self, message: str, *, applied_rules: tuple[str, ...] = ()) -> None:
    super().__init__(message)
    self.applied_rules = applied_rules


@dataclass(frozen=True)
class ParseResult:
  """Outcome of normalizing, parsing and (when needed) repairing one response."""

  ok: bool
  value: Any = None
  repaired: bool = False
  applied_rules: tuple[str, ...] = ()
  error: str | None = None


def parse_structured_text(raw: str) -> ParseResult:
  """Parse provider text, repairing it once when the strict attempt fails."""
  if not isinstance(raw, str):
    return ParseResult(ok=False, error="Provider response is not text.")

  cleaned = normalize_response(raw)

  # Prefer strict parsing so valid JSON is preserved without mutation.
  try:
    return ParseResult(ok=True, value=json.loads(cleaned))
  except json.JSONDecodeError as exc:
    first_error = exc

  logger.info("Strict parse failed (%s) near: %s; applying repair rules.", first_error.msg, _preview(cleaned, first_error.pos))
  report = repair_json_text(cleaned)

  try:
    value = json.loads(report.text)
  except json.JSONDecodeError as exc:
    logger.warning("Parse failed after repair (%s); rules applied: %s", exc.msg, ", ".join(report.applied) or "none")
    return ParseResult(ok=False, repaired=True, applied_rules=report.applied, error=f"JSON parsing failed even after attempted fixes: {first_error.msg}")

  logger.info("Parsed response after repair; rules applied: %s", ", ".join(report.applied) or "none")
  return ParseResult(ok=True, value=value, repaired=True, applied_rules=report.applied)


def parse_json_with_repair(raw: str) -> Any:
  """Return the parsed value or raise `StructuredParseError`."""
  result = parse_structured_text(raw)
  if not result.ok:
    raise StructuredParseError(result.error or "Invalid JSON payload", applied_rules=result.applied_rules)
  return result.value


def _preview(text: str, position: int) -> str:
  """Show the text on both sides of a parse error position."""
  start = max(0, position - _PREVIEW_CHARS)
  return f"{text[start:position]}[ERROR HERE]{text[position : position + _PREVIEW_CHARS]}"
