"""Prompt helpers shared by agents."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any

from planwise.ai.pipeline.contracts import GenerationRequest


def _replace_placeholders(template: str, values: dict[str, str]) -> str:
  """Substitute {{PLACEHOLDER}} markers so prompts carry actual context."""
  rendered = template
  for key, value in values.items():
    rendered = rendered.replace(f"{{{{{key}}}}}", value)

  return rendered


def render_lesson_prompt(request: GenerationRequest) -> str:
  """Render the primary lesson generation prompt."""
  prompt_template = _load_prompt("lesson.md")
  replacements = {
    "TOPIC": request.topic,
    "LEVEL": request.cefr_level,
    "FOCUS": request.focus or "general communication",
    "LENGTH": f"{request.lesson_length} minutes" if request.lesson_length else "-",
    "NOTES": request.additional_notes or "-",
  }
  return _replace_placeholders(prompt_template, replacements)


def render_pattern_correction_prompt(template: str, examples: list[Any], topic: str) -> str:
  """Render the narrow follow-up prompt that aligns examples to a sentence pattern."""
  prompt_template = _load_prompt("pattern_correction.md")
  replacements = {"PATTERN": template, "TOPIC": topic, "EXAMPLES_JSON": json.dumps(examples, ensure_ascii=False), "COUNT": str(len(examples))}
  return _replace_placeholders(prompt_template, replacements)


@lru_cache(maxsize=8)
def _load_prompt(name: str) -> str:
  try:
    path = Path(__file__).parents[1] / "prompts" / name
    return path.read_text(encoding="utf-8").strip()
  except (FileNotFoundError, PermissionError, UnicodeDecodeError) as exc:
    raise RuntimeError(f"Failed to load prompt '{name}': {exc}") from exc
