"""Request and response models for the HTTP surface."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _ApiModel(BaseModel):
  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProviderAttemptResponse(_ApiModel):
  provider: str
  state: str
  outcome: str


class GenerateLessonResponse(_ApiModel):
  """Result of one generation request; `lesson` is always a renderable document."""

  lesson_id: str
  lesson: dict[str, Any]
  provider: str | None = None
  billable: bool
  state: str
  attempts: list[ProviderAttemptResponse] = Field(default_factory=list)


class IngestLessonRequest(_ApiModel):
  """Raw provider text plus the topic it was generated for."""

  raw_text: str
  topic: str = Field(min_length=1)
  cefr_level: str = "B1"


class IngestLessonResponse(_ApiModel):
  lesson: dict[str, Any]
  valid: bool
  repaired: bool
  applied_rules: list[str] = Field(default_factory=list)
  error: str | None = None
