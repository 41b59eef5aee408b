"""Shared data contracts for the AI pipeline."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GenerationRequest(BaseModel):
  """Inputs for a lesson generation request."""

  model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

  topic: str = Field(min_length=1)
  cefr_level: str = "B1"
  focus: str | None = None
  lesson_length: int | None = Field(default=None, ge=5, le=240)
  additional_notes: str | None = None
  ai_provider: str | None = None


class SamplingConfig(BaseModel):
  """Randomness and size limits for one language-model call."""

  model_config = ConfigDict(frozen=True)

  temperature: float = Field(default=0.3, ge=0.0, le=2.0)
  max_output_tokens: int = Field(default=16384, ge=1)
  top_p: float | None = Field(default=0.9, gt=0.0, le=1.0)


PRIMARY_SAMPLING = SamplingConfig(temperature=0.3, max_output_tokens=16384, top_p=0.9)
CORRECTION_SAMPLING = SamplingConfig(temperature=0.1, max_output_tokens=2000, top_p=None)


class RawProviderResponse(BaseModel):
  """Opaque text returned by a language-model provider for one call."""

  content: str
  provider: str | None = None
  model: str | None = None
  usage: dict[str, int] | None = None


class OutcomeKind(str, Enum):
  """Result taxonomy for one call to an external provider."""

  SUCCESS = "success"
  POLICY_REJECTION = "policy_rejection"
  TECHNICAL_FAILURE = "technical_failure"


class ProviderOutcome(BaseModel):
  """Typed result of a provider call; replaces exception unwinding in the pipeline."""

  kind: OutcomeKind
  provider: str | None = None
  response: RawProviderResponse | None = None
  message: str | None = None

  @classmethod
  def success(cls, response: RawProviderResponse) -> ProviderOutcome:
    return cls(kind=OutcomeKind.SUCCESS, provider=response.provider, response=response)

  @classmethod
  def policy_rejection(cls, message: str, *, provider: str | None = None) -> ProviderOutcome:
    return cls(kind=OutcomeKind.POLICY_REJECTION, provider=provider, message=message)

  @classmethod
  def technical_failure(cls, message: str, *, provider: str | None = None) -> ProviderOutcome:
    return cls(kind=OutcomeKind.TECHNICAL_FAILURE, provider=provider, message=message)

  @property
  def ok(self) -> bool:
    return self.kind is OutcomeKind.SUCCESS


class UsageRecord(BaseModel):
  """Token usage reported for one provider call."""

  provider: str | None = None
  model: str | None = None
  purpose: str
  usage: dict[str, Any] = Field(default_factory=dict)
