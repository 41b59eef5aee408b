"Provider fallback orchestration for lesson generation."

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from planwise.ai.pipeline.contracts import GenerationRequest, OutcomeKind, UsageRecord
from planwise.ai.pipeline.runner import LessonPipeline, PipelineResult, PipelineState
from planwise.ai.router import ProviderModels
from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import ErrorKind
from planwise.schema.validate_lesson import build_error_lesson

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderAttempt:
  """One provider tried for a request."""

  provider: str
  state: PipelineState
  outcome: OutcomeKind
  message: str | None = None


@dataclass
class GenerationResult:
  """Output from the orchestration layer; `document` is always present."""

  document: LessonDocument
  provider: str | None
  state: PipelineState
  outcome: OutcomeKind
  attempts: list[ProviderAttempt] = field(default_factory=list)
  usage: list[UsageRecord] = field(default_factory=list)
  logs: list[str] = field(default_factory=list)

  @property
  def billable(self) -> bool:
    """Only a real lesson is charged; policy, structural and technical error documents are free."""
    return self.outcome is OutcomeKind.SUCCESS and not self.document.is_error


class LessonOrchestrator:
  """Try the selected provider, then each alternate once, but only after a technical failure."""

  def __init__(self, *, models: Mapping[str, ProviderModels], pipeline: LessonPipeline, primary: str, fallbacks: tuple[str, ...] = ()) -> None:
    self._models = dict(models)
    self._pipeline = pipeline
    self._primary = primary
    self._fallbacks = fallbacks

  def provider_order(self, request: GenerationRequest) -> list[str]:
    """Selected provider first, then the primary, then alternates; each name at most once."""
    selected = (request.ai_provider or "").strip().lower()
    known = {self._primary, *self._fallbacks}
    if selected and selected not in known:
      logger.warning("Unknown provider selector %r; using primary provider %s.", request.ai_provider, self._primary)
      selected = ""

    order: list[str] = []
    for name in (selected, self._primary, *self._fallbacks):
      if name and name not in order:
        order.append(name)
    return order

  async def generate(self, request: GenerationRequest) -> GenerationResult:
    """Produce a lesson document for the request; never raises for provider failures."""
    attempts: list[ProviderAttempt] = []
    usage: list[UsageRecord] = []
    logs: list[str] = []

    for name in self.provider_order(request):
      models = self._models.get(name)
      if models is None:
        message = f"Provider {name} is not configured."
        logs.append(message)
        attempts.append(ProviderAttempt(provider=name, state=PipelineState.FAILED, outcome=OutcomeKind.TECHNICAL_FAILURE, message=message))
        continue

      logs.append(f"Requesting lesson from {name}.")
      result = await self._pipeline.run(request, models.generation, correction_model=models.correction)
      attempts.append(ProviderAttempt(provider=name, state=result.state, outcome=result.outcome, message=result.message))
      usage.extend(result.usage)

      if not result.failed and result.document is not None:
        logs.append(_describe(name, result))
        return GenerationResult(document=result.document, provider=name, state=result.state, outcome=result.outcome, attempts=attempts, usage=usage, logs=logs)

      logs.append(f"Provider {name} failed: {result.message}")
      logger.warning("Provider %s failed for topic %r (%s); trying the next provider.", name, request.topic, result.message)

    logger.error("Every provider failed for topic %r after %d attempt(s).", request.topic, len(attempts))
    logs.append("All providers failed.")
    document = build_error_lesson(request, ErrorKind.TECHNICAL)
    return GenerationResult(document=document, provider=None, state=PipelineState.FAILED, outcome=OutcomeKind.TECHNICAL_FAILURE, attempts=attempts, usage=usage, logs=logs)


def _describe(name: str, result: PipelineResult) -> str:
  if result.outcome is OutcomeKind.POLICY_REJECTION:
    return f"Provider {name} declined the topic on content policy grounds."
  if result.document is not None and result.document.is_error:
    return f"Provider {name} returned a lesson with an invalid structure."
  return f"Provider {name} produced the lesson."
