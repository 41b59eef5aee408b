"""Single-provider lesson pipeline expressed as an explicit state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum

from pydantic import ValidationError

from planwise.ai.agents.illustration import EnrichmentReport, IllustrationEnricher
from planwise.ai.agents.pattern_corrector import CorrectionReport, PatternExampleCorrector
from planwise.ai.agents.prompts import render_lesson_prompt
from planwise.ai.errors import classify_provider_exception
from planwise.ai.json_parser import parse_structured_text
from planwise.ai.pipeline.contracts import CORRECTION_SAMPLING, PRIMARY_SAMPLING, GenerationRequest, OutcomeKind, ProviderOutcome, SamplingConfig, UsageRecord
from planwise.ai.providers.base import AIModel
from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import ErrorKind, PatternPracticeSection
from planwise.schema.validate_lesson import build_error_lesson, validate_lesson_payload

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
  """States of one pipeline run."""

  IDLE = "idle"
  REQUESTING = "requesting"
  PARSE_RECOVERY = "parse_recovery"
  VALIDATING = "validating"
  CORRECTING = "correcting"
  ENRICHING = "enriching"
  DONE = "done"
  FAILED = "failed"


@dataclass
class PipelineResult:
  """Terminal state of a run plus everything recorded on the way."""

  state: PipelineState
  outcome: OutcomeKind
  provider: str | None = None
  document: LessonDocument | None = None
  message: str | None = None
  repaired: bool = False
  transitions: list[PipelineState] = field(default_factory=list)
  usage: list[UsageRecord] = field(default_factory=list)
  correction: CorrectionReport | None = None
  enrichment: EnrichmentReport | None = None

  @property
  def failed(self) -> bool:
    return self.state is PipelineState.FAILED


class _Run:
  """Mutable bookkeeping for one run; never shared between requests."""

  def __init__(self, request: GenerationRequest, provider: str | None) -> None:
    self.request = request
    self.provider = provider
    self.state = PipelineState.IDLE
    self.transitions: list[PipelineState] = [PipelineState.IDLE]
    self.usage: list[UsageRecord] = []
    self.repaired = False

  def move(self, state: PipelineState) -> None:
    logger.debug("Pipeline for %r: %s -> %s", self.request.topic, self.state.value, state.value)
    self.state = state
    self.transitions.append(state)

  def finish(self, state: PipelineState, outcome: OutcomeKind, *, document: LessonDocument | None = None, message: str | None = None, correction: CorrectionReport | None = None, enrichment: EnrichmentReport | None = None) -> PipelineResult:
    self.move(state)
    return PipelineResult(state=state, outcome=outcome, provider=self.provider, document=document, message=message, repaired=self.repaired, transitions=list(self.transitions), usage=list(self.usage), correction=correction, enrichment=enrichment)


class LessonPipeline:
  """Run one generation request against one language model.

  Provider failures come back as typed outcomes rather than exceptions: a technical
  failure ends in `FAILED` so the caller can try an alternate provider, while a policy
  rejection ends in `DONE` with an error document.
  """

  def __init__(self, *, enricher: IllustrationEnricher | None = None, self_correction: bool = True, sampling: SamplingConfig = PRIMARY_SAMPLING, correction_sampling: SamplingConfig = CORRECTION_SAMPLING) -> None:
    self._enricher = enricher
    self._self_correction = self_correction
    self._sampling = sampling
    self._correction_sampling = correction_sampling

  async def run(self, request: GenerationRequest, model: AIModel, *, correction_model: AIModel | None = None) -> PipelineResult:
    provider = getattr(model, "provider", None)
    run = _Run(request, provider)

    run.move(PipelineState.REQUESTING)
    outcome = await self._request(request, model)
    if outcome.kind is OutcomeKind.POLICY_REJECTION:
      logger.warning("Provider %s rejected topic %r on policy grounds: %s", provider, request.topic, outcome.message)
      document = build_error_lesson(request, ErrorKind.POLICY, provider)
      return run.finish(PipelineState.DONE, OutcomeKind.POLICY_REJECTION, document=document, message=outcome.message)

    if not outcome.ok or outcome.response is None:
      logger.error("Provider %s failed for topic %r: %s", provider, request.topic, outcome.message)
      return run.finish(PipelineState.FAILED, OutcomeKind.TECHNICAL_FAILURE, message=outcome.message)

    response = outcome.response
    if response.usage:
      run.usage.append(UsageRecord(provider=response.provider, model=response.model, purpose="lesson_generation", usage=response.usage))

    parsed = parse_structured_text(response.content)
    if parsed.repaired:
      run.repaired = True
      run.move(PipelineState.PARSE_RECOVERY)
    if not parsed.ok:
      return run.finish(PipelineState.FAILED, OutcomeKind.TECHNICAL_FAILURE, message=parsed.error)

    run.move(PipelineState.VALIDATING)
    document = self._validate(request, parsed.value, provider)
    if document.is_error:
      return run.finish(PipelineState.DONE, OutcomeKind.SUCCESS, document=document)

    correction: CorrectionReport | None = None
    if self._self_correction and any(isinstance(section, PatternPracticeSection) for section in document.sections):
      run.move(PipelineState.CORRECTING)
      corrector = PatternExampleCorrector(correction_model or model, sampling=self._correction_sampling)
      correction = await corrector.correct_document(document, request.topic)
      run.usage.extend(correction.usage)

    enrichment: EnrichmentReport | None = None
    if self._enricher is not None:
      run.move(PipelineState.ENRICHING)
      enrichment = await self._enricher.enrich(document)

    return run.finish(PipelineState.DONE, OutcomeKind.SUCCESS, document=document, correction=correction, enrichment=enrichment)

  async def _request(self, request: GenerationRequest, model: AIModel) -> ProviderOutcome:
    try:
      prompt = render_lesson_prompt(request)
      response = await model.generate(prompt, self._sampling)
    except Exception as exc:  # noqa: BLE001
      return classify_provider_exception(exc, getattr(model, "provider", None))
    return ProviderOutcome.success(response)

  def _validate(self, request: GenerationRequest, value: object, provider: str | None) -> LessonDocument:
    payload, ok = validate_lesson_payload(value, request)
    if not ok:
      return build_error_lesson(request, ErrorKind.STRUCTURE, provider)

    try:
      return LessonDocument.from_payload(payload, provider=provider)
    except ValidationError as exc:
      logger.warning("Lesson metadata failed validation: %s", exc.errors(include_url=False, include_input=False))
      return build_error_lesson(request, ErrorKind.STRUCTURE, provider)
