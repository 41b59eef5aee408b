"""Shared FastAPI dependencies for the lesson pipeline and its collaborators."""

from __future__ import annotations

import logging
from functools import lru_cache

from fastapi import Header, HTTPException, status

from planwise.ai.agents.illustration import IllustrationEnricher
from planwise.ai.orchestrator import LessonOrchestrator
from planwise.ai.pipeline.contracts import PRIMARY_SAMPLING, SamplingConfig
from planwise.ai.pipeline.runner import LessonPipeline
from planwise.ai.router import build_image_model, build_provider_models
from planwise.config import Settings, get_settings
from planwise.services.credits import CreditLedger, InMemoryCreditLedger
from planwise.storage.lessons_repo import InMemoryLessonRepository, LessonRepository

logger = logging.getLogger(__name__)


def build_lesson_orchestrator(settings: Settings) -> LessonOrchestrator:
  """Wire providers, enrichment and sampling from settings; credentials are read once here."""
  enricher: IllustrationEnricher | None = None
  if settings.enrichment_enabled:
    image_model = build_image_model(settings)
    if image_model is not None:
      enricher = IllustrationEnricher(image_model, mode=settings.image_mode, concurrency=settings.image_concurrency, batch_size=settings.image_batch_size, convert_webp=settings.image_convert_webp)

  sampling = SamplingConfig(temperature=settings.generation_temperature, max_output_tokens=settings.generation_max_tokens, top_p=PRIMARY_SAMPLING.top_p)
  correction_sampling = SamplingConfig(temperature=settings.correction_temperature, max_output_tokens=settings.correction_max_tokens, top_p=None)
  pipeline = LessonPipeline(enricher=enricher, self_correction=settings.self_correction_enabled, sampling=sampling, correction_sampling=correction_sampling)
  return LessonOrchestrator(models=build_provider_models(settings), pipeline=pipeline, primary=settings.primary_provider, fallbacks=settings.fallback_providers)


@lru_cache(maxsize=1)
def get_lesson_orchestrator() -> LessonOrchestrator:
  """Build the orchestrator once per process and share it read-only."""
  return build_lesson_orchestrator(get_settings())


@lru_cache(maxsize=1)
def get_lesson_repository() -> LessonRepository:
  return InMemoryLessonRepository()


@lru_cache(maxsize=1)
def get_credit_ledger() -> CreditLedger:
  return InMemoryCreditLedger(initial_balance=get_settings().starting_credits)


async def get_owner_id(x_owner_id: str | None = Header(default=None)) -> str:  # noqa: B008
  """Resolve the caller; authentication happens upstream and forwards the owner id."""
  if not x_owner_id or not x_owner_id.strip():
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing owner identity.")
  return x_owner_id.strip()
