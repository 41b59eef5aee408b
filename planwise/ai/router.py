"""Routing utilities for provider/model selection."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from planwise.ai.providers.base import AIModel, ImageModel, Provider
from planwise.ai.providers.gemini import GeminiProvider
from planwise.ai.providers.openrouter import OpenRouterProvider
from planwise.ai.providers.policy import ProviderPolicy, apply_policy
from planwise.ai.providers.runware import RunwareImageModel
from planwise.ai.providers.stability import StabilityImageModel
from planwise.config import Settings

logger = logging.getLogger(__name__)


class ProviderMode(str, Enum):
  """Supported language-model provider modes."""

  GEMINI = "gemini"
  OPENROUTER = "openrouter"


class ImageProviderMode(str, Enum):
  """Supported image-synthesis provider modes."""

  RUNWARE = "runware"
  STABILITY = "stability"
  NONE = "none"


@dataclass(frozen=True)
class ProviderModels:
  """The models one provider contributes: primary generation and the low-variance correction call."""

  generation: AIModel
  correction: AIModel


def get_provider_for_mode(mode: str | ProviderMode, settings: Settings) -> Provider:
  """Return a provider instance for the given mode with credentials injected."""
  key = mode.value if isinstance(mode, ProviderMode) else mode
  if key == ProviderMode.GEMINI.value:
    return GeminiProvider(api_key=settings.gemini_api_key)
  if key == ProviderMode.OPENROUTER.value:
    return OpenRouterProvider(api_key=settings.openrouter_api_key, base_url=settings.openrouter_base_url, referer=settings.openrouter_referer, title=settings.openrouter_title)
  raise ValueError(f"Unsupported provider mode '{mode}'.")


def _model_names(mode: ProviderMode, settings: Settings) -> tuple[str, str]:
  if mode is ProviderMode.GEMINI:
    return settings.gemini_model, settings.gemini_correction_model
  return settings.openrouter_model, settings.openrouter_correction_model


def _has_credentials(mode: ProviderMode, settings: Settings) -> bool:
  if mode is ProviderMode.GEMINI:
    return bool(settings.gemini_api_key)
  return bool(settings.openrouter_api_key)


def build_provider_models(settings: Settings) -> dict[str, ProviderModels]:
  """Build model clients for every configured provider that has credentials."""
  policy = ProviderPolicy(timeout_seconds=settings.provider_timeout_seconds)
  models: dict[str, ProviderModels] = {}

  for name in (settings.primary_provider, *settings.fallback_providers):
    mode = ProviderMode(name)
    if not _has_credentials(mode, settings):
      logger.warning("Provider %s is configured but has no API key; it will be skipped.", name)
      continue

    provider = get_provider_for_mode(mode, settings)
    generation_name, correction_name = _model_names(mode, settings)
    models[name] = ProviderModels(generation=apply_policy(provider.get_model(generation_name), policy), correction=apply_policy(provider.get_model(correction_name), policy))

  return models


def build_image_model(settings: Settings) -> ImageModel | None:
  """Return the configured image-synthesis client, or None when enrichment cannot run."""
  mode = ImageProviderMode(settings.image_provider)
  if mode is ImageProviderMode.NONE:
    return None

  if mode is ImageProviderMode.RUNWARE:
    if not settings.runware_api_key:
      logger.warning("Runware is the image provider but RUNWARE_API_KEY is not set; images are disabled.")
      return None
    return RunwareImageModel(settings.runware_api_key, base_url=settings.runware_base_url, timeout_seconds=settings.image_timeout_seconds)

  if not settings.stability_api_key:
    logger.warning("Stability is the image provider but STABILITY_API_KEY is not set; images are disabled.")
    return None
  return StabilityImageModel(settings.stability_api_key, base_url=settings.stability_base_url, timeout_seconds=settings.image_timeout_seconds)
