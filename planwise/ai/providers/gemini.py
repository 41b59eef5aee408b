"""Gemini provider implementation using the google-genai SDK."""

from __future__ import annotations

import logging
import warnings
from typing import Any, Final

from pydantic.warnings import ArbitraryTypeWarning

with warnings.catch_warnings():
  warnings.filterwarnings("ignore", message=r"<built-in function any> is not a Python type.*", category=ArbitraryTypeWarning)
  from google import genai
  from google.genai import errors as genai_errors
  from google.genai import types

from planwise.ai.errors import ContentPolicyError, ProviderTechnicalError, is_policy_message
from planwise.ai.pipeline.contracts import RawProviderResponse, SamplingConfig
from planwise.ai.providers.base import AIModel, Provider

logger = logging.getLogger(__name__)

_BLOCKING_FINISH_REASONS: Final[frozenset[str]] = frozenset({"SAFETY", "PROHIBITED_CONTENT", "BLOCKLIST", "SPII", "IMAGE_SAFETY"})


class GeminiModel(AIModel):
  """Gemini model client using the async google-genai client."""

  provider = "gemini"

  def __init__(self, name: str, api_key: str | None) -> None:
    self.name: str = name
    if not api_key:
      raise ValueError("GEMINI_API_KEY environment variable is required")

    self._client = genai.Client(api_key=api_key)

  async def generate(self, prompt: str, sampling: SamplingConfig) -> RawProviderResponse:
    """Generate text response from Gemini."""
    config = types.GenerateContentConfig(temperature=sampling.temperature, max_output_tokens=sampling.max_output_tokens, top_p=sampling.top_p)

    try:
      # Use the async client to avoid blocking the asyncio event loop.
      response = await self._client.aio.models.generate_content(model=self.name, contents=prompt, config=config)
    except genai_errors.APIError as exc:
      message = f"Gemini request failed ({exc.code} {exc.status}): {exc.message}"
      if is_policy_message(exc.message):
        raise ContentPolicyError(message) from exc
      raise ProviderTechnicalError(message) from exc

    _raise_for_block(response)

    text = response.text
    if not text:
      raise ProviderTechnicalError("Gemini returned an empty response.")

    logger.debug("Gemini response:\n%s", text)
    return RawProviderResponse(content=text, provider=self.provider, model=self.name, usage=_usage(response))


def _raise_for_block(response: Any) -> None:
  """Translate Gemini's structured refusal signals into a policy error."""
  feedback = getattr(response, "prompt_feedback", None)
  block_reason = getattr(feedback, "block_reason", None)
  if block_reason:
    raise ContentPolicyError(f"Gemini blocked the prompt: {_enum_name(block_reason)}")

  for candidate in getattr(response, "candidates", None) or []:
    reason = _enum_name(getattr(candidate, "finish_reason", None))
    if reason in _BLOCKING_FINISH_REASONS:
      raise ContentPolicyError(f"Gemini stopped generation for {reason}")


def _enum_name(value: Any) -> str | None:
  if value is None:
    return None
  return getattr(value, "name", None) or str(value)


def _usage(response: Any) -> dict[str, int] | None:
  metadata = getattr(response, "usage_metadata", None)
  if not metadata:
    return None
  return {"prompt_tokens": metadata.prompt_token_count or 0, "completion_tokens": metadata.candidates_token_count or 0, "total_tokens": metadata.total_token_count or 0}


class GeminiProvider(Provider):
  """Gemini provider."""

  _DEFAULT_MODEL: Final[str] = "gemini-2.5-pro"
  _AVAILABLE_MODELS: Final[set[str]] = {"gemini-2.5-pro", "gemini-2.5-flash", "gemini-2.5-flash-lite", "gemini-2.0-flash"}

  def __init__(self, api_key: str | None = None) -> None:
    self.name: str = "gemini"
    self._api_key = api_key

  def get_model(self, model: str | None = None) -> AIModel:
    """Return a Gemini model client."""
    model_name = model or self._DEFAULT_MODEL
    if model_name not in self._AVAILABLE_MODELS:
      raise ValueError(f"Unsupported Gemini model '{model_name}'.")
    return GeminiModel(model_name, api_key=self._api_key)
