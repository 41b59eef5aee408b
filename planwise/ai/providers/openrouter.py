"""OpenRouter provider implementation using openai SDK."""

from __future__ import annotations

import logging
from typing import Any, Final

import openai
from openai import AsyncOpenAI

from planwise.ai.errors import ContentPolicyError, ProviderTechnicalError
from planwise.ai.pipeline.contracts import RawProviderResponse, SamplingConfig
from planwise.ai.providers.base import AIModel, Provider

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL: Final[str] = "https://openrouter.ai/api/v1"


class OpenRouterModel(AIModel):
  """OpenRouter model client over the OpenAI-compatible API."""

  provider = "openrouter"

  def __init__(self, name: str, api_key: str | None, base_url: str | None = None, referer: str | None = None, title: str | None = None) -> None:
    self.name: str = name
    if not api_key:
      raise ValueError("OPENROUTER_API_KEY environment variable is required")

    # OpenRouter uses the OpenAI-compatible API; we add optional attribution headers.
    default_headers = {}
    if referer:
      default_headers["HTTP-Referer"] = referer
    if title:
      default_headers["X-Title"] = title

    # SDK retries are disabled; alternate providers are tried by the orchestrator instead.
    self._client = AsyncOpenAI(api_key=api_key, base_url=base_url or _DEFAULT_BASE_URL, default_headers=default_headers or None, max_retries=0)

  async def generate(self, prompt: str, sampling: SamplingConfig) -> RawProviderResponse:
    """Generate text response from OpenRouter."""
    kwargs: dict[str, Any] = {"temperature": sampling.temperature, "max_tokens": sampling.max_output_tokens}
    if sampling.top_p is not None:
      kwargs["top_p"] = sampling.top_p

    try:
      response = await self._client.chat.completions.create(model=self.name, messages=[{"role": "user", "content": prompt}], **kwargs)
    except openai.APIStatusError as exc:
      if isinstance(exc.code, str) and exc.code in {"content_policy_violation", "content_filter"}:
        raise ContentPolicyError(f"OpenRouter refused the request: {exc.message}") from exc
      raise ProviderTechnicalError(f"OpenRouter request failed ({exc.status_code}): {exc.message}") from exc
    except openai.APIConnectionError as exc:
      raise ProviderTechnicalError(f"OpenRouter connection failed: {exc}") from exc

    if not response.choices:
      raise ProviderTechnicalError("OpenRouter returned no choices.")

    choice = response.choices[0]
    if choice.finish_reason == "content_filter":
      raise ContentPolicyError("OpenRouter stopped generation with content_filter.")

    content = choice.message.content or ""
    if not content:
      raise ProviderTechnicalError("OpenRouter returned an empty response.")

    logger.debug("OpenRouter response:\n%s", content)
    usage = None
    if response.usage:
      usage = {"prompt_tokens": response.usage.prompt_tokens, "completion_tokens": response.usage.completion_tokens, "total_tokens": response.usage.total_tokens}

    return RawProviderResponse(content=content, provider=self.provider, model=self.name, usage=usage)


class OpenRouterProvider(Provider):
  """OpenRouter provider."""

  _DEFAULT_MODEL: Final[str] = "google/gemini-2.5-pro"

  def __init__(self, api_key: str | None = None, base_url: str | None = None, referer: str | None = None, title: str | None = None) -> None:
    self.name: str = "openrouter"
    self._api_key = api_key
    self._base_url = base_url
    self._referer = referer
    self._title = title

  def get_model(self, model: str | None = None) -> AIModel:
    """Return an OpenRouter model client; OpenRouter routes any model slug it knows."""
    model_name = model or self._DEFAULT_MODEL
    if "/" not in model_name:
      raise ValueError(f"Unsupported OpenRouter model '{model_name}'; expected a vendor/model slug.")
    return OpenRouterModel(model_name, api_key=self._api_key, base_url=self._base_url, referer=self._referer, title=self._title)
