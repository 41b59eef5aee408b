"""Unit tests for OpenRouter refusal detection and error mapping."""

from __future__ import annotations

from types import SimpleNamespace
from unittest import mock

import httpx
import openai
import pytest

from planwise.ai.errors import ContentPolicyError, ProviderTechnicalError
from planwise.ai.pipeline.contracts import CORRECTION_SAMPLING, PRIMARY_SAMPLING
from planwise.ai.providers.openrouter import OpenRouterModel, OpenRouterProvider

_REQUEST = httpx.Request("POST", "https://openrouter.ai/api/v1/chat/completions")


def _completion(*choices: tuple[str | None, str | None], usage: object = None) -> SimpleNamespace:
  return SimpleNamespace(choices=[SimpleNamespace(finish_reason=reason, message=SimpleNamespace(content=content)) for content, reason in choices], usage=usage)


def _model(**kwargs: object) -> tuple[OpenRouterModel, mock.AsyncMock]:
  model = OpenRouterModel("openai/gpt-4o-mini", api_key="test-key")
  create = mock.AsyncMock(**kwargs)
  client = mock.MagicMock()
  client.chat.completions.create = create
  model._client = client
  return model, create


def _status_error(status_code: int, code: str | None) -> openai.APIStatusError:
  return openai.APIStatusError("request rejected", response=httpx.Response(status_code, request=_REQUEST), body={"message": "request rejected", "code": code})


@pytest.mark.anyio
async def test_generate_returns_content_and_usage() -> None:
  """A finished completion carries its text and token counts."""
  usage = SimpleNamespace(prompt_tokens=5, completion_tokens=7, total_tokens=12)
  model, create = _model(return_value=_completion(('{"title": "x"}', "stop"), usage=usage))

  response = await model.generate("Write a lesson", PRIMARY_SAMPLING)

  assert response.content == '{"title": "x"}'
  assert response.provider == "openrouter"
  assert response.usage == {"prompt_tokens": 5, "completion_tokens": 7, "total_tokens": 12}
  kwargs = create.await_args.kwargs
  assert kwargs["model"] == "openai/gpt-4o-mini"
  assert kwargs["messages"] == [{"role": "user", "content": "Write a lesson"}]
  assert kwargs["max_tokens"] == PRIMARY_SAMPLING.max_output_tokens
  assert kwargs["top_p"] == PRIMARY_SAMPLING.top_p


@pytest.mark.anyio
async def test_top_p_is_omitted_when_unset() -> None:
  """Correction sampling leaves nucleus sampling to the provider."""
  model, create = _model(return_value=_completion(("[]", "stop")))

  await model.generate("fix", CORRECTION_SAMPLING)

  assert "top_p" not in create.await_args.kwargs
  assert create.await_args.kwargs["temperature"] == CORRECTION_SAMPLING.temperature


@pytest.mark.anyio
async def test_content_filter_finish_reason_is_a_policy_rejection() -> None:
  """A completion stopped by the content filter is a refusal, whatever text came back."""
  model, _ = _model(return_value=_completion(('{"title"', "content_filter")))

  with pytest.raises(ContentPolicyError, match="content_filter"):
    await model.generate("topic", PRIMARY_SAMPLING)


@pytest.mark.anyio
@pytest.mark.parametrize("code", ["content_policy_violation", "content_filter"])
async def test_refusal_codes_are_policy_rejections(code: str) -> None:
  """Status errors carrying a refusal code map to policy errors."""
  error = _status_error(400, code)
  model, _ = _model(side_effect=error)

  with pytest.raises(ContentPolicyError) as excinfo:
    await model.generate("topic", PRIMARY_SAMPLING)

  assert excinfo.value.__cause__ is error


@pytest.mark.anyio
@pytest.mark.parametrize(
  "error",
  [
    _status_error(400, "context_length_exceeded"),
    _status_error(502, None),
    openai.APIConnectionError(request=_REQUEST),
    openai.APITimeoutError(request=_REQUEST),
  ],
)
async def test_other_failures_are_technical(error: Exception) -> None:
  """Status, connection and timeout errors let the caller try another provider."""
  model, _ = _model(side_effect=error)

  with pytest.raises(ProviderTechnicalError):
    await model.generate("topic", PRIMARY_SAMPLING)


@pytest.mark.anyio
@pytest.mark.parametrize("completion", [_completion(), _completion((None, "stop")), _completion(("", "length"))])
async def test_missing_output_is_technical(completion: SimpleNamespace) -> None:
  """No choices or empty content is never mistaken for a refusal."""
  model, _ = _model(return_value=completion)

  with pytest.raises(ProviderTechnicalError):
    await model.generate("topic", PRIMARY_SAMPLING)


def test_provider_requires_vendor_slugs() -> None:
  """OpenRouter models are addressed as vendor/model."""
  provider = OpenRouterProvider(api_key="test-key")
  assert provider.get_model().name == "google/gemini-2.5-pro"
  with pytest.raises(ValueError):
    provider.get_model("gpt-4o")
