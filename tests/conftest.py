"""Test configuration for importing the application package."""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
  sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from planwise.ai.errors import ImageProviderError, ProviderTechnicalError  # noqa: E402
from planwise.ai.pipeline.contracts import RawProviderResponse, SamplingConfig  # noqa: E402
from planwise.ai.providers.base import AIModel, BatchImageRequest, BatchImageResult, ImageModel  # noqa: E402


class ScriptedModel(AIModel):
  """Language model double that replays queued replies; queued exceptions are raised."""

  def __init__(self, replies: list[object], *, provider: str = "fake", name: str = "fake-model") -> None:
    self.name = name
    self.provider = provider
    self._replies = list(replies)
    self.calls: list[tuple[str, SamplingConfig]] = []

  async def generate(self, prompt: str, sampling: SamplingConfig) -> RawProviderResponse:
    self.calls.append((prompt, sampling))
    if not self._replies:
      raise ProviderTechnicalError("No scripted reply left.")

    reply = self._replies.pop(0)
    if isinstance(reply, BaseException):
      raise reply
    return RawProviderResponse(content=str(reply), provider=self.provider, model=self.name, usage={"total_tokens": 42})


class FakeImageModel(ImageModel):
  """Image model double; prompts containing a failing marker raise or are left out of batch replies."""

  def __init__(self, *, failing: tuple[str, ...] = (), batch: bool = False, image: bytes | None = None) -> None:
    self.name = "fake-images"
    self.prompts: list[str] = []
    self.batches: list[list[BatchImageRequest]] = []
    self._failing = failing
    self._batch = batch
    self._image = image

  @property
  def supports_batch(self) -> bool:
    return self._batch

  def _render(self, prompt: str) -> bytes:
    if any(marker in prompt for marker in self._failing):
      raise ImageProviderError(f"Refused prompt {prompt[:24]!r}")
    if self._image is not None:
      return self._image
    return f"img:{prompt}".encode()

  async def synthesize(self, prompt: str) -> bytes | None:
    self.prompts.append(prompt)
    return self._render(prompt)

  async def synthesize_batch(self, requests: list[BatchImageRequest]) -> list[BatchImageResult]:
    self.batches.append(list(requests))
    results: list[BatchImageResult] = []
    # Reply in reverse order to prove callers match on correlation ids.
    for request in reversed(requests):
      self.prompts.append(request.prompt)
      try:
        image = self._render(request.prompt)
      except ImageProviderError:
        continue
      results.append(BatchImageResult(correlation_id=request.correlation_id, image=image))
    return results


# Force anyio to use asyncio
@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture
def make_model():
  def _make(*replies: object, provider: str = "fake", name: str = "fake-model") -> ScriptedModel:
    return ScriptedModel(list(replies), provider=provider, name=name)

  return _make


@pytest.fixture
def make_image_model():
  def _make(**kwargs: object) -> FakeImageModel:
    return FakeImageModel(**kwargs)

  return _make
