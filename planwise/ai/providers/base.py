"""Base interfaces for AI providers and models."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from planwise.ai.pipeline.contracts import RawProviderResponse, SamplingConfig


class AIModel(ABC):
  """Abstract base class for language models."""

  name: str
  provider: str = "unknown"

  @abstractmethod
  async def generate(self, prompt: str, sampling: SamplingConfig) -> RawProviderResponse:
    """Generate a response for the given prompt."""


class Provider(ABC):
  """Abstract base class for language-model providers."""

  name: str

  @abstractmethod
  def get_model(self, model: str | None = None) -> AIModel:
    """Return the model client for the provider."""


@dataclass(frozen=True)
class BatchImageRequest:
  """One prompt in a batched synthesis call, tagged with its correlation id."""

  correlation_id: str
  prompt: str


@dataclass
class BatchImageResult:
  """One result of a batched synthesis call; `image` is None when the item failed."""

  correlation_id: str
  image: bytes | None = None
  error: str | None = None


class ImageModel(ABC):
  """Abstract base class for image-synthesis providers."""

  name: str

  @abstractmethod
  async def synthesize(self, prompt: str) -> bytes | None:
    """Return image bytes for one prompt, or None when nothing was produced."""

  @property
  def supports_batch(self) -> bool:
    return False

  async def synthesize_batch(self, requests: list[BatchImageRequest]) -> list[BatchImageResult]:
    """Submit several prompts in one call; results may be reordered or incomplete."""
    raise NotImplementedError(f"{self.name} does not support batched synthesis.")
