"""Timeout policy wrapper for AI models."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from planwise.ai.errors import ProviderTechnicalError
from planwise.ai.pipeline.contracts import RawProviderResponse, SamplingConfig
from planwise.ai.providers.base import AIModel


@dataclass(frozen=True)
class ProviderPolicy:
  """Timeout configuration for one provider call."""

  timeout_seconds: float | None = 180.0


class PolicyModel(AIModel):
  """Wraps an AIModel so a slow call surfaces as a technical failure."""

  def __init__(self, model: AIModel, policy: ProviderPolicy) -> None:
    self._model = model
    self._policy = policy
    self.name = getattr(model, "name", "unknown")
    self.provider = getattr(model, "provider", "unknown")

  async def generate(self, prompt: str, sampling: SamplingConfig) -> RawProviderResponse:
    """Generate text with the timeout applied."""
    if self._policy.timeout_seconds is None:
      return await self._model.generate(prompt, sampling)

    try:
      return await asyncio.wait_for(self._model.generate(prompt, sampling), timeout=self._policy.timeout_seconds)
    except asyncio.TimeoutError as exc:
      raise ProviderTechnicalError(f"{self.provider} model {self.name} timed out after {self._policy.timeout_seconds}s") from exc


def apply_policy(model: AIModel, policy: ProviderPolicy | None) -> AIModel:
  """Apply a policy wrapper to a model if configured."""
  if policy is None:
    return model
  return PolicyModel(model, policy)
