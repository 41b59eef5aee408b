"""Shared error classification helpers for AI provider handling."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

import httpx
import openai

from planwise.ai.pipeline.contracts import ProviderOutcome

logger = logging.getLogger(__name__)


class ContentPolicyError(RuntimeError):
  """Raised by a provider adapter when the provider refused the content."""


class ProviderTechnicalError(RuntimeError):
  """Raised by a provider adapter for network, quota, timeout or empty-output failures."""


class ImageProviderError(RuntimeError):
  """Raised by an image-synthesis adapter when one request cannot produce an image."""


_POLICY_CODES: frozenset[str] = frozenset({"content_policy_violation", "content_filter", "safety", "prohibited_content"})

# Last-resort fallback: providers do not always surface a structured refusal code, so message text is checked.
_POLICY_HINTS: tuple[str, ...] = (
  "content policy",
  "content_policy",
  "content_filter",
  "safety",
  "blocked",
  "not appropriate",
  "prohibited",
)


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  # Scan for known substrings to categorize policy vs technical errors.
  for hint in hints:
    if hint in message:
      return True
  return False


def is_policy_message(message: str | None) -> bool:
  """Return True when free text reads like a content refusal."""
  if not message:
    return False
  return _match_hint(message.lower(), _POLICY_HINTS)


def _structured_policy_signal(exc: BaseException) -> bool | None:
  """Read the provider's own error code when one exists; None means no structured signal."""
  if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)):
    return False

  if isinstance(exc, openai.APIStatusError):
    code = getattr(exc, "code", None)
    if isinstance(code, str):
      return code.lower() in _POLICY_CODES
    return None

  if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException, httpx.TransportError)):
    return False

  return None


def classify_provider_exception(exc: BaseException, provider: str | None = None) -> ProviderOutcome:
  """Map an exception raised by a provider call to a typed outcome."""
  message = str(exc) or exc.__class__.__name__

  if isinstance(exc, ContentPolicyError):
    return ProviderOutcome.policy_rejection(message, provider=provider)
  if isinstance(exc, ProviderTechnicalError):
    return ProviderOutcome.technical_failure(message, provider=provider)

  structured = _structured_policy_signal(exc)
  if structured is not None:
    if structured:
      return ProviderOutcome.policy_rejection(message, provider=provider)
    return ProviderOutcome.technical_failure(message, provider=provider)

  if is_policy_message(message):
    logger.warning("Classified %s error from %s as a policy rejection by message text.", exc.__class__.__name__, provider or "provider")
    return ProviderOutcome.policy_rejection(message, provider=provider)

  return ProviderOutcome.technical_failure(message, provider=provider)
