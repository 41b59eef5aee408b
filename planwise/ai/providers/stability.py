"""Stability AI image-synthesis provider (single image per call)."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Final

import httpx

from planwise.ai.errors import ImageProviderError
from planwise.ai.providers.base import ImageModel

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL: Final[str] = "https://api.stability.ai/v1/generation/stable-diffusion-v1-6/text-to-image"
_NEGATIVE_PROMPT: Final[str] = "text, words, letters, watermark, signature, blurry, distorted"


class StabilityImageModel(ImageModel):
  """Stability text-to-image client."""

  def __init__(self, api_key: str | None, *, base_url: str | None = None, size: int = 512, timeout_seconds: float = 60.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    if not api_key:
      raise ValueError("STABILITY_API_KEY environment variable is required")

    self.name = "stability"
    self._api_key = api_key
    self._base_url = base_url or _DEFAULT_BASE_URL
    self._size = size
    self._timeout = timeout_seconds
    self._transport = transport

  async def synthesize(self, prompt: str) -> bytes | None:
    """Generate one image; raises ImageProviderError when the call fails."""
    payload = {
      "text_prompts": [{"text": prompt}, {"text": _NEGATIVE_PROMPT, "weight": -0.7}],
      "height": self._size,
      "width": self._size,
      "samples": 1,
      "cfg_scale": 7,
      "steps": 25,
    }
    headers = {"Authorization": f"Bearer {self._api_key}", "Accept": "application/json"}

    try:
      async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout, trust_env=False) as client:
        response = await client.post(self._base_url, json=payload, headers=headers)
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPStatusError as e:
      logger.error("Stability returned %s: %s", e.response.status_code, e.response.text[:500])
      raise ImageProviderError(f"Stability request failed with status {e.response.status_code}") from e
    except httpx.RequestError as e:
      raise ImageProviderError(f"Stability request failed: {e}") from e
    except ValueError as e:
      raise ImageProviderError(f"Stability returned an unreadable body: {e}") from e

    artifacts = body.get("artifacts") if isinstance(body, dict) else None
    if not artifacts or not isinstance(artifacts[0], dict) or not artifacts[0].get("base64"):
      logger.warning("Stability response did not contain image data.")
      return None

    try:
      return base64.b64decode(artifacts[0]["base64"], validate=True)
    except (binascii.Error, ValueError) as e:
      raise ImageProviderError("Stability returned invalid base64 data.") from e
