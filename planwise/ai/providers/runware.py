"""Runware image-synthesis provider over its REST task API."""

from __future__ import annotations

import base64
import binascii
import logging
import uuid
from typing import Any, Final

import httpx

from planwise.ai.errors import ImageProviderError
from planwise.ai.providers.base import BatchImageRequest, BatchImageResult, ImageModel

logger = logging.getLogger(__name__)

_DEFAULT_BASE_URL: Final[str] = "https://api.runware.ai/v1"
_DEFAULT_MODEL: Final[str] = "runware:100@1"


class RunwareImageModel(ImageModel):
  """Runware client; every task in a request carries a taskUUID that the response echoes back."""

  def __init__(self, api_key: str | None, *, base_url: str | None = None, model: str = _DEFAULT_MODEL, size: int = 256, timeout_seconds: float = 60.0, transport: httpx.AsyncBaseTransport | None = None) -> None:
    if not api_key:
      raise ValueError("RUNWARE_API_KEY environment variable is required")

    self.name = "runware"
    self._api_key = api_key
    self._base_url = base_url or _DEFAULT_BASE_URL
    self._model = model
    self._size = size
    self._timeout = timeout_seconds
    self._transport = transport

  @property
  def supports_batch(self) -> bool:
    return True

  def _build_client(self) -> httpx.AsyncClient:
    """Build an httpx client for one synthesis call."""
    # Never trust environment proxy variables for provider calls.
    return httpx.AsyncClient(transport=self._transport, timeout=self._timeout, trust_env=False)

  def _task(self, correlation_id: str, prompt: str) -> dict[str, Any]:
    return {
      "taskType": "imageInference",
      "taskUUID": correlation_id,
      "positivePrompt": prompt,
      "model": self._model,
      "width": self._size,
      "height": self._size,
      "numberResults": 1,
      "outputType": "base64Data",
      "outputFormat": "PNG",
    }

  async def synthesize(self, prompt: str) -> bytes | None:
    """Generate one image; raises ImageProviderError when the call fails."""
    correlation_id = str(uuid.uuid4())
    results = await self.synthesize_batch([BatchImageRequest(correlation_id=correlation_id, prompt=prompt)])
    for result in results:
      if result.correlation_id == correlation_id:
        if result.error:
          raise ImageProviderError(f"Runware task {correlation_id} failed: {result.error}")
        return result.image
    return None

  async def synthesize_batch(self, requests: list[BatchImageRequest]) -> list[BatchImageResult]:
    """Submit every request in one call and return whatever the provider sent back, in its order."""
    if not requests:
      return []

    tasks = [self._task(request.correlation_id, request.prompt) for request in requests]
    headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}

    try:
      async with self._build_client() as client:
        response = await client.post(self._base_url, json=tasks, headers=headers)
        response.raise_for_status()
        body = response.json()
        return await self._collect_results(client, body)

    except httpx.HTTPStatusError as e:
      logger.error("Runware returned %s for %d task(s): %s", e.response.status_code, len(tasks), e.response.text[:500])
      raise ImageProviderError(f"Runware request failed with status {e.response.status_code}") from e
    except httpx.RequestError as e:
      logger.error("Runware request for %d task(s) failed: %s", len(tasks), e)
      raise ImageProviderError(f"Runware request failed: {e}") from e
    except ValueError as e:
      raise ImageProviderError(f"Runware returned an unreadable body: {e}") from e

  async def _collect_results(self, client: httpx.AsyncClient, body: Any) -> list[BatchImageResult]:
    if not isinstance(body, dict):
      raise ImageProviderError("Runware returned an unexpected payload.")

    results: list[BatchImageResult] = []
    for error in body.get("errors") or []:
      task_id = error.get("taskUUID") if isinstance(error, dict) else None
      message = error.get("message") if isinstance(error, dict) else str(error)
      logger.warning("Runware reported an error for task %s: %s", task_id or "unknown", message)
      if task_id:
        results.append(BatchImageResult(correlation_id=task_id, error=message or "unknown error"))

    for item in body.get("data") or []:
      if not isinstance(item, dict) or not item.get("taskUUID"):
        continue
      task_id = item["taskUUID"]
      image = await self._read_image(client, item)
      results.append(BatchImageResult(correlation_id=task_id, image=image, error=None if image else "no image data"))

    return results

  async def _read_image(self, client: httpx.AsyncClient, item: dict[str, Any]) -> bytes | None:
    """Decode inline base64 data, falling back to downloading the image URL."""
    encoded = item.get("imageBase64Data")
    if encoded:
      try:
        return base64.b64decode(encoded, validate=True)
      except (binascii.Error, ValueError):
        logger.warning("Runware task %s returned invalid base64 data.", item.get("taskUUID"))
        return None

    url = item.get("imageURL")
    if not url:
      return None

    try:
      response = await client.get(url)
      response.raise_for_status()
    except httpx.HTTPError as e:
      logger.warning("Downloading Runware image for task %s failed: %s", item.get("taskUUID"), e)
      return None
    return response.content
