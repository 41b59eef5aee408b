"""Attach synthesized images to every image slot in a lesson.

Targets are found structurally: any object inside a section that carries an
`imagePrompt` or `imageBase64` key, together with its sibling objects in the same
list. Section types are never consulted, so new sections participate for free.
"""

from __future__ import annotations

import asyncio
import base64
import io
import logging
from dataclasses import dataclass, field
from typing import Any, Final

from PIL import Image, UnidentifiedImageError

from planwise.ai.providers.base import BatchImageRequest, BatchImageResult, ImageModel
from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import parse_section
from planwise.utils.ids import generate_correlation_id

logger = logging.getLogger(__name__)

PROMPT_KEY: Final[str] = "imagePrompt"
SLOT_KEY: Final[str] = "imageBase64"
ENRICHMENT_MODES: Final[frozenset[str]] = frozenset({"sequential", "pooled", "batch"})

_CONTEXT_KEYS: Final[tuple[str, ...]] = ("paragraphContext", "introduction", "context", "paragraph")
_DESCRIPTIVE_KEYS: Final[tuple[str, ...]] = ("title", "text", "sentence", "description")
_NO_TEXT: Final[str] = "No text or words should appear in the image."


@dataclass
class EnrichmentTarget:
  """One image slot: the live object to fill and the prompt that will be sent for it."""

  section_index: int
  path: tuple[str | int, ...]
  item: dict[str, Any]
  owner: dict[str, Any]
  prompt: str | None = None
  fallback: bool = False


@dataclass
class EnrichmentReport:
  """Summary of one enrichment pass; `targets` always equals `succeeded + failed`."""

  mode: str
  targets: int = 0
  succeeded: int = 0
  failed: int = 0
  skipped: int = 0
  fallback_prompts: int = 0
  errors: list[str] = field(default_factory=list)


def _text(value: Any) -> str | None:
  if isinstance(value, str) and value.strip():
    return value.strip()
  return None


def _first_text(sources: tuple[dict[str, Any], ...], keys: tuple[str, ...]) -> str | None:
  for key in keys:
    for source in sources:
      text = _text(source.get(key))
      if text:
        return text
  return None


def _has_slot(node: Any) -> bool:
  return isinstance(node, dict) and (PROMPT_KEY in node or SLOT_KEY in node)


def collect_targets(section_payloads: list[dict[str, Any]]) -> list[EnrichmentTarget]:
  """Walk section payloads in order and return every image slot, depth first."""
  targets: list[EnrichmentTarget] = []
  for section_index, payload in enumerate(section_payloads):
    if isinstance(payload, dict):
      _visit(payload, payload, section_index, (), targets, listed=False)
  return targets


def _visit(node: dict[str, Any], owner: dict[str, Any], section_index: int, path: tuple[str | int, ...], out: list[EnrichmentTarget], *, listed: bool) -> None:
  if listed or _has_slot(node):
    out.append(EnrichmentTarget(section_index=section_index, path=path, item=node, owner=owner))

  for key, value in node.items():
    if isinstance(value, dict):
      _visit(value, node, section_index, (*path, key), out, listed=False)
    elif isinstance(value, list):
      # Lists are homogeneous, so one slot-bearing object makes every sibling a target.
      siblings_listed = any(_has_slot(item) for item in value)
      for index, item in enumerate(value):
        if isinstance(item, dict):
          _visit(item, node, section_index, (*path, key, index), out, listed=siblings_listed)


def synthesize_fallback_prompt(item: dict[str, Any], owner: dict[str, Any] | None = None) -> str | None:
  """Build a minimal prompt from the fields next to an empty image slot."""
  owner = owner or {}

  term = _text(item.get("term")) or _text(item.get("word"))
  if term:
    definition = _text(item.get("definition"))
    detail = f" ({definition[:120]})" if definition else ""
    return f'A clear, simple illustration representing the word "{term}"{detail}. {_NO_TEXT}'

  question = _text(item.get("question"))
  if question:
    context = _first_text((item, owner), _CONTEXT_KEYS)
    context_line = f" Context: {context[:200]}." if context else ""
    return f'An illustration representing the discussion topic: "{question[:100]}".{context_line} The image should be visually engaging and help students think about the topic. {_NO_TEXT}'

  description = _first_text((item,), _DESCRIPTIVE_KEYS)
  if description:
    return f'An educational illustration of: "{description[:150]}". {_NO_TEXT}'

  return None


def reassemble_batch(correlation_ids: list[str], results: list[BatchImageResult]) -> list[bytes | None]:
  """Put batch results back in submission order; ids missing from the reply map to None."""
  by_id: dict[str, bytes | None] = {}
  expected = set(correlation_ids)

  for result in results:
    if result.correlation_id not in expected:
      logger.warning("Ignoring batch result with unknown correlation id %s.", result.correlation_id)
      continue
    if by_id.get(result.correlation_id) is None:
      by_id[result.correlation_id] = result.image

  return [by_id.get(correlation_id) for correlation_id in correlation_ids]


def _convert_to_webp(image_bytes: bytes) -> bytes:
  """Convert provider image bytes into a WebP payload."""
  image = Image.open(io.BytesIO(image_bytes))
  # Convert alpha-free and alpha images consistently to avoid mode-related encoder errors.
  converted = image.convert("RGBA") if image.mode not in {"RGB", "RGBA"} else image
  output = io.BytesIO()
  converted.save(output, format="WEBP", quality=88, method=6)
  return output.getvalue()


class IllustrationEnricher:
  """Fill image slots through an image-synthesis provider, isolating per-item failures."""

  def __init__(self, image_model: ImageModel, *, mode: str = "batch", concurrency: int = 4, batch_size: int = 10, convert_webp: bool = True) -> None:
    if mode not in ENRICHMENT_MODES:
      raise ValueError(f"Unsupported enrichment mode '{mode}'.")
    if concurrency <= 0 or batch_size <= 0:
      raise ValueError("Enrichment concurrency and batch size must be positive.")

    self._model = image_model
    self._mode = mode
    self._concurrency = concurrency
    self._batch_size = batch_size
    self._convert_webp = convert_webp

  @property
  def effective_mode(self) -> str:
    if self._mode == "batch" and not self._model.supports_batch:
      return "pooled"
    return self._mode

  async def enrich(self, document: LessonDocument) -> EnrichmentReport:
    """Fill every image slot in place and return what happened; never raises."""
    mode = self.effective_mode
    if mode != self._mode:
      logger.info("Image provider %s has no batch support; using pooled enrichment.", self._model.name)

    report = EnrichmentReport(mode=mode)
    payloads = [section.to_payload() for section in document.sections]
    targets = collect_targets(payloads)
    report.targets = len(targets)
    if not targets:
      return report

    sendable: list[EnrichmentTarget] = []
    for target in targets:
      prompt = _text(target.item.get(PROMPT_KEY))
      if prompt is None:
        prompt = synthesize_fallback_prompt(target.item, target.owner)
        if prompt is not None:
          target.fallback = True
          target.item[PROMPT_KEY] = prompt
          report.fallback_prompts += 1

      target.prompt = prompt
      target.item[SLOT_KEY] = None
      if prompt is None:
        report.skipped += 1
        logger.info("Image slot at section %d %s has no usable context; leaving it empty.", target.section_index, list(target.path))
        continue
      sendable.append(target)

    prompts = [target.prompt or "" for target in sendable]
    if mode == "batch":
      images = await self._run_batched(prompts, report)
    elif mode == "pooled":
      images = await self._run_pooled(prompts, report)
    else:
      images = await self._run_sequential(prompts, report)

    for target, image in zip(sendable, images):
      target.item[SLOT_KEY] = self._encode(image)

    report.succeeded = sum(1 for target in targets if target.item.get(SLOT_KEY))
    report.failed = report.targets - report.succeeded

    for section_index in sorted({target.section_index for target in targets}):
      document.replace_section(section_index, parse_section(payloads[section_index], section_index))

    logger.info("Enrichment (%s) filled %d of %d image slots; %d fallback prompts.", mode, report.succeeded, report.targets, report.fallback_prompts)
    return report

  async def _synthesize_one(self, prompt: str, report: EnrichmentReport) -> bytes | None:
    try:
      return await self._model.synthesize(prompt)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Image synthesis failed for prompt %r: %s", prompt[:80], exc)
      report.errors.append(str(exc))
      return None

  async def _run_sequential(self, prompts: list[str], report: EnrichmentReport) -> list[bytes | None]:
    images: list[bytes | None] = []
    for prompt in prompts:
      images.append(await self._synthesize_one(prompt, report))
    return images

  async def _run_pooled(self, prompts: list[str], report: EnrichmentReport) -> list[bytes | None]:
    semaphore = asyncio.Semaphore(self._concurrency)
    images: list[bytes | None] = [None] * len(prompts)

    async def _worker(index: int, prompt: str) -> None:
      async with semaphore:
        images[index] = await self._synthesize_one(prompt, report)

    await asyncio.gather(*(_worker(index, prompt) for index, prompt in enumerate(prompts)))
    return images

  async def _run_batched(self, prompts: list[str], report: EnrichmentReport) -> list[bytes | None]:
    images: list[bytes | None] = []
    for start in range(0, len(prompts), self._batch_size):
      chunk = prompts[start : start + self._batch_size]
      requests = [BatchImageRequest(correlation_id=generate_correlation_id(), prompt=prompt) for prompt in chunk]
      try:
        results = await self._model.synthesize_batch(requests)
      except Exception as exc:  # noqa: BLE001
        logger.warning("Batched image synthesis failed for %d prompts: %s", len(requests), exc)
        report.errors.append(str(exc))
        images.extend([None] * len(requests))
        continue
      images.extend(reassemble_batch([request.correlation_id for request in requests], results))
    return images

  def _encode(self, image: bytes | None) -> str | None:
    if not image:
      return None

    if self._convert_webp:
      try:
        image = _convert_to_webp(image)
      except (UnidentifiedImageError, OSError, ValueError) as exc:
        logger.warning("WebP conversion failed (%s); storing the provider image as-is.", exc)

    return base64.b64encode(image).decode("ascii")
