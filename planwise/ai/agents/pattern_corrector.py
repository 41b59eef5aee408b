"""Best-effort alignment of sentence-pattern examples to their declared template."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from planwise.ai.agents.prompts import render_pattern_correction_prompt
from planwise.ai.errors import classify_provider_exception
from planwise.ai.json_parser import parse_structured_text
from planwise.ai.pipeline.contracts import CORRECTION_SAMPLING, SamplingConfig, UsageRecord
from planwise.ai.providers.base import AIModel
from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import PatternPracticeSection

logger = logging.getLogger(__name__)


@dataclass
class CorrectionReport:
  """Counts of pattern groups sent for correction and accepted replies."""

  attempted: int = 0
  corrected: int = 0
  usage: list[UsageRecord] = field(default_factory=list)


def shapes_match(original: list[Any], candidate: Any) -> bool:
  """A reply is usable only when it mirrors the original list item by item."""
  if not isinstance(candidate, list) or len(candidate) != len(original):
    return False

  for before, after in zip(original, candidate):
    if isinstance(before, str):
      if not isinstance(after, str) or not after.strip():
        return False
    elif isinstance(before, dict):
      if not isinstance(after, dict) or not set(before).issubset(after):
        return False
    elif type(before) is not type(after):
      return False

  return True


class PatternExampleCorrector:
  """Ask a language model to rewrite examples so they follow their pattern template."""

  def __init__(self, model: AIModel, *, sampling: SamplingConfig = CORRECTION_SAMPLING) -> None:
    self._model = model
    self._sampling = sampling

  async def correct_examples(self, template: str, examples: list[Any], topic: str, report: CorrectionReport | None = None) -> list[Any]:
    """Return corrected examples, or the original list object on any failure."""
    if not template or not template.strip() or not examples:
      return examples

    if report is not None:
      report.attempted += 1

    prompt = render_pattern_correction_prompt(template, examples, topic)
    try:
      response = await self._model.generate(prompt, self._sampling)
    except Exception as exc:  # noqa: BLE001
      outcome = classify_provider_exception(exc, getattr(self._model, "provider", None))
      logger.warning("Pattern correction call failed (%s): %s; keeping original examples.", outcome.kind.value, outcome.message)
      return examples

    if report is not None and response.usage:
      report.usage.append(UsageRecord(provider=response.provider, model=response.model, purpose="pattern_correction", usage=response.usage))

    parsed = parse_structured_text(response.content)
    if not parsed.ok:
      logger.warning("Pattern correction reply could not be parsed: %s; keeping original examples.", parsed.error)
      return examples

    if not shapes_match(examples, parsed.value):
      logger.warning("Pattern correction reply did not match the original example shapes; keeping original examples.")
      return examples

    if report is not None:
      report.corrected += 1
    return parsed.value

  async def correct_document(self, document: LessonDocument, topic: str) -> CorrectionReport:
    """Correct every pattern-practice section in place; never raises."""
    report = CorrectionReport()

    for section in document.sections:
      if not isinstance(section, PatternPracticeSection):
        continue

      for frame in section.frames or []:
        template = frame.template
        if template and frame.examples:
          frame.examples = await self.correct_examples(template, frame.examples, topic, report)

      # Older lessons declare one pattern with its examples on the section itself.
      if section.pattern and section.examples:
        section.examples = await self.correct_examples(section.pattern, section.examples, topic, report)

    if report.attempted:
      logger.info("Pattern correction accepted %d of %d replies.", report.corrected, report.attempted)
    return report
