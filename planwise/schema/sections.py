"""Section variants for generated lessons.

Sections form a tagged union keyed by `type`. The set of known kinds is closed;
anything else becomes an `UnknownSection` that keeps its tag and payload, and any
element that cannot be read at all becomes an `ErrorSection` in the same position.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

JsonDict = dict[str, Any]


class SectionKind(str, Enum):
  """Closed set of section tags the pipeline understands."""

  WARMUP = "warmup"
  READING = "reading"
  VOCABULARY = "vocabulary"
  COMPREHENSION = "comprehension"
  PATTERN_PRACTICE = "sentenceFrames"
  DISCUSSION = "discussion"
  GRAMMAR = "grammar"
  QUIZ = "quiz"
  ERROR = "error"


class ErrorKind(str, Enum):
  """Why an error section replaced generated content."""

  STRUCTURE = "structure"
  POLICY = "policy"
  TECHNICAL = "technical"


class _LessonModel(BaseModel):
  """Camel-case wire names, unknown keys kept verbatim."""

  model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class BaseSection(_LessonModel):
  """Fields shared by every section variant."""

  type: str
  title: str | None = None

  def to_payload(self) -> JsonDict:
    """Serialize back to the wire shape, keeping only the keys that were provided."""
    payload = self.model_dump(mode="json", by_alias=True, exclude_unset=True)
    payload.pop("type", None)
    return {"type": self.type, **payload}


class VocabularyEntry(_LessonModel):
  term: str | None = None
  definition: str | None = None
  example: str | None = None
  pronunciation: Any = None
  part_of_speech: str | None = None
  image_prompt: str | None = None
  image_base64: str | None = None


class ComprehensionQuestion(_LessonModel):
  question: str | None = None
  answer: Any = None
  options: list[Any] | None = None


class PatternFrame(_LessonModel):
  """One fill-in-the-blank pattern with worked examples."""

  pattern_template: str | None = None
  pattern: str | None = None
  examples: list[str | JsonDict] = Field(default_factory=list)

  @property
  def template(self) -> str | None:
    return self.pattern_template or self.pattern


class DiscussionQuestion(_LessonModel):
  question: str | None = None
  paragraph_context: str | None = None
  image_prompt: str | None = None
  image_base64: str | None = None

  def borrowed_context(self) -> str | None:
    """Paragraph text some replies put under other keys."""
    extra = self.model_extra or {}
    introduction = extra.get("introduction")
    if isinstance(introduction, str) and "." in introduction and "?" not in introduction:
      return introduction
    for key in ("context", "paragraph"):
      value = extra.get(key)
      if isinstance(value, str) and value.strip():
        return value
    return None


class GenericSection(BaseSection):
  """Known section kinds without fields the pipeline needs to reach."""

  type: Literal["warmup", "reading", "grammar", "quiz"]


class VocabularySection(BaseSection):
  type: Literal["vocabulary"] = "vocabulary"
  words: list[VocabularyEntry] = Field(default_factory=list)


class ComprehensionSection(BaseSection):
  type: Literal["comprehension"] = "comprehension"
  questions: list[ComprehensionQuestion] = Field(default_factory=list)


class PatternPracticeSection(BaseSection):
  """Sentence-frame practice; `frames` is current, `pattern` + `examples` is the legacy layout."""

  type: Literal["sentenceFrames"] = "sentenceFrames"
  frames: list[PatternFrame] | None = None
  pattern: str | None = None
  examples: list[str | JsonDict] | None = None


class DiscussionSection(BaseSection):
  type: Literal["discussion"] = "discussion"
  paragraph_context: str | None = None
  questions: list[DiscussionQuestion] = Field(default_factory=list)

  @model_validator(mode="after")
  def _fill_question_context(self) -> DiscussionSection:
    """Questions without their own paragraph take the section's or a borrowed one."""
    for question in self.questions:
      if question.paragraph_context:
        continue
      context = self.paragraph_context or question.borrowed_context()
      if context:
        question.paragraph_context = context
    return self


class ErrorSection(BaseSection):
  """User-visible placeholder for content that could not be produced."""

  type: Literal["error"] = "error"
  content: str | None = None
  error_kind: ErrorKind | None = None


class UnknownSection(BaseSection):
  """Section with a tag outside the known set; payload is carried through untouched."""


Section = GenericSection | VocabularySection | ComprehensionSection | PatternPracticeSection | DiscussionSection | ErrorSection | UnknownSection

_SECTION_MODELS: dict[SectionKind, type[BaseSection]] = {
  SectionKind.WARMUP: GenericSection,
  SectionKind.READING: GenericSection,
  SectionKind.GRAMMAR: GenericSection,
  SectionKind.QUIZ: GenericSection,
  SectionKind.VOCABULARY: VocabularySection,
  SectionKind.COMPREHENSION: ComprehensionSection,
  SectionKind.PATTERN_PRACTICE: PatternPracticeSection,
  SectionKind.DISCUSSION: DiscussionSection,
  SectionKind.ERROR: ErrorSection,
}


def error_section(*, title: str, content: str, kind: ErrorKind) -> ErrorSection:
  """Build an error section with every wire field marked as provided."""
  return ErrorSection(type="error", title=title, content=content, error_kind=kind)


def parse_section(raw: Any, index: int = 0) -> Section:
  """Dispatch one raw section payload to its variant."""
  if not isinstance(raw, dict) or not isinstance(raw.get("type"), str) or not raw["type"].strip():
    logger.warning("Section %d is malformed (%s); replacing with an error section.", index, type(raw).__name__)
    return _malformed(index)

  try:
    model = _SECTION_MODELS[SectionKind(raw["type"])]
  except ValueError:
    model = UnknownSection

  try:
    return model.model_validate(raw)
  except ValidationError as exc:
    logger.warning("Section %d of type %s failed validation: %s", index, raw["type"], exc.errors(include_url=False, include_input=False))
    return _malformed(index)


def parse_sections(raw_sections: list[Any]) -> list[Section]:
  """Parse a section list position by position; the output length always matches the input."""
  return [parse_section(raw, index) for index, raw in enumerate(raw_sections)]


def _malformed(index: int) -> ErrorSection:
  return error_section(title="Section Unavailable", content=f"Section {index + 1} could not be read and was left out of this lesson.", kind=ErrorKind.STRUCTURE)
