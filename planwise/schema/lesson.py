"""Lesson document model."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SerializeAsAny

from planwise.schema.sections import BaseSection, ErrorSection, Section, parse_sections

logger = logging.getLogger(__name__)

JsonDict = dict[str, Any]

_METADATA_KEYS = frozenset({"sections", "level", "provider", "error"})


class LessonDocument(BaseModel):
  """A recovered lesson: title, level tag and ordered sections.

  Unknown top-level keys are kept so a provider's extra metadata survives the round trip.
  """

  model_config = ConfigDict(populate_by_name=True, extra="allow")

  title: str
  level: str | None = None
  sections: list[SerializeAsAny[BaseSection]] = Field(default_factory=list)
  provider: str | None = None
  error: str | None = None

  @classmethod
  def from_payload(cls, payload: JsonDict, *, provider: str | None = None, error: str | None = None) -> LessonDocument:
    """Type a validated payload; malformed sections become error sections in place.

    Top-level metadata from a provider is advisory. A numeric `level` is stringified,
    other non-string values and a non-string `provider` are dropped, and an `error` key
    in the payload is ignored. Only the `error` argument marks a failed generation.
    """
    data = {key: value for key, value in payload.items() if key not in _METADATA_KEYS}
    if "error" in payload:
      logger.info("Ignoring provider-supplied error field on lesson %r.", payload.get("title"))

    reported = payload.get("provider")
    data["provider"] = reported if isinstance(reported, str) and reported else provider
    data["level"] = _coerce_level(payload.get("level"))
    return cls(**data, error=error, sections=parse_sections(payload.get("sections") or []))

  @property
  def is_error(self) -> bool:
    """True for documents that stand in for a failed generation."""
    return self.error is not None

  @property
  def error_sections(self) -> list[ErrorSection]:
    return [section for section in self.sections if isinstance(section, ErrorSection)]

  def replace_section(self, index: int, section: Section) -> None:
    self.sections[index] = section

  def to_payload(self) -> JsonDict:
    """Serialize to the wire shape the UI renders."""
    payload = self.model_dump(mode="json", exclude={"sections"})
    for key in ("level", "provider", "error"):
      if payload.get(key) is None:
        payload.pop(key, None)
    payload["sections"] = [section.to_payload() for section in self.sections]
    return payload


def _coerce_level(value: Any) -> str | None:
  if isinstance(value, str):
    return value
  if isinstance(value, (int, float)) and not isinstance(value, bool):
    return str(value)
  if value is not None:
    logger.info("Dropping lesson level of type %s.", type(value).__name__)
  return None
