"""Unit tests for section typing and lesson document round trips."""

from __future__ import annotations

import pytest

from planwise.schema.lesson import LessonDocument
from planwise.schema.sections import (
  DiscussionSection,
  ErrorKind,
  ErrorSection,
  GenericSection,
  PatternPracticeSection,
  UnknownSection,
  VocabularySection,
  parse_section,
  parse_sections,
)


def test_unknown_section_type_is_carried_through() -> None:
  """Tags outside the known set keep their payload verbatim."""
  raw = {"type": "vocab", "items": [{"w": 1}], "note": None}
  section = parse_section(raw)
  assert isinstance(section, UnknownSection)
  assert section.to_payload() == raw


def test_vocabulary_section_keeps_unmodelled_keys() -> None:
  """Known sections serialize back to the exact keys they were given."""
  raw = {
    "type": "vocabulary",
    "title": "Space words",
    "teacherTip": "Say them aloud.",
    "words": [
      {"term": "orbit", "definition": "a curved path", "partOfSpeech": "noun", "imagePrompt": "A planet orbiting", "extraKey": 1},
      {"term": "comet"},
    ],
  }
  section = parse_section(raw)
  assert isinstance(section, VocabularySection)
  assert section.words[0].part_of_speech == "noun"
  assert section.words[0].image_prompt == "A planet orbiting"
  assert section.to_payload() == raw


@pytest.mark.parametrize(
  ("raw", "model"),
  [
    ({"type": "warmup", "content": "Hello"}, GenericSection),
    ({"type": "sentenceFrames", "frames": [{"patternTemplate": "I like ___.", "examples": ["I like tea."]}]}, PatternPracticeSection),
    ({"type": "sentenceFrames", "pattern": "I can ___.", "examples": ["I can swim."]}, PatternPracticeSection),
    ({"type": "discussion", "paragraphContext": "Mars is cold.", "questions": [{"question": "Why go?", "paragraphContext": "Mars is cold."}]}, DiscussionSection),
    ({"type": "error", "title": "Oops", "content": "Nope", "errorKind": "policy"}, ErrorSection),
  ],
)
def test_known_section_types_dispatch_to_their_model(raw: dict, model: type) -> None:
  """Each known tag maps to one variant and survives a round trip."""
  section = parse_section(raw)
  assert isinstance(section, model)
  assert section.to_payload() == raw


def test_pattern_frame_template_prefers_the_template_field() -> None:
  """Frames expose one template whichever field name the provider used."""
  section = parse_section({"type": "sentenceFrames", "frames": [{"patternTemplate": "A ___", "pattern": "B ___"}, {"pattern": "C ___"}]})
  assert isinstance(section, PatternPracticeSection)
  assert [frame.template for frame in section.frames or []] == ["A ___", "C ___"]


@pytest.mark.parametrize(
  "raw",
  [
    "just a string",
    None,
    {"title": "No type"},
    {"type": "   "},
    {"type": 7},
    {"type": "vocabulary", "words": "not a list"},
  ],
)
def test_malformed_section_becomes_error_section(raw: object) -> None:
  """Unreadable elements are replaced by a structure error section."""
  section = parse_section(raw, index=2)
  assert isinstance(section, ErrorSection)
  assert section.error_kind is ErrorKind.STRUCTURE
  assert "Section 3" in (section.content or "")
  assert section.to_payload()["type"] == "error"


def test_unknown_section_with_bad_shared_field_becomes_error_section() -> None:
  """Unknown tags still have to satisfy the shared section fields."""
  sections = parse_sections([{"type": "warmup"}, {"type": "vocab", "title": 7}])
  assert len(sections) == 2
  assert isinstance(sections[1], ErrorSection)
  assert "Section 2" in (sections[1].content or "")


def test_parse_sections_keeps_positions() -> None:
  """A bad element is replaced in place; the list length never changes."""
  sections = parse_sections([{"type": "warmup"}, 42, {"type": "vocab"}])
  assert len(sections) == 3
  assert isinstance(sections[0], GenericSection)
  assert isinstance(sections[1], ErrorSection)
  assert isinstance(sections[2], UnknownSection)


def test_lesson_document_round_trip_with_unknown_section() -> None:
  """A minimal lesson with an unrecognized section serializes back unchanged."""
  payload = {"title": "x", "sections": [{"type": "vocab"}]}
  document = LessonDocument.from_payload(payload)
  assert not document.is_error
  assert document.to_payload() == payload


def test_lesson_document_keeps_top_level_extras_and_provider() -> None:
  """Extra metadata survives and the provider is filled only when absent."""
  document = LessonDocument.from_payload({"title": "T", "level": "B1", "estimatedMinutes": 30, "sections": [{"type": "warmup"}]}, provider="gemini")
  payload = document.to_payload()
  assert payload["estimatedMinutes"] == 30
  assert payload["provider"] == "gemini"
  assert payload["level"] == "B1"

  kept = LessonDocument.from_payload({"title": "T", "provider": "openrouter", "sections": []}, provider="gemini")
  assert kept.provider == "openrouter"


def test_replace_section_swaps_in_place() -> None:
  """Sections can be replaced by index without disturbing order."""
  document = LessonDocument.from_payload({"title": "T", "sections": [{"type": "warmup"}, {"type": "reading"}]})
  document.replace_section(1, parse_section({"type": "quiz"}))
  assert [section.type for section in document.sections] == ["warmup", "quiz"]


@pytest.mark.parametrize(
  ("metadata", "expected"),
  [
    ({"level": 3}, {"level": "3"}),
    ({"level": 2.5}, {"level": "2.5"}),
    ({"level": True}, {}),
    ({"level": {"cefr": "B1"}}, {}),
    ({"provider": ["gemini"]}, {}),
    ({"error": "Invalid lesson structure"}, {}),
  ],
)
def test_lesson_metadata_is_coerced_or_dropped(metadata: dict, expected: dict) -> None:
  """Wrong-typed top-level metadata never prevents the lesson from being typed."""
  document = LessonDocument.from_payload({"title": "T", **metadata, "sections": [{"type": "warmup"}]})
  assert not document.is_error
  assert document.to_payload() == {"title": "T", **expected, "sections": [{"type": "warmup"}]}


@pytest.mark.parametrize(
  ("section_context", "question", "expected"),
  [
    ("Mars is cold.", {"question": "Why go?"}, "Mars is cold."),
    ("Mars is cold.", {"question": "Why go?", "paragraphContext": "Own text."}, "Own text."),
    (None, {"question": "Why go?", "introduction": "Rockets are loud. They are fast."}, "Rockets are loud. They are fast."),
    (None, {"question": "Why go?", "introduction": "Would you go?", "context": "Space is big."}, "Space is big."),
    (None, {"question": "Why go?", "paragraph": "Stars shine."}, "Stars shine."),
    (None, {"question": "Why go?"}, None),
  ],
)
def test_discussion_questions_receive_paragraph_context(section_context: str | None, question: dict, expected: str | None) -> None:
  """Each question carries a paragraph for the UI when one can be found."""
  raw: dict = {"type": "discussion", "questions": [question]}
  if section_context:
    raw["paragraphContext"] = section_context

  section = parse_section(raw)

  assert isinstance(section, DiscussionSection)
  assert section.questions[0].paragraph_context == expected
  assert section.to_payload()["questions"][0].get("paragraphContext") == expected
