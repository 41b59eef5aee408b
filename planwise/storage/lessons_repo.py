"""Storage interfaces and records for lesson persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from planwise.schema.lesson import LessonDocument
from planwise.utils.ids import generate_lesson_id


@dataclass(frozen=True)
class LessonRecord:
  """Record stored in the lessons repository."""

  lesson_id: str
  owner_id: str
  session_id: str | None
  title: str
  provider: str | None
  is_error: bool
  created_at: str
  content: dict[str, Any]


class LessonRepository(Protocol):
  """Repository contract for lesson persistence."""

  async def save(self, document: LessonDocument, owner_id: str, session_id: str | None = None) -> str:
    """Persist a finalized lesson and return its identifier."""

  async def get(self, lesson_id: str) -> LessonRecord | None:
    """Fetch a lesson record by lesson identifier."""


class InMemoryLessonRepository:
  """Process-local repository for development and tests."""

  def __init__(self) -> None:
    self._records: dict[str, LessonRecord] = {}

  async def save(self, document: LessonDocument, owner_id: str, session_id: str | None = None) -> str:
    lesson_id = generate_lesson_id()
    created_at = datetime.now(timezone.utc).isoformat()
    self._records[lesson_id] = LessonRecord(lesson_id=lesson_id, owner_id=owner_id, session_id=session_id, title=document.title, provider=document.provider, is_error=document.is_error, created_at=created_at, content=document.to_payload())
    return lesson_id

  async def get(self, lesson_id: str) -> LessonRecord | None:
    return self._records.get(lesson_id)

  def __len__(self) -> int:
    return len(self._records)
