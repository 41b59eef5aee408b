"""Identifier utilities."""

from __future__ import annotations

import re
import uuid

# Client-supplied request ids are echoed into logs and headers, so keep them short and printable.
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


def generate_lesson_id() -> str:
  """Return a new lesson identifier."""
  return str(uuid.uuid4())


def generate_correlation_id() -> str:
  """Return an id that ties one image request in a batch to its result."""
  return str(uuid.uuid4())


def resolve_request_id(incoming: str | None) -> str:
  """Reuse a well-formed upstream request id, otherwise mint one."""
  if incoming and _REQUEST_ID_RE.match(incoming):
    return incoming
  return str(uuid.uuid4())
