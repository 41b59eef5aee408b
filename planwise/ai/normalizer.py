"""Strip wrapper artifacts from raw language-model output."""

from __future__ import annotations

import re

_FENCE_RE = re.compile(r"^```(?:[A-Za-z0-9_+-]+)?[ \t]*(?:\r?\n|(?=[{\[]))(?P<body>.*?)\s*```$", re.DOTALL)
_TYPE_LABEL_RE = re.compile(r"^(?:json|javascript)(?:[ \t]*\r?\n|[ \t]+(?=[{\[]))", re.IGNORECASE)
_COMMENTARY_RE = re.compile(r"^(?:(?:sure|certainly|of course|okay)[!,.]?\s+)?(?:here(?:'s| is)|the following is|below is)\b[^{\[]*(?=[{\[])", re.IGNORECASE)
_UNESCAPED_QUOTE_RE = re.compile(r'(?<!\\)"')


def normalize_response(text: str) -> str:
  """Return `text` with known wrapper artifacts removed.

  The steps run in a fixed order and repeat until nothing changes. Each step either
  leaves the string alone or makes it shorter, so the loop terminates and a second
  call is always a no-op.
  """
  if not isinstance(text, str):
    return text

  current = text.strip()
  while True:
    updated = _normalize_once(current)
    if updated == current:
      return current
    current = updated


def _normalize_once(text: str) -> str:
  text = _strip_fence(text).strip()
  text = _strip_type_label(text).strip()
  text = _strip_wrapping_quotes(text).strip()
  return _strip_commentary(text).strip()


def _strip_fence(text: str) -> str:
  """Unwrap a fenced block only when it spans the whole string."""
  match = _FENCE_RE.match(text)
  if match is None:
    return text
  return match.group("body")


def _strip_type_label(text: str) -> str:
  return _TYPE_LABEL_RE.sub("", text, count=1)


def _strip_wrapping_quotes(text: str) -> str:
  """Remove one layer of quotes around an object or array literal."""
  if len(text) < 2 or text[0] != text[-1] or text[0] not in {'"', "'"}:
    return text

  inner = text[1:-1].strip()
  if not inner or inner[0] not in "{[" or inner[-1] not in "}]":
    return text

  # A JSON document serialized as a string carries escaped quotes only.
  if '\\"' in inner and _UNESCAPED_QUOTE_RE.search(inner) is None:
    inner = inner.replace('\\"', '"')

  return inner


def _strip_commentary(text: str) -> str:
  return _COMMENTARY_RE.sub("", text, count=1)
