"""Rule-based repair of near-valid JSON produced by language models.

The engine only runs after a strict parse has failed. Each rule targets one
deformation seen in provider output and is safe to apply to text that does not
exhibit it, so rules can be tested one at a time and their order never changes.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n|\t")
_ESCAPED_SINGLE_QUOTE_RE = re.compile(r"(?<!\\)\\'")
_DUPLICATE_COMMA_RE = re.compile(r",(?:\s*,)+")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_MISQUOTED_KEY_RE = re.compile(r"""([{,]\s*)['"]([A-Za-z_][\w\- ]*?)['"](\s*):""")
_VALID_ESCAPES = frozenset('"\\/bfnrt')
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


@dataclass(frozen=True)
class RepairRule:
  """A named textual fix applied by the repair engine."""

  name: str
  apply: Callable[[str], str]


@dataclass(frozen=True)
class RepairReport:
  """Repaired text plus the names of the rules that changed it."""

  text: str
  applied: tuple[str, ...]

  @property
  def changed(self) -> bool:
    return bool(self.applied)


def extract_json_block(raw: str) -> str | None:
  """Locate the first balanced JSON object/array for recovery parsing."""
  start_index: int | None = None
  depth = 0
  in_string = False
  escape = False

  # Scan the text for a balanced JSON payload while honoring string escapes.
  for index, char in enumerate(raw):
    if start_index is None:
      if char in "{[":
        start_index = index
        depth = 1

      continue

    if in_string:
      if escape:
        escape = False
        continue

      if char == "\\":
        escape = True
        continue

      if char == '"':
        in_string = False

      continue

    if char == '"':
      in_string = True
      continue

    if char in "{[":
      depth += 1
      continue

    if char in "}]":
      depth -= 1

      if depth == 0:
        return raw[start_index : index + 1]

  return None


def _extract_block(raw: str) -> str:
  block = extract_json_block(raw)
  return raw if block is None else block


def _escape_stray_backslashes(raw: str) -> str:
  """Double every backslash that does not start a valid JSON escape."""
  output: list[str] = []
  index = 0
  length = len(raw)

  while index < length:
    char = raw[index]
    if char != "\\":
      output.append(char)
      index += 1
      continue

    following = raw[index + 1] if index + 1 < length else ""
    if following and following in _VALID_ESCAPES:
      output.append(raw[index : index + 2])
      index += 2
      continue

    hex_run = raw[index + 2 : index + 6]
    if following == "u" and len(hex_run) == 4 and all(c in _HEX_DIGITS for c in hex_run):
      output.append(raw[index : index + 6])
      index += 6
      continue

    output.append("\\\\")
    index += 1

  return "".join(output)


def _quote_bare_keys(raw: str) -> str:
  """Wrap bare object keys in quotes to handle JS-style output."""
  output: list[str] = []
  in_string = False
  escape = False
  expecting_key = False
  index = 0

  # Walk the payload and only transform keys outside of strings.
  while index < len(raw):
    char = raw[index]

    if in_string:
      output.append(char)
      index += 1
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      output.append(char)
      in_string = True
      index += 1
      continue

    if char in "{,":
      output.append(char)
      expecting_key = True
      index += 1
      continue

    if char in "}:[]":
      output.append(char)
      expecting_key = False
      index += 1
      continue

    if not expecting_key or char.isspace():
      output.append(char)
      index += 1
      continue

    # Quote bare keys that look like identifiers and precede a colon.
    if char.isalpha() or char == "_":
      start = index
      index += 1

      while index < len(raw) and (raw[index].isalnum() or raw[index] in "_-"):
        index += 1

      key = raw[start:index]
      lookahead = index

      while lookahead < len(raw) and raw[lookahead].isspace():
        lookahead += 1

      if lookahead < len(raw) and raw[lookahead] == ":":
        output.append(f'"{key}"')
        output.append(raw[index:lookahead])
        output.append(":")
        expecting_key = False
        index = lookahead + 1
        continue

      output.append(key)
      expecting_key = False
      continue

    output.append(char)
    expecting_key = False
    index += 1

  return "".join(output)


def _normalize_key_quotes(raw: str) -> str:
  """Rewrite single or mismatched quotes around keys, leaving string values alone."""
  output: list[str] = []
  in_string = False
  escape = False
  index = 0

  while index < len(raw):
    char = raw[index]

    if in_string:
      output.append(char)
      index += 1
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char in "{,":
      match = _MISQUOTED_KEY_RE.match(raw, index)
      if match is not None:
        output.append(f'{match.group(1)}"{match.group(2)}"{match.group(3)}:')
        index = match.end()
        continue

    if char == '"':
      in_string = True

    output.append(char)
    index += 1

  return "".join(output)


def strip_whitespace_outside_strings(raw: str) -> str:
  """Drop whitespace between tokens while leaving quoted text untouched."""
  output: list[str] = []
  in_string = False
  escaped = False

  for char in raw:
    if escaped:
      escaped = False
      output.append(char)
      continue

    if char == "\\":
      escaped = True
      output.append(char)
      continue

    if char == '"':
      in_string = not in_string
      output.append(char)
      continue

    if not in_string and char in " \t\r\n":
      continue

    output.append(char)

  return "".join(output)


REPAIR_RULES: tuple[RepairRule, ...] = (
  RepairRule("extract_json_block", _extract_block),
  RepairRule("strip_control_characters", lambda text: _CONTROL_CHARS_RE.sub("", text)),
  RepairRule("flatten_line_breaks", lambda text: _LINE_BREAK_RE.sub(" ", text)),
  RepairRule("unescape_single_quotes", lambda text: _ESCAPED_SINGLE_QUOTE_RE.sub("'", text)),
  RepairRule("escape_stray_backslashes", _escape_stray_backslashes),
  RepairRule("collapse_duplicate_commas", lambda text: _DUPLICATE_COMMA_RE.sub(",", text)),
  RepairRule("strip_trailing_commas", lambda text: _TRAILING_COMMA_RE.sub(r"\1", text)),
  RepairRule("normalize_key_quotes", _normalize_key_quotes),
  RepairRule("quote_bare_keys", _quote_bare_keys),
)


def repair_json_text(text: str, rules: tuple[RepairRule, ...] = REPAIR_RULES) -> RepairReport:
  """Apply every repair rule in order, then squeeze whitespace outside strings."""
  applied: list[str] = []
  current = text

  for rule in rules:
    updated = rule.apply(current)
    if updated != current:
      applied.append(rule.name)
      current = updated

  squeezed = strip_whitespace_outside_strings(current)
  if squeezed != current:
    applied.append("strip_whitespace_outside_strings")

  return RepairReport(text=squeezed, applied=tuple(applied))
