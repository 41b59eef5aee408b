"""Unit tests for the rule-based JSON repair engine."""

from __future__ import annotations

import json

import pytest

from planwise.ai.json_repair import REPAIR_RULES, RepairRule, extract_json_block, repair_json_text, strip_whitespace_outside_strings


@pytest.mark.parametrize(
  ("raw", "rule", "expected"),
  [
    ('{"a": [1, 2,],}', "strip_trailing_commas", {"a": [1, 2]}),
    ("[1,,2, ,3]", "collapse_duplicate_commas", [1, 2, 3]),
    ('{title: "x", sections: []}', "quote_bare_keys", {"title": "x", "sections": []}),
    ("{'title': \"x\"}", "normalize_key_quotes", {"title": "x"}),
    ('{"a": "line1\nline2\tend"}', "flatten_line_breaks", {"a": "line1 line2 end"}),
    ('{"a": "b\x07c"}', "strip_control_characters", {"a": "bc"}),
    ('{"a": "it\\\'s"}', "unescape_single_quotes", {"a": "it's"}),
    ('{"p": "C:\\q"}', "escape_stray_backslashes", {"p": "C:\\q"}),
    ('Sure thing {"a": 1} hope it helps', "extract_json_block", {"a": 1}),
  ],
)
def test_each_rule_fixes_its_deformation(raw: str, rule: str, expected: object) -> None:
  """Every rule repairs the deformation it targets and is reported by name."""
  with pytest.raises(json.JSONDecodeError):
    json.loads(raw)

  report = repair_json_text(raw)
  assert rule in report.applied
  assert json.loads(report.text) == expected


def test_rules_run_in_a_fixed_order() -> None:
  """The rule list is ordered and names are stable."""
  assert [rule.name for rule in REPAIR_RULES] == [
    "extract_json_block",
    "strip_control_characters",
    "flatten_line_breaks",
    "unescape_single_quotes",
    "escape_stray_backslashes",
    "collapse_duplicate_commas",
    "strip_trailing_commas",
    "normalize_key_quotes",
    "quote_bare_keys",
  ]


def test_repair_is_deterministic() -> None:
  """The same input always yields the same output and rule list."""
  raw = '```json\n{title: "x", "sections": [{"type": "vocab",},],}\n```'
  assert repair_json_text(raw) == repair_json_text(raw)


def test_clean_input_reports_no_rules() -> None:
  """Compact valid JSON passes through without any rule firing."""
  report = repair_json_text('{"a":1}')
  assert report.text == '{"a":1}'
  assert report.applied == ()
  assert not report.changed


def test_valid_escapes_are_preserved() -> None:
  """Escape sequences JSON already accepts are left alone."""
  report = repair_json_text('{"p": "a\\n\\u00e9\\"b"}')
  assert report.applied == ("strip_whitespace_outside_strings",)
  assert json.loads(report.text) == {"p": 'a\né"b'}


def test_apology_text_stays_unparseable() -> None:
  """Prose with no JSON in it cannot be repaired into a document."""
  report = repair_json_text("Sorry, I cannot generate this.")
  with pytest.raises(json.JSONDecodeError):
    json.loads(report.text)


def test_custom_rules_replace_the_default_list() -> None:
  """Callers can run a single rule in isolation."""
  report = repair_json_text("[1,]", rules=(RepairRule("strip_trailing_commas", lambda text: text.replace(",]", "]")),))
  assert report.text == "[1]"
  assert report.applied == ("strip_trailing_commas",)


def test_whitespace_is_only_stripped_outside_strings() -> None:
  """Spacing inside string values, including after escaped quotes, is kept."""
  assert strip_whitespace_outside_strings('{ "a b" : [ 1 ,\n 2 ] }') == '{"a b":[1,2]}'
  assert strip_whitespace_outside_strings('{ "a \\" b" : 1 }') == '{"a \\" b":1}'


@pytest.mark.parametrize(
  ("raw", "expected"),
  [
    ('noise {"a": "}"} tail', '{"a": "}"}'),
    ("prefix [1, [2]] suffix {}", "[1, [2]]"),
    ('{"a": "\\"{"}', '{"a": "\\"{"}'),
    ('{"a": 1', None),
    ("no json here", None),
  ],
)
def test_extract_json_block(raw: str, expected: str | None) -> None:
  """Find the first balanced object or array while ignoring brackets inside strings."""
  assert extract_json_block(raw) == expected


def test_key_quote_rule_leaves_string_values_alone() -> None:
  """Quoted prose that looks like a key inside a value is not rewritten."""
  raw = '{"title": "x", "note": "He said, \'hi\': yes", "sections": [{"type": "vocab"},],}'

  report = repair_json_text(raw)

  assert report.applied == ("strip_trailing_commas", "strip_whitespace_outside_strings")
  assert json.loads(report.text) == {"title": "x", "note": "He said, 'hi': yes", "sections": [{"type": "vocab"}]}


def test_key_quote_rule_fixes_mismatched_quotes_after_commas() -> None:
  """Keys opened and closed with different quotes are normalized outside strings."""
  report = repair_json_text('{"title": "x", \'level": "B1", "type\': "a, \'b\': c"}')
  assert "normalize_key_quotes" in report.applied
  assert json.loads(report.text) == {"title": "x", "level": "B1", "type": "a, 'b': c"}
