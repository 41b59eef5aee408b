"""Lightweight .env loader for local configuration."""

from __future__ import annotations

import os
from pathlib import Path


def default_env_path() -> Path:
  """Return the .env path: `PLANWISE_ENV_FILE` when set, else the repo root."""
  override = os.getenv("PLANWISE_ENV_FILE")
  if override:
    return Path(override).expanduser()
  return Path(__file__).resolve().parents[2] / ".env"


def _parse_value(raw: str) -> str:
  value = raw.strip()
  # Quoted values keep their inner text verbatim, including any '#'.
  if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
    return value[1:-1]
  comment = value.find(" #")
  if comment != -1:
    value = value[:comment].rstrip()
  return value


def load_env_file(path: Path, *, override: bool = False) -> tuple[str, ...]:
  """Load key=value pairs from a .env file into the process environment.

  Returns the names of the variables that were set, so startup can report which
  provider credentials came from the file without logging their values.
  """
  if not path.is_file():
    return ()

  loaded: list[str] = []
  for raw_line in path.read_text(encoding="utf-8").splitlines():
    line = raw_line.strip()
    if not line or line.startswith("#"):
      continue
    if line.startswith("export "):
      line = line[len("export ") :].lstrip()
    if "=" not in line:
      continue
    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
      continue
    if not override and key in os.environ:
      continue
    os.environ[key] = _parse_value(value)
    loaded.append(key)
  return tuple(loaded)
