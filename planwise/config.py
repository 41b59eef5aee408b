"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from planwise.utils.env import default_env_path, load_env_file

ENV_FILE_KEYS = load_env_file(default_env_path(), override=False)

_PROVIDERS = {"gemini", "openrouter"}
_IMAGE_PROVIDERS = {"runware", "stability", "none"}
_IMAGE_MODES = {"sequential", "pooled", "batch"}
_DEFAULT_ORIGINS = "http://localhost:5173"


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Planwise service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_dir: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  primary_provider: str
  fallback_providers: tuple[str, ...]
  gemini_api_key: str | None
  gemini_model: str
  gemini_correction_model: str
  openrouter_api_key: str | None
  openrouter_model: str
  openrouter_correction_model: str
  openrouter_base_url: str
  openrouter_referer: str | None
  openrouter_title: str | None
  generation_temperature: float
  generation_max_tokens: int
  correction_temperature: float
  correction_max_tokens: int
  provider_timeout_seconds: float
  self_correction_enabled: bool
  enrichment_enabled: bool
  image_provider: str
  image_mode: str
  image_concurrency: int
  image_batch_size: int
  image_convert_webp: bool
  image_timeout_seconds: float
  runware_api_key: str | None
  runware_base_url: str
  stability_api_key: str | None
  stability_base_url: str
  starting_credits: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  origins = [origin.strip() for origin in (raw or _DEFAULT_ORIGINS).split(",") if origin.strip()]

  if not origins:
    raise ValueError("PLANWISE_ALLOWED_ORIGINS must include at least one origin.")

  if "*" in origins:
    raise ValueError("PLANWISE_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_bool(raw: str | None, default: bool = False) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None or raw.strip() == "":
    return default

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _parse_providers(raw: str | None, *, primary: str) -> tuple[str, ...]:
  """Parse the ordered alternate provider list, dropping the primary and duplicates."""
  ordered: list[str] = []
  for item in (raw if raw is not None else "openrouter,gemini").split(","):
    name = item.strip().lower()
    if not name or name == primary or name in ordered:
      continue
    if name not in _PROVIDERS:
      raise ValueError(f"PLANWISE_FALLBACK_PROVIDERS contains unsupported provider '{name}'.")
    ordered.append(name)
  return tuple(ordered)


def _positive_int(name: str, default: str) -> int:
  value = int(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive integer.")
  return value


def _positive_float(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if value <= 0:
    raise ValueError(f"{name} must be a positive number.")
  return value


def _temperature(name: str, default: str) -> float:
  value = float(os.getenv(name, default))
  if not 0.0 <= value <= 2.0:
    raise ValueError(f"{name} must be between 0 and 2.")
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("PLANWISE_ENV", "development").lower()
  debug = _parse_bool(os.getenv("PLANWISE_DEBUG"))

  log_max_bytes = _positive_int("PLANWISE_LOG_MAX_BYTES", "5242880")  # 5MB default
  log_backup_count = int(os.getenv("PLANWISE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("PLANWISE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  primary_provider = (os.getenv("PLANWISE_PRIMARY_PROVIDER") or "gemini").strip().lower()
  if primary_provider not in _PROVIDERS:
    raise ValueError(f"PLANWISE_PRIMARY_PROVIDER must be one of {sorted(_PROVIDERS)}.")

  image_provider = (os.getenv("PLANWISE_IMAGE_PROVIDER") or "runware").strip().lower()
  if image_provider not in _IMAGE_PROVIDERS:
    raise ValueError(f"PLANWISE_IMAGE_PROVIDER must be one of {sorted(_IMAGE_PROVIDERS)}.")

  image_mode = (os.getenv("PLANWISE_IMAGE_MODE") or "batch").strip().lower()
  if image_mode not in _IMAGE_MODES:
    raise ValueError(f"PLANWISE_IMAGE_MODE must be one of {sorted(_IMAGE_MODES)}.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("PLANWISE_ALLOWED_ORIGINS")),
    log_dir=(os.getenv("PLANWISE_LOG_DIR") or "logs").strip(),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    log_http_4xx=_parse_bool(os.getenv("PLANWISE_LOG_HTTP_4XX")),
    primary_provider=primary_provider,
    fallback_providers=_parse_providers(os.getenv("PLANWISE_FALLBACK_PROVIDERS"), primary=primary_provider),
    gemini_api_key=_optional_str(os.getenv("GEMINI_API_KEY")),
    gemini_model=os.getenv("PLANWISE_GEMINI_MODEL", "gemini-2.5-pro"),
    gemini_correction_model=os.getenv("PLANWISE_GEMINI_CORRECTION_MODEL", "gemini-2.5-flash"),
    openrouter_api_key=_optional_str(os.getenv("OPENROUTER_API_KEY")),
    openrouter_model=os.getenv("PLANWISE_OPENROUTER_MODEL", "google/gemini-2.5-pro"),
    openrouter_correction_model=os.getenv("PLANWISE_OPENROUTER_CORRECTION_MODEL", "google/gemini-2.5-flash"),
    openrouter_base_url=(os.getenv("OPENROUTER_BASE_URL") or "https://openrouter.ai/api/v1").strip(),
    openrouter_referer=_optional_str(os.getenv("OPENROUTER_HTTP_REFERER")),
    openrouter_title=_optional_str(os.getenv("OPENROUTER_TITLE")),
    generation_temperature=_temperature("PLANWISE_GENERATION_TEMPERATURE", "0.3"),
    generation_max_tokens=_positive_int("PLANWISE_GENERATION_MAX_TOKENS", "16384"),
    correction_temperature=_temperature("PLANWISE_CORRECTION_TEMPERATURE", "0.1"),
    correction_max_tokens=_positive_int("PLANWISE_CORRECTION_MAX_TOKENS", "2000"),
    provider_timeout_seconds=_positive_float("PLANWISE_PROVIDER_TIMEOUT_SECONDS", "180"),
    self_correction_enabled=_parse_bool(os.getenv("PLANWISE_SELF_CORRECTION_ENABLED"), default=True),
    enrichment_enabled=_parse_bool(os.getenv("PLANWISE_ENRICHMENT_ENABLED"), default=True),
    image_provider=image_provider,
    image_mode=image_mode,
    image_concurrency=_positive_int("PLANWISE_IMAGE_CONCURRENCY", "4"),
    image_batch_size=_positive_int("PLANWISE_IMAGE_BATCH_SIZE", "10"),
    image_convert_webp=_parse_bool(os.getenv("PLANWISE_IMAGE_CONVERT_WEBP"), default=True),
    image_timeout_seconds=_positive_float("PLANWISE_IMAGE_TIMEOUT_SECONDS", "60"),
    runware_api_key=_optional_str(os.getenv("RUNWARE_API_KEY")),
    runware_base_url=(os.getenv("RUNWARE_BASE_URL") or "https://api.runware.ai/v1").strip(),
    stability_api_key=_optional_str(os.getenv("STABILITY_API_KEY")),
    stability_base_url=(os.getenv("STABILITY_BASE_URL") or "https://api.stability.ai/v1/generation/stable-diffusion-v1-6/text-to-image").strip(),
    starting_credits=int(os.getenv("PLANWISE_STARTING_CREDITS", "10")),
  )


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value
