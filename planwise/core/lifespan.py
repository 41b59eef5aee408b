import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from planwise.core.logging import initialize_logging


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging after uvicorn starts and report which providers are wired."""
  from planwise.config import ENV_FILE_KEYS, get_settings

  settings = get_settings()
  logger = logging.getLogger("planwise.core.lifespan")

  try:
    initialize_logging(settings)
  except RuntimeError:
    # Keep serving with the default handlers when the log directory is unwritable.
    logger.warning("Logging setup failed; continuing with default handlers.", exc_info=True)

  logger.info("Startup complete - environment=%s primary=%s fallbacks=%s images=%s/%s", settings.environment, settings.primary_provider, ",".join(settings.fallback_providers) or "-", settings.image_provider, settings.image_mode)
  credential_keys = sorted(key for key in ENV_FILE_KEYS if key.endswith("_API_KEY"))
  if credential_keys:
    logger.info("Provider credentials loaded from .env: %s", ", ".join(credential_keys))
  if not settings.gemini_api_key and not settings.openrouter_api_key:
    logger.warning("No language-model API key is configured; every generation will return an error document.")

  yield

  logger.info("Shutdown complete.")
