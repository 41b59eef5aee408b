import logging
import time
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Receive, Scope, Send

from planwise.core.logging import request_id_var
from planwise.utils.ids import resolve_request_id

logger = logging.getLogger("planwise.core.middleware")


def _build_request_url(scope: Scope) -> str:
  """Build a readable URL path for logging without relying on Request bodies."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"")
  if query_string:
    return f"{path}?{query_string.decode('latin-1')}"

  return path


class RequestLoggingMiddleware:
  """Tag each request with an id, expose it to every log record and log latency.

  A well-formed `x-request-id` from an upstream gateway is reused so a lesson can be
  traced across services; otherwise a fresh id is minted.
  """

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    request_id = resolve_request_id(Headers(scope=scope).get("x-request-id"))
    scope.setdefault("state", {})["request_id"] = request_id
    token = request_id_var.set(request_id)

    start_time = time.perf_counter()
    method = scope.get("method", "UNKNOWN")
    logger.info("Incoming request %s %s owner=%s", method, _build_request_url(scope), Headers(scope=scope).get("x-owner-id", "-"))

    status_code: int | None = None

    async def send_wrapper(message: dict[str, Any]) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id

      await send(message)

    try:
      await self.app(scope, receive, send_wrapper)
    finally:
      process_time = (time.perf_counter() - start_time) * 1000
      logger.info("Response status=%s (took %.2fms)", status_code or 0, process_time)
      request_id_var.reset(token)
