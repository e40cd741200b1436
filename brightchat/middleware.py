import json
import logging
import time

from fastapi import Request
from fastapi.responses import Response

from brightchat.config import LOG_LEVEL

logger = logging.getLogger(__name__)

MAX_LOG_LINE = 80


def setup_logging(level: str = LOG_LEVEL) -> None:
    root = logging.getLogger()
    if not any(getattr(h, "_brightchat", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        handler._brightchat = True
        root.addHandler(handler)
    root.setLevel(level.upper())


def format_request_line(method: str, path: str, status: int, duration_ms: int, body: bytes = b"") -> str:
    line = f"{method} {path} {status} in {duration_ms}ms"
    if body:
        try:
            line += f" :: {json.dumps(json.loads(body))}"
        except ValueError:
            pass
    if len(line) > MAX_LOG_LINE:
        line = line[: MAX_LOG_LINE - 1] + "…"
    return line


async def log_api_requests(request: Request, call_next):
    """
    Logs one line per /api request: method, path, status, duration and
    the JSON body sent back, if any.
    """
    start = time.perf_counter()
    response = await call_next(request)
    if not request.url.path.startswith("/api"):
        return response

    body = b""
    if response.headers.get("content-type", "").startswith("application/json"):
        body = b"".join([chunk async for chunk in response.body_iterator])
        response = Response(
            content=body,
            status_code=response.status_code,
            headers=response.headers,
        )

    duration_ms = int((time.perf_counter() - start) * 1000)
    logger.info(format_request_line(request.method, request.url.path, response.status_code, duration_ms, body))
    return response
