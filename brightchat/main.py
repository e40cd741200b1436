"""
BrightChat API
Handles: chat message validation and relay to the automation webhook,
serving the built chat widget.
Port: 5000

Every request is handled in isolation; the only state is the forwarder's
shared HTTP client, created and closed by the app lifespan.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from brightchat import __version__
from brightchat.config import CHAT_WEBHOOK_URL, CORS_ORIGINS, HOST, PORT, STATIC_DIR, WEBHOOK_TIMEOUT
from brightchat.exceptions import (
    MethodNotAllowedException,
    UpstreamError,
    UpstreamException,
    ValidationFailedException,
)
from brightchat.forwarder import WebhookForwarder
from brightchat.middleware import log_api_requests, setup_logging
from brightchat.models import ChatMessage, HealthResponse
from brightchat.static import static_response

logger = logging.getLogger(__name__)


def to_violation(error: dict) -> dict:
    """Reduce a pydantic error to {path, message, code}, dropping the leading "body"."""
    path = list(error.get("loc", ()))
    if path and path[0] == "body":
        path = path[1:]
    return {"path": path, "message": error.get("msg", ""), "code": error.get("type", "")}


def error_response(exc: StarletteHTTPException) -> JSONResponse:
    content = {"message": exc.detail}
    if isinstance(exc, ValidationFailedException):
        content["errors"] = exc.errors
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content), headers=exc.headers)


def create_app(
    webhook_url: Optional[str] = None,
    timeout: Optional[float] = None,
    static_dir: Optional[str] = STATIC_DIR,
    forwarder: Optional[WebhookForwarder] = None,
) -> FastAPI:
    setup_logging()

    if forwarder is None:
        forwarder = WebhookForwarder(
            webhook_url or CHAT_WEBHOOK_URL,
            timeout=WEBHOOK_TIMEOUT if timeout is None else timeout,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await forwarder.startup()
        logger.info("[brightchat] Forwarding chat messages to %s", forwarder.url)
        yield
        await forwarder.shutdown()

    app = FastAPI(
        title="BrightChat API",
        description="Validates chat widget messages and relays them to the automation webhook.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.forwarder = forwarder
    app.state.static_dir = static_dir

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(log_api_requests)

    # ── Endpoints ─────────────────────────────────────────────────────────────

    @app.post("/api/chat")
    async def chat(message: ChatMessage, request: Request):
        payload = message.to_webhook_payload()
        try:
            data = await request.app.state.forwarder.forward(payload)
        except UpstreamError as e:
            logger.error("Error forwarding to webhook: %s", e)
            raise UpstreamException()
        return JSONResponse(content=data)

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return {"status": "ok", "service": "chat-proxy"}

    # ── Error handlers ────────────────────────────────────────────────────────

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        errors = [to_violation(e) for e in exc.errors()]
        logger.info("Rejected chat message with %d violation(s)", len(errors))
        return error_response(ValidationFailedException(errors))

    @app.exception_handler(405)
    async def method_not_allowed(request: Request, exc: StarletteHTTPException):
        return error_response(MethodNotAllowedException(headers=exc.headers))

    @app.exception_handler(404)
    async def not_found(request: Request, exc: StarletteHTTPException):
        if request.method in ("GET", "HEAD") and not request.url.path.startswith("/api"):
            response = static_response(request.app.state.static_dir, request.url.path)
            if response is not None:
                return response
        return JSONResponse(status_code=404, content={"message": "Not Found"})

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return error_response(exc)

    @app.exception_handler(500)
    async def server_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"message": "Internal Server Error"})

    return app


app = create_app()


def run():
    import uvicorn
    uvicorn.run("brightchat.main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run()
