"""HTTP boundary of the defense pipeline.

Routes call ``guard_chat`` / ``guard_api`` first thing, the same way they
would call a limiter's ``check``. A rejection is raised as its
``DefenseError`` and rendered by ``defense_error_handler``.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.api import deps
from src.security.client_key import client_ip, derive_client_key
from src.security.defense import Defense
from src.security.errors import DefenseError
from src.security.pipeline import DefensePipeline, RequestContext

logger = logging.getLogger(__name__)


def build_context(request: Request, defense: Defense, message: str | None = None) -> RequestContext:
    """Identify the caller of ``request``."""
    ip = client_ip(request, trust_forwarded_for=defense.config.trust_forwarded_for)
    user_agent = request.headers.get("user-agent")
    return RequestContext(
        ip=ip,
        client_key=derive_client_key(ip, user_agent),
        path=request.url.path,
        user_agent=user_agent,
        message=message,
    )


def _enforce(pipeline: DefensePipeline, ctx: RequestContext) -> RequestContext:
    error = pipeline.evaluate(ctx)
    if error is not None:
        raise error
    return ctx


def guard_chat(request: Request, message: str, defense: Defense) -> RequestContext:
    """Run the chat pipeline. Returns the context with the sanitized message."""
    return _enforce(defense.chat, build_context(request, defense, message))


def guard_api(request: Request, defense: Defense, text: str | None = None) -> RequestContext:
    """Run the general API pipeline; ``text`` is validated and pattern-checked when given."""
    return _enforce(defense.api, build_context(request, defense, text))


# ── Exception handlers ───────────────────────────────────────────────


def defense_error_handler(request: Request, exc: DefenseError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.public_message},
        headers=exc.headers,
    )


def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies get the same opaque 400 as a failed validation stage.

    Body parsing runs before the route's guard, so a blocked address is
    rejected here with its 403 instead.
    """
    if deps.is_initialized():
        defense = deps.get_defense()
        ctx = build_context(request, defense)
        if defense.config.enable_ip_blocking and defense.reputation.is_blocked(ctx.ip):
            error = defense.api.evaluate(ctx)
            if error is not None:
                return defense_error_handler(request, error)
        fields = ", ".join(".".join(str(p) for p in err.get("loc", ())) for err in exc.errors())
        defense.report_validation_error(ctx, f"Validation failed: {fields or 'request body'}")
    return JSONResponse(status_code=400, content={"error": "Invalid input"})


def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DefenseError, defense_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
