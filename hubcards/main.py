from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response

from hubcards.api import actions, clients, health, hubspot, webhooks
from hubcards.config import get_settings
from hubcards.db import engine
from hubcards.services.errors import IntegrationError

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
    "Access-Control-Allow-Methods": "GET, POST, DELETE, OPTIONS",
}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    # httpx logs full URLs, and the token introspection URL carries the token
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


configure_logging(get_settings().log_level)

app = FastAPI(title="HubCards API")


# ---------------------------------------------------------------------------
# CORS: every route answers preflight itself, any origin
# ---------------------------------------------------------------------------


@app.middleware("http")
async def cors_middleware(request: Request, call_next):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    response = await call_next(request)
    response.headers.update(CORS_HEADERS)
    return response


# ---------------------------------------------------------------------------
# Error envelope
# ---------------------------------------------------------------------------


@app.exception_handler(IntegrationError)
async def integration_error_handler(request: Request, exc: IntegrationError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} failed ({exc.status_code}): {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    message = "Invalid request: " + "; ".join(problems)
    logger.error(f"{request.method} {request.url.path} rejected: {message}")
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Runs outside the http middleware, so CORS headers are added here
    logger.exception(f"{request.method} {request.url.path} failed unexpectedly: {exc}")
    return JSONResponse(
        status_code=500,
        content={"error": f"Internal server error: {exc}"},
        headers=CORS_HEADERS,
    )


# ---------------------------------------------------------------------------
# Startup / shutdown hooks
# ---------------------------------------------------------------------------


@app.on_event("shutdown")
async def shutdown_event():
    """Shutdown event handler."""
    logger.info("[Shutdown] Disposing database engine")
    await engine.dispose()


# Include API routers
app.include_router(health.router)
app.include_router(hubspot.router)
app.include_router(actions.router)
app.include_router(clients.router)
app.include_router(webhooks.router)
