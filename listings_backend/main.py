from __future__ import annotations

import logging
import time
from typing import Optional

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api_router import router
from .config import settings
from .errors import InvalidFilter
from .models import ApiError
from .service import build_listing_service


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)


# Global async HTTP client (created on startup, closed on shutdown)
http_client: Optional[httpx.AsyncClient] = None


@app.on_event("startup")
async def on_startup() -> None:
    global http_client
    http_client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)
    app.state.listing_service = build_listing_service(http_client, settings)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    global http_client
    if http_client is not None:
        await http_client.aclose()
        http_client = None


# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_cors_origins() or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {elapsed_ms:.1f}ms")
    return response


@app.exception_handler(InvalidFilter)
async def invalid_filter_handler(request: Request, exc: InvalidFilter) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content=ApiError(message="Invalid search criteria", errors=exc.errors).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ApiError(message=str(exc.detail)).model_dump(exclude_none=True),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    content = ApiError(message="Internal server error").model_dump(exclude_none=True)
    if settings.environment == "development":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


app.include_router(router)


@app.get("/")
async def root() -> dict:
    return {"message": f"Welcome to {settings.app_name} API"}
