"""
Retail Back-Office – FastAPI application entry point.

Run with:
    uvicorn backoffice.main:app --reload --host 0.0.0.0 --port 8000
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from sqlalchemy.exc import OperationalError
from sqlmodel import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from backoffice.api.routes import router
from backoffice.api.billing_routes import billing_router
from backoffice.api.cart_routes import cart_router
from backoffice.api.catalog_routes import catalog_router
from backoffice.api.profile_routes import profile_router
from backoffice.api.sl_routes import sl_router
from backoffice.core.config import settings
from backoffice.core.database import create_db_and_tables, engine
from backoffice.core.errors import (
    BackofficeError,
    InternalError,
    InvalidInput,
    MethodNotAllowed,
    NotFound,
    RequestRejected,
    StorageTimeout,
    Unauthorized,
)
from backoffice.core.logging import setup_logging
from backoffice.core.security import ensure_default_admin


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown hooks."""
    setup_logging()
    logger.info("Starting Retail Back-Office backend …")
    create_db_and_tables()
    logger.info("Database tables ready")
    with Session(engine) as session:
        ensure_default_admin(session)
    if not settings.AUTH_ENABLED:
        logger.warning("AUTH_ENABLED=false: every request acts as the bootstrap admin")
    yield
    logger.info("Retail Back-Office backend shut down")


app = FastAPI(
    title="Retail Back-Office API",
    description="Catalog, cart and GST billing for a retail counter",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS – allow frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error envelope ────────────────────────────────────────────────────────────


def _error_response(exc: BackofficeError, headers: Optional[dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()), headers=headers)


@app.exception_handler(BackofficeError)
async def backoffice_error_handler(request: Request, exc: BackofficeError):
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", []) if p not in ("body", "query", "path"))
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"
    return _error_response(InvalidInput(message, {"errors": errors}))


_HTTP_ERRORS = {401: Unauthorized, 404: NotFound, 405: MethodNotAllowed}


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    error_class = _HTTP_ERRORS.get(exc.status_code)
    if error_class is not None:
        error = error_class(str(exc.detail))
    else:
        error = RequestRejected(str(exc.detail), exc.status_code)
    return _error_response(error, getattr(exc, "headers", None))


@app.exception_handler(OperationalError)
async def storage_error_handler(request: Request, exc: OperationalError):
    logger.warning(f"{request.method} {request.url.path}: storage unavailable: {exc.orig}")
    return _error_response(StorageTimeout("The database is busy, please retry"))


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"{request.method} {request.url.path} failed")
    return _error_response(InternalError("Internal server error"))


app.include_router(router)
app.include_router(catalog_router)
app.include_router(cart_router)
app.include_router(billing_router)
app.include_router(sl_router)
app.include_router(profile_router)


@app.get("/")
def root():
    return {"ok": True, "data": {"message": "Retail Back-Office API", "docs": "/docs"}}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("backoffice.main:app", host=settings.API_HOST, port=settings.API_PORT)
