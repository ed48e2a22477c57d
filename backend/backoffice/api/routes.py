"""
General REST API routes.

Endpoints:
  GET  /api/health
  GET  /api/dashboard
"""
from __future__ import annotations

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from backoffice.core.config import settings
from backoffice.core.database import get_session
from backoffice.core.security import get_current_actor
from backoffice.models.admin import Admin
from backoffice.schemas.responses import DashboardRead, Envelope, HealthResponse
from backoffice.services.reporting import dashboard

router = APIRouter(prefix="/api")


# ── Health ────────────────────────────────────────────────────────────────────


@router.get("/health", response_model=Envelope[HealthResponse])
def health(session: Session = Depends(get_session)):
    try:
        session.exec(select(Admin.id).limit(1))
        db_status = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check: database unreachable: {e}")
        db_status = f"error: {e}"
    return Envelope(data=HealthResponse(status="ok", db=db_status, timezone=settings.TIMEZONE))


# ── Dashboard ─────────────────────────────────────────────────────────────────


@router.get("/dashboard", response_model=Envelope[DashboardRead], dependencies=[Depends(get_current_actor)])
def get_dashboard(session: Session = Depends(get_session)):
    return Envelope(data=DashboardRead.model_validate(dashboard(session)))
