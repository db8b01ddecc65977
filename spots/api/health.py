"""
Health check endpoints.

Provides liveness and readiness checks. Readiness checks the database
and reports whether the background sync loop is alive.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from spots.db.database import get_session

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    database: str | None = None
    scheduler: str | None = None


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Liveness check. Does not check dependencies."""
    return HealthResponse(status="healthy")


@router.get(
    "/ready",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def ready(
    request: Request,
    response: Response,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> HealthResponse:
    """
    Readiness check.

    Returns 503 if the database is unavailable. The scheduler state is
    informational only: "running", "stopped" or "disabled".
    """
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        scheduler_state = "disabled"
    else:
        scheduler_state = "running" if scheduler.running else "stopped"

    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return HealthResponse(
            status="not ready", database="disconnected", scheduler=scheduler_state
        )
    return HealthResponse(status="ready", database="connected", scheduler=scheduler_state)
