"""Health check router."""

import logging
from datetime import datetime

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.dependencies import DatabaseSession
from ..schemas.health import HealthResponse, HealthStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/health", tags=["health"])


async def database_reachable(db: AsyncSession) -> bool:
    try:
        await db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("Database health check failed", extra={"error": str(e)})
        return False


@router.post("/ping", response_model=HealthResponse)
async def health_ping(db: AsyncSession = DatabaseSession) -> JSONResponse:
    """
    Health check endpoint.

    Returns service status, database reachability and timestamp. Responds 503
    when the database cannot be reached.
    """
    database_ok = await database_reachable(db)
    response_data = HealthResponse(
        status=HealthStatus.HEALTHY if database_ok else HealthStatus.DEGRADED,
        timestamp=datetime.utcnow(),
        version="1.0.0",
        database="ok" if database_ok else "unavailable"
    )

    logger.debug(
        "Health check requested",
        extra={
            "status": response_data.status,
            "database": response_data.database
        }
    )

    return JSONResponse(
        status_code=200 if database_ok else 503,
        content=response_data.model_dump(mode="json")
    )
