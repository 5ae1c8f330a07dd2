"""Liveness and readiness probes."""

from datetime import datetime
from typing import Awaitable, Callable

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from gestock.config import settings
from gestock.database import engine
from gestock.utils.cache import get_redis

router = APIRouter(tags=["health"])


async def _ping_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _ping_redis() -> None:
    client = await get_redis()
    await client.ping()


async def _probe(check: Callable[[], Awaitable[None]]) -> str:
    # Probe errors become part of the report; the endpoint itself never fails.
    try:
        await check()
    except Exception as e:
        return f"error: {str(e)[:100]}"
    return "ok"


@router.get("/health")
async def health_check():
    """Process is up. Touches neither PostgreSQL nor Redis."""
    return {
        "status": "ok",
        "service": "GeStock",
        "environment": settings.environment,
        "timestamp": datetime.utcnow().isoformat(),
    }


@router.get("/health/ready")
async def readiness_check():
    """503 unless both the database and Redis answer."""
    checks = {
        "database": await _probe(_ping_database),
        "redis": await _probe(_ping_redis),
    }
    ready = all(result == "ok" for result in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "unavailable",
            "service": "GeStock",
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
