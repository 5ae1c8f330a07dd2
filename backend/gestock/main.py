import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gestock.config import settings
from gestock.database import engine
from gestock.middleware.exceptions import register_exception_handlers
from gestock.middleware.scope import SCOPED_PREFIX, ScopeMiddleware
from gestock.routers import backups, health, providers, snapshots
from gestock.utils.cache import close_redis

logger = logging.getLogger("gestock")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Release the Redis pool and DB engine on shutdown."""
    logger.info(f"GeStock starting ({settings.environment})")
    try:
        yield
    finally:
        await close_redis()
        await engine.dispose()
        logger.info("GeStock stopped")


app = FastAPI(
    title="GeStock",
    description="Provider, weekly ordering and snapshot service",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Exception Handlers ───────────────────────────────────────
register_exception_handlers(app)

# ── Middleware (outermost first) ─────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Scope context (innermost, reads the URL)
app.add_middleware(ScopeMiddleware)

# ── Routers ──────────────────────────────────────────────────
app.include_router(health.router)

# Scoped under /api/t/{tenant_id}/b/{branch_id}
app.include_router(snapshots.router, prefix=SCOPED_PREFIX, tags=["snapshots"])
app.include_router(backups.router, prefix=SCOPED_PREFIX, tags=["backups"])
app.include_router(providers.router, prefix=SCOPED_PREFIX, tags=["providers"])
