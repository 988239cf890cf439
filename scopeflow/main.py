"""
ScopeFlow - Main Application Entry Point

FastAPI application serving the client share pages' API (intake form,
timeline, scope chat, change orders) and the organization dashboard's
project actions.
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from . import __version__
from .database import init_database, close_database, get_database
from .services.rate_limiter import close_rate_limiter
from .utils.background_tasks import drain_background_tasks
from .web.errors import register_exception_handlers
from .web.forms import router as forms_router
from .web.projects import router as projects_router
from .web.timelines import router as timelines_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup and shutdown."""
    logger.info("Starting ScopeFlow...")

    try:
        if await init_database():
            logger.info("Database initialized")
        else:
            logger.warning("Database not configured - API calls will fail")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    if not settings.llm_api_key:
        logger.warning("LLM_API_KEY not set - scope chat and timeline generation are disabled")

    logger.info("ScopeFlow started successfully")

    yield

    logger.info("Shutting down ScopeFlow...")

    try:
        await drain_background_tasks()
    except Exception as e:
        logger.warning(f"Failed to drain background tasks during shutdown: {e}")

    try:
        await close_rate_limiter()
    except Exception as e:
        logger.warning(f"Failed to close rate limiter during shutdown: {e}")

    try:
        await close_database()
    except Exception as e:
        logger.warning(f"Failed to close database during shutdown: {e}")

    logger.info("Shutdown complete")


# Create FastAPI app
app = FastAPI(
    title="ScopeFlow",
    description="Client project scoping with AI timelines and scope-change negotiation",
    version=__version__,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(timelines_router)
app.include_router(forms_router)
app.include_router(projects_router)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": __version__,
    }


@app.get("/health")
async def health_check():
    """Detailed health check endpoint."""
    db_health = {"status": "not_configured"}
    try:
        db = get_database()
        db_health = await db.health_check()
    except Exception as e:
        db_health = {"status": "error", "error": str(e)}

    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": {
            "llm": bool(settings.llm_api_key),
            "email": bool(settings.email_api_key),
            "redis": bool(settings.redis_url),
            "database": db_health.get("status", "unknown"),
        }
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "scopeflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
