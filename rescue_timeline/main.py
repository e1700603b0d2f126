"""
Application entrypoint with service lifecycle management.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from rescue_timeline.config import settings
from rescue_timeline.dependencies import ServiceContainer
from rescue_timeline.infrastructure.observability.logging import (
    get_logger,
    log_request,
    setup_logging,
)
from rescue_timeline.routes import calendar, health, notifications, timeline
from rescue_timeline.services.infrastructure.redis_client import fast_redis
from rescue_timeline.services.supabase.client import create_supabase_client

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""

    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    startup_tasks = []
    supabase = create_supabase_client()
    if supabase is not None:
        startup_tasks.append("supabase")

    redis_client = None
    if fast_redis.is_configured():
        try:
            logger.info("Initializing Redis connection")
            await fast_redis.initialize()
            redis_client = fast_redis
            startup_tasks.append("redis")
        except RuntimeError as e:
            logger.error(
                "Failed to initialize services", error=str(e), completed_tasks=startup_tasks
            )
            if supabase is not None:
                await supabase.close()
            raise
    else:
        logger.info("Redis not configured; device state is kept in memory")

    services = ServiceContainer(supabase, redis_client)
    app.state.services = services
    logger.info("All services initialized successfully", services=startup_tasks)

    yield

    logger.info("Application shutting down")
    try:
        await services.close()
        logger.info("All services closed successfully")
    except Exception as e:
        logger.warning("Some services had shutdown errors", error=str(e))


app = FastAPI(
    title="Rescue Timeline",
    description="Entity timelines and reminder reconciliation for rescue operations",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(timeline.router)
app.include_router(calendar.router)
app.include_router(notifications.router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
