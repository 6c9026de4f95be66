import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from penny.config import settings
from penny.core.errors import register_error_handlers
from penny.core.middleware import AccessLogMiddleware, RequestIDMiddleware
from penny.core.rate_limit import RateLimitMiddleware
from penny.routers import agent, analysis, profile

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("penny")

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(application: FastAPI):
    """Create tables, then build and start the intervention controller and scheduler."""
    from penny.dependencies import engine, session_factory
    from penny.models.base import Base
    import penny.models  # noqa: F401
    from penny.services.intervention_controller import build_controller
    from penny.services.scheduler import InterventionScheduler

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables verified/created")

    controller = build_controller(session_factory)
    scheduler = InterventionScheduler(
        controller,
        foreground_delay=settings.foreground_delay_seconds,
        interval=settings.background_interval_minutes * 60,
        budget=settings.background_budget_seconds,
    )
    application.state.controller = controller
    application.state.scheduler = scheduler
    if settings.scheduler_enabled:
        scheduler.start()

    yield

    await scheduler.stop()
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=VERSION,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan,
)

# Middleware: last added = outermost. CORS outermost so 429s get CORS headers too.
cors_kwargs = {
    "allow_origins": settings.cors_origins_list,
    "allow_credentials": True,
    "allow_methods": ["*"],
    "allow_headers": ["*"],
    "expose_headers": ["x-request-id"],
}
if settings.cors_allow_origin_regex:
    cors_kwargs["allow_origin_regex"] = settings.cors_allow_origin_regex
app.add_middleware(AccessLogMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(CORSMiddleware, **cors_kwargs)

register_error_handlers(app)

app.include_router(profile.router)
app.include_router(analysis.router)
app.include_router(agent.router)


@app.get("/health")
async def health_check():
    return {"status": "ok", "app": settings.app_name, "version": VERSION}
