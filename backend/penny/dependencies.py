"""Shared FastAPI dependencies: database sessions and the intervention controller."""

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from penny.config import settings

engine = create_async_engine(settings.database_url, pool_pre_ping=True)
session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Yield a request-scoped session. Routers commit explicitly."""
    async with session_factory() as session:
        yield session


def get_controller(request: Request):
    """Return the intervention controller built for this app instance."""
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        from penny.services.intervention_controller import build_controller

        controller = build_controller(session_factory)
        request.app.state.controller = controller
    return controller


def get_scheduler(request: Request):
    """Return the scheduler if the lifespan hook started one."""
    return getattr(request.app.state, "scheduler", None)
