"""Telemetry service: append-only structured agent events.

Every event is persisted (AgentEvent) and mirrored to the `penny.telemetry`
logger as key=value pairs. No update or delete methods are exposed.
Failure events use the `<area>.failed` naming so the health surface can
count them.
"""

import hashlib
import logging
import uuid
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from penny.models.telemetry import AgentEvent

logger = logging.getLogger("penny.telemetry")

FAILURE_SUFFIX = ".failed"


def hash_user_id(uid) -> str:
    """Hash user ID for log privacy: first 12 chars of SHA-256."""
    return hashlib.sha256(str(uid).encode()).hexdigest()[:12]


async def record_event(
    db: AsyncSession,
    *,
    event_type: str,
    user_id: uuid.UUID | None = None,
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
    detail: dict | None = None,
) -> AgentEvent:
    """Persist one event and mirror it to the log."""
    event = AgentEvent(
        user_id=user_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        detail=detail,
    )
    db.add(event)
    await db.flush()

    log = logger.warning if event_type.endswith(FAILURE_SUFFIX) else logger.info
    log(
        "event=%s user=%s entity=%s:%s detail=%s",
        event_type,
        hash_user_id(user_id) if user_id else "-",
        entity_type or "-",
        entity_id or "-",
        detail or {},
    )
    return event


async def get_events_for_user(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    event_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AgentEvent]:
    stmt = (
        select(AgentEvent)
        .where(AgentEvent.user_id == user_id)
        .order_by(AgentEvent.timestamp.asc())
    )
    if event_type is not None:
        stmt = stmt.where(AgentEvent.event_type == event_type)
    stmt = stmt.offset(offset).limit(limit)

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def entity_trail(
    db: AsyncSession,
    entity_type: str,
    entity_id: uuid.UUID,
) -> list[AgentEvent]:
    """All events about one entity, oldest first (e.g. an intervention's history)."""
    result = await db.execute(
        select(AgentEvent)
        .where(
            AgentEvent.entity_type == entity_type,
            AgentEvent.entity_id == entity_id,
        )
        .order_by(AgentEvent.timestamp.asc())
    )
    return list(result.scalars().all())


async def failure_counts(
    db: AsyncSession,
    *,
    since: datetime,
    user_id: uuid.UUID | None = None,
) -> dict[str, int]:
    """Count `*.failed` events per type since a point in time."""
    stmt = (
        select(AgentEvent.event_type, func.count(AgentEvent.id))
        .where(
            AgentEvent.event_type.like(f"%{FAILURE_SUFFIX}"),
            AgentEvent.timestamp >= since,
        )
        .group_by(AgentEvent.event_type)
    )
    if user_id is not None:
        stmt = stmt.where(AgentEvent.user_id == user_id)
    result = await db.execute(stmt)
    return {event_type: count for event_type, count in result.all()}
