"""Identity: resolve the caller forwarded by the authentication gateway.

The gateway authenticates the user and forwards an opaque identifier in a
header (X-User-ID by default). A local User row is provisioned the first
time an identifier is seen.
"""

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from penny.config import settings
from penny.dependencies import get_db
from penny.models.user import User, UserStatus
from penny.services import telemetry_service

MAX_EXTERNAL_ID_LENGTH = 255


async def provision_user(db: AsyncSession, external_id: str) -> User:
    """Return the user for an external id, creating it on first use."""
    result = await db.execute(select(User).where(User.external_id == external_id))
    user = result.scalar_one_or_none()
    if user is not None:
        return user

    user = User(external_id=external_id, status=UserStatus.active)
    db.add(user)
    await db.flush()

    await telemetry_service.record_event(
        db,
        user_id=user.id,
        event_type="user.provisioned",
        entity_type="User",
        entity_id=user.id,
    )
    await db.commit()
    return user


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """FastAPI dependency: resolve the gateway identity header to a user.

    Raises HTTPException 401 if the header is missing or malformed, 403 if
    the user is suspended.
    """
    external_id = (request.headers.get(settings.user_id_header) or "").strip()
    if not external_id or len(external_id) > MAX_EXTERNAL_ID_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )

    user = await provision_user(db, external_id)
    if user.status != UserStatus.active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is not active",
        )

    request.state.user_id = user.id
    return user
