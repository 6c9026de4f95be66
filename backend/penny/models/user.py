import enum
import uuid

from sqlalchemy import Enum, String
from sqlalchemy.orm import Mapped, mapped_column

from penny.models.base import Base, TimestampMixin, generate_uuid


class UserStatus(str, enum.Enum):
    active = "active"
    suspended = "suspended"


class User(TimestampMixin, Base):
    """Local profile for a caller identified by the authentication gateway.

    Provisioned on first request; external_id is whatever identifier the
    gateway forwards.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    external_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    status: Mapped[UserStatus] = mapped_column(
        Enum(UserStatus, native_enum=False),
        default=UserStatus.active,
        nullable=False,
    )
