"""Lock rows serializing consolidation per ``(user, scope, group key)``."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from notifyhub.infrastructure.database import Base


class NotificationGroupLockModel(Base):
    """One row per group key; writing it takes the row lock for that key."""

    __tablename__ = "notification_group_lock"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "owner_scope_id",
            "group_key",
            name="uq_notification_group_lock_key",
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(String(64), nullable=False)
    owner_scope_id = Column(String(64), nullable=False)
    group_key = Column(String(200), nullable=False)
    locked_at = Column(DateTime(), nullable=False)


__all__ = ["NotificationGroupLockModel"]
