"""SQLAlchemy model for persisted notifications."""

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, String, Text
from sqlalchemy.sql import expression

from notifyhub.infrastructure.database import Base
from notifyhub.utils import now_in_app_timezone, to_storage_datetime


def _now_naive():
    return to_storage_datetime(now_in_app_timezone())


class NotificationModel(Base):
    """Database representation for user notifications."""

    __tablename__ = "notification"
    __table_args__ = (
        Index(
            "ix_notification_group_lookup",
            "user_id",
            "owner_scope_id",
            "group_key",
            "created_at",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    owner_scope_id = Column(String(64), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    entity_type = Column(String(50), nullable=True)
    entity_id = Column(String(64), nullable=True)
    group_key = Column(String(200), nullable=True)
    group_count = Column(Integer, nullable=False, default=1)
    is_read = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    is_muted = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    snoozed_until = Column(DateTime(), nullable=True)
    created_at = Column(DateTime(), nullable=False, default=_now_naive)
    updated_at = Column(DateTime(), nullable=False, default=_now_naive)


__all__ = ["NotificationModel"]
