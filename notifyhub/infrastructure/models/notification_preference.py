"""SQLAlchemy model for per-user notification preferences."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import expression

from notifyhub.infrastructure.database import Base


class NotificationPreferenceModel(Base):
    """Database representation of a user's notification settings."""

    __tablename__ = "notification_preference"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, unique=True)
    email_enabled = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    push_enabled = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    in_app_enabled = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    type_preferences = Column(JSON, nullable=False, default=dict)
    quiet_hours_enabled = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    quiet_hours_start = Column(String(5), nullable=True)
    quiet_hours_end = Column(String(5), nullable=True)
    muted_entities = Column(JSON, nullable=False, default=list)
    grouping_enabled = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    grouping_window_seconds = Column(Integer, nullable=False, default=300)
    sound_enabled = Column(
        Boolean, nullable=False, default=True, server_default=expression.true()
    )
    sound_type = Column(
        String(20), nullable=False, default="default", server_default="default"
    )
    created_at = Column(DateTime(), nullable=True)
    updated_at = Column(DateTime(), nullable=True)


__all__ = ["NotificationPreferenceModel"]
