"""SQLAlchemy model for Web Push subscriptions."""

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text

from notifyhub.infrastructure.database import Base


class PushSubscriptionModel(Base):
    """Database representation of a device endpoint registered for push."""

    __tablename__ = "push_subscription"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    endpoint = Column(String(500), nullable=False, unique=True)
    keys = Column(JSON, nullable=False, default=dict)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime(), nullable=True)
    updated_at = Column(DateTime(), nullable=True)


__all__ = ["PushSubscriptionModel"]
