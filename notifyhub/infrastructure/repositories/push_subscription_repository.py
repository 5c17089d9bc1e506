"""Persistence layer for Web Push subscriptions."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Session

from notifyhub.domain.entities import PushSubscription
from notifyhub.infrastructure.models import PushSubscriptionModel
from notifyhub.utils import (
    from_storage_datetime,
    now_in_app_timezone,
    to_storage_datetime,
)


class PushSubscriptionRepository:
    """Provide CRUD operations for :class:`PushSubscription` entities."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_user(self, user_id: str) -> Sequence[PushSubscription]:
        query = (
            self.session.query(PushSubscriptionModel)
            .filter(PushSubscriptionModel.user_id == user_id)
            .order_by(PushSubscriptionModel.id.asc())
        )
        return [self._to_entity(model) for model in query.all()]

    def get_by_endpoint(self, endpoint: str) -> PushSubscription | None:
        model = self._get_model(endpoint)
        return self._to_entity(model) if model else None

    def save(self, subscription: PushSubscription) -> PushSubscription:
        """Insert ``subscription`` or refresh the row registered for its endpoint."""

        now = to_storage_datetime(now_in_app_timezone())
        model = self._get_model(subscription.endpoint)
        if model is None:
            model = PushSubscriptionModel(endpoint=subscription.endpoint, created_at=now)
        model.user_id = subscription.user_id
        model.keys = dict(subscription.keys)
        model.user_agent = subscription.user_agent
        model.updated_at = now
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def delete_by_endpoint(self, endpoint: str) -> bool:
        deleted = (
            self.session.query(PushSubscriptionModel)
            .filter(PushSubscriptionModel.endpoint == endpoint)
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return bool(deleted)

    def delete_for_user(self, user_id: str) -> int:
        deleted = (
            self.session.query(PushSubscriptionModel)
            .filter(PushSubscriptionModel.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.session.commit()
        return deleted

    def _get_model(self, endpoint: str) -> PushSubscriptionModel | None:
        return (
            self.session.query(PushSubscriptionModel)
            .filter(PushSubscriptionModel.endpoint == endpoint)
            .one_or_none()
        )

    @staticmethod
    def _to_entity(model: PushSubscriptionModel) -> PushSubscription:
        return PushSubscription(
            id=model.id,
            user_id=model.user_id,
            endpoint=model.endpoint,
            keys=dict(model.keys or {}),
            user_agent=model.user_agent,
            created_at=from_storage_datetime(model.created_at),
            updated_at=from_storage_datetime(model.updated_at),
        )


__all__ = ["PushSubscriptionRepository"]
