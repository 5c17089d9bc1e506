"""Persistence helpers for notification entities."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Iterable

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifyhub.domain.entities import Notification, NotificationType
from notifyhub.infrastructure.database import apply_lock_timeout, dialect_insert
from notifyhub.infrastructure.models import NotificationGroupLockModel, NotificationModel
from notifyhub.utils import (
    from_storage_datetime,
    now_in_app_timezone,
    to_storage_datetime,
)


class NotificationRepository:
    """Provide persistence operations for :class:`Notification` objects.

    Methods taking ``commit`` leave the transaction open when it is ``False``
    so callers can group a lock, a lookup and a write into one unit of work.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, notification_id: int, *, owner_scope_id: str) -> Notification | None:
        model = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.id == notification_id)
            .filter(NotificationModel.owner_scope_id == owner_scope_id)
            .one_or_none()
        )
        return self._to_entity(model) if model else None

    def list_for_user(
        self,
        user_id: str,
        *,
        owner_scope_id: str,
        limit: int | None = 50,
    ) -> Sequence[Notification]:
        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.owner_scope_id == owner_scope_id)
            .order_by(NotificationModel.updated_at.desc(), NotificationModel.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def list_active_unread_for_user(
        self,
        user_id: str,
        *,
        owner_scope_id: str,
        now: datetime | None = None,
        limit: int | None = 50,
    ) -> Sequence[Notification]:
        """Return unread notifications that are neither muted nor snoozed."""

        current = to_storage_datetime(now or now_in_app_timezone())
        query = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.owner_scope_id == owner_scope_id)
            .filter(NotificationModel.is_read.is_(False))
            .filter(NotificationModel.is_muted.is_(False))
            .filter(
                or_(
                    NotificationModel.snoozed_until.is_(None),
                    NotificationModel.snoozed_until <= current,
                )
            )
            .order_by(NotificationModel.updated_at.desc(), NotificationModel.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        return [self._to_entity(model) for model in query.all()]

    def create(self, notification: Notification, *, commit: bool = True) -> Notification:
        model = NotificationModel()
        self._apply_entity_to_model(model, notification, include_creation_fields=True)
        self.session.add(model)
        self.session.flush()
        if commit:
            self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def update(self, notification: Notification, *, commit: bool = True) -> Notification:
        if notification.id is None:
            raise ValueError("Notification id is required for updates")
        model = self.session.get(NotificationModel, notification.id)
        if model is None or model.owner_scope_id != notification.owner_scope_id:
            msg = f"Notification with id {notification.id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, notification, include_creation_fields=False)
        self.session.add(model)
        self.session.flush()
        if commit:
            self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def find_most_recent_by_group_key(
        self,
        *,
        user_id: str,
        owner_scope_id: str,
        group_key: str,
        since: datetime,
    ) -> Notification | None:
        """Return the newest notification for ``group_key`` created at or after ``since``."""

        model = (
            self.session.query(NotificationModel)
            .filter(NotificationModel.user_id == user_id)
            .filter(NotificationModel.owner_scope_id == owner_scope_id)
            .filter(NotificationModel.group_key == group_key)
            .filter(NotificationModel.created_at >= to_storage_datetime(since))
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .first()
        )
        return self._to_entity(model) if model else None

    def acquire_group_lock(
        self,
        *,
        user_id: str,
        owner_scope_id: str,
        group_key: str,
        lock_timeout_seconds: float | None = None,
    ) -> None:
        """Write the lock row for the key, holding its lock until the transaction ends.

        Concurrent callers for the same key block here until the holder
        commits or rolls back, which makes the following lookup and write
        atomic per key. With ``lock_timeout_seconds`` the wait gives up with
        an ``OperationalError`` instead of blocking indefinitely.
        """

        if lock_timeout_seconds is not None:
            apply_lock_timeout(self.session, lock_timeout_seconds)
        locked_at = to_storage_datetime(now_in_app_timezone())
        key_values = {
            "user_id": user_id,
            "owner_scope_id": owner_scope_id,
            "group_key": group_key,
        }
        insert_stmt = dialect_insert(self.session, NotificationGroupLockModel)
        if insert_stmt is not None:
            statement = insert_stmt.values(locked_at=locked_at, **key_values)
            statement = statement.on_conflict_do_update(
                index_elements=["user_id", "owner_scope_id", "group_key"],
                set_={"locked_at": locked_at},
            )
            self.session.execute(statement)
            return

        touch = (
            update(NotificationGroupLockModel)
            .where(NotificationGroupLockModel.user_id == user_id)
            .where(NotificationGroupLockModel.owner_scope_id == owner_scope_id)
            .where(NotificationGroupLockModel.group_key == group_key)
            .values(locked_at=locked_at)
        )
        if self.session.execute(touch).rowcount:
            return
        try:
            with self.session.begin_nested():
                self.session.add(
                    NotificationGroupLockModel(locked_at=locked_at, **key_values)
                )
        except IntegrityError:
            # Another transaction inserted the row first; wait on its lock.
            self.session.execute(touch)

    def mark_as_read(
        self, notification_ids: Iterable[int], *, user_id: str, owner_scope_id: str
    ) -> int:
        ids = [notification_id for notification_id in notification_ids if notification_id is not None]
        if not ids:
            return 0
        updated = self.session.query(NotificationModel).filter(
            NotificationModel.id.in_(ids),
            NotificationModel.user_id == user_id,
            NotificationModel.owner_scope_id == owner_scope_id,
        ).update(
            {NotificationModel.is_read: True},
            synchronize_session=False,
        )
        self.session.commit()
        return updated

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationModel,
        notification: Notification,
        *,
        include_creation_fields: bool,
    ) -> None:
        now = to_storage_datetime(now_in_app_timezone())
        if include_creation_fields:
            model.created_at = to_storage_datetime(notification.created_at) or now
            model.user_id = notification.user_id
            model.owner_scope_id = notification.owner_scope_id
        model.type = NotificationType(notification.type).value
        model.title = notification.title
        model.message = notification.message
        model.entity_type = notification.entity_type
        model.entity_id = notification.entity_id
        model.group_key = notification.group_key
        model.group_count = notification.group_count
        model.is_read = notification.is_read
        model.is_muted = notification.is_muted
        model.snoozed_until = to_storage_datetime(notification.snoozed_until)
        model.updated_at = (
            to_storage_datetime(notification.updated_at)
            or model.created_at
            or now
        )

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        return Notification(
            id=model.id,
            user_id=model.user_id,
            owner_scope_id=model.owner_scope_id,
            type=NotificationType(model.type),
            title=model.title,
            message=model.message,
            entity_type=model.entity_type,
            entity_id=model.entity_id,
            group_key=model.group_key,
            group_count=model.group_count,
            is_read=bool(model.is_read),
            is_muted=bool(model.is_muted),
            snoozed_until=from_storage_datetime(model.snoozed_until),
            created_at=from_storage_datetime(model.created_at),
            updated_at=from_storage_datetime(model.updated_at),
        )


__all__ = ["NotificationRepository"]
