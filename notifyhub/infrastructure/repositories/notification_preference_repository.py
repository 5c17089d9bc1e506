"""Persistence layer for notification preferences."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from notifyhub.domain.entities import (
    DEFAULT_GROUPING_WINDOW_SECONDS,
    ChannelOverride,
    MutedEntity,
    NotificationPreference,
    NotificationType,
    SoundType,
)
from notifyhub.infrastructure.database import dialect_insert
from notifyhub.infrastructure.models import NotificationPreferenceModel
from notifyhub.utils import (
    from_storage_datetime,
    now_in_app_timezone,
    to_storage_datetime,
)

logger = logging.getLogger(__name__)

_OVERRIDE_FIELDS = ("email_enabled", "push_enabled", "in_app_enabled")


class NotificationPreferenceRepository:
    """Load and store :class:`NotificationPreference` rows."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> NotificationPreference | None:
        model = self._get_model(user_id)
        return self._to_entity(model) if model else None

    def get_or_create(self, user_id: str) -> NotificationPreference:
        """Return the preferences for ``user_id``, inserting defaults when missing.

        The insert is an upsert keyed on the unique ``user_id`` column, so
        concurrent first accesses converge on a single row.
        """

        model = self._get_model(user_id)
        if model is None:
            self._insert_defaults(user_id)
            self.session.commit()
            model = self._get_model(user_id)
            if model is None:  # pragma: no cover - unique upsert guarantees a row
                msg = f"Preferences for user {user_id} could not be created"
                raise RuntimeError(msg)
            logger.debug("Created default notification preferences for user %s", user_id)
        return self._to_entity(model)

    def update(self, preference: NotificationPreference) -> NotificationPreference:
        model = self._get_model(preference.user_id)
        if model is None:
            msg = f"Preferences for user {preference.user_id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, preference)
        model.updated_at = to_storage_datetime(now_in_app_timezone())
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def _get_model(self, user_id: str) -> NotificationPreferenceModel | None:
        return (
            self.session.query(NotificationPreferenceModel)
            .filter(NotificationPreferenceModel.user_id == user_id)
            .one_or_none()
        )

    def _insert_defaults(self, user_id: str) -> None:
        now = to_storage_datetime(now_in_app_timezone())
        values = {
            "user_id": user_id,
            "email_enabled": True,
            "push_enabled": True,
            "in_app_enabled": True,
            "type_preferences": {},
            "quiet_hours_enabled": False,
            "muted_entities": [],
            "grouping_enabled": True,
            "grouping_window_seconds": DEFAULT_GROUPING_WINDOW_SECONDS,
            "sound_enabled": True,
            "sound_type": SoundType.DEFAULT.value,
            "created_at": now,
            "updated_at": now,
        }
        insert_stmt = dialect_insert(self.session, NotificationPreferenceModel)
        if insert_stmt is not None:
            self.session.execute(
                insert_stmt.values(**values).on_conflict_do_nothing(
                    index_elements=["user_id"]
                )
            )
            return
        try:
            with self.session.begin_nested():
                self.session.add(NotificationPreferenceModel(**values))
        except IntegrityError:
            logger.debug("Preferences for user %s were created concurrently", user_id)

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationPreferenceModel, preference: NotificationPreference
    ) -> None:
        model.email_enabled = preference.email_enabled
        model.push_enabled = preference.push_enabled
        model.in_app_enabled = preference.in_app_enabled
        model.type_preferences = _serialize_type_preferences(preference.type_preferences)
        model.quiet_hours_enabled = preference.quiet_hours_enabled
        model.quiet_hours_start = preference.quiet_hours_start
        model.quiet_hours_end = preference.quiet_hours_end
        model.muted_entities = [
            {"entity_type": entity.entity_type, "entity_id": entity.entity_id}
            for entity in sorted(
                preference.muted_entities,
                key=lambda item: (item.entity_type, item.entity_id),
            )
        ]
        model.grouping_enabled = preference.grouping_enabled
        model.grouping_window_seconds = preference.grouping_window_seconds
        model.sound_enabled = preference.sound_enabled
        model.sound_type = SoundType(preference.sound_type).value

    @staticmethod
    def _to_entity(model: NotificationPreferenceModel) -> NotificationPreference:
        return NotificationPreference(
            id=model.id,
            user_id=model.user_id,
            email_enabled=bool(model.email_enabled),
            push_enabled=bool(model.push_enabled),
            in_app_enabled=bool(model.in_app_enabled),
            type_preferences=_deserialize_type_preferences(
                model.user_id, model.type_preferences
            ),
            quiet_hours_enabled=bool(model.quiet_hours_enabled),
            quiet_hours_start=model.quiet_hours_start,
            quiet_hours_end=model.quiet_hours_end,
            muted_entities=_deserialize_muted_entities(model.muted_entities),
            grouping_enabled=bool(model.grouping_enabled),
            grouping_window_seconds=model.grouping_window_seconds,
            sound_enabled=bool(model.sound_enabled),
            sound_type=_deserialize_sound_type(model.user_id, model.sound_type),
            created_at=from_storage_datetime(model.created_at),
            updated_at=from_storage_datetime(model.updated_at),
        )


def _serialize_type_preferences(
    type_preferences: dict[NotificationType, ChannelOverride],
) -> dict[str, dict[str, bool]]:
    serialized: dict[str, dict[str, bool]] = {}
    for notification_type, override in type_preferences.items():
        values = {
            name: getattr(override, name)
            for name in _OVERRIDE_FIELDS
            if getattr(override, name) is not None
        }
        if values:
            serialized[NotificationType(notification_type).value] = values
    return serialized


def _deserialize_type_preferences(
    user_id: str, raw: Any
) -> dict[NotificationType, ChannelOverride]:
    if not isinstance(raw, dict):
        return {}

    result: dict[NotificationType, ChannelOverride] = {}
    for key, values in raw.items():
        try:
            notification_type = NotificationType(key)
        except ValueError:
            logger.warning(
                "Ignoring unknown notification type '%s' in preferences of user %s",
                key,
                user_id,
            )
            continue
        if not isinstance(values, dict):
            continue
        override = ChannelOverride(
            **{
                name: values[name]
                for name in _OVERRIDE_FIELDS
                if isinstance(values.get(name), bool)
            }
        )
        if not override.is_empty():
            result[notification_type] = override
    return result


def _deserialize_muted_entities(raw: Any) -> frozenset[MutedEntity]:
    if not isinstance(raw, list):
        return frozenset()
    entities = set()
    for item in raw:
        if not isinstance(item, dict):
            continue
        entity_type = item.get("entity_type")
        entity_id = item.get("entity_id")
        if entity_type and entity_id:
            entities.add(MutedEntity(str(entity_type), str(entity_id)))
    return frozenset(entities)


__all__ = ["NotificationPreferenceRepository"]


def _deserialize_sound_type(user_id: str, raw: Any) -> SoundType:
    try:
        return SoundType(raw)
    except ValueError:
        logger.warning(
            "Ignoring unknown sound type '%s' in preferences of user %s",
            raw,
            user_id,
        )
        return SoundType.DEFAULT
