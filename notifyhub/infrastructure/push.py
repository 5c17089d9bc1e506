"""Web Push delivery through ``pywebpush``."""

from __future__ import annotations

import json
import logging
from typing import Any

from pywebpush import WebPushException, webpush

from notifyhub.config import Settings, get_settings
from notifyhub.domain.entities import PushSubscription

logger = logging.getLogger(__name__)

GONE_STATUS_CODES = frozenset({404, 410})


class PushGoneError(Exception):
    """Raised when the push service reports the endpoint as permanently gone."""

    def __init__(self, endpoint: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Push subscription gone: {endpoint[:60]}")


class PushDeliveryError(Exception):
    """Raised when a push message could not be delivered."""


class WebPushSender:
    """Sign and send a single push message with the configured VAPID keys."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._private_key = settings.vapid_private_key or ""
        self._public_key = settings.vapid_public_key or ""
        self._claims = {"sub": settings.vapid_subject}
        self._ttl = settings.push_ttl_seconds
        if not self.configured:
            logger.warning("VAPID keys not configured; push notifications are disabled")

    @property
    def configured(self) -> bool:
        return bool(self._private_key and self._public_key)

    @property
    def public_key(self) -> str:
        return self._public_key

    def send(self, subscription: PushSubscription, payload: dict[str, Any]) -> None:
        """Deliver ``payload`` to ``subscription``.

        Raises:
            PushGoneError: the endpoint answered 404 or 410.
            PushDeliveryError: any other delivery failure.
        """

        if not self.configured:
            raise PushDeliveryError("VAPID keys are not configured")

        try:
            webpush(
                subscription_info=subscription.subscription_info(),
                data=json.dumps(payload),
                vapid_private_key=self._private_key,
                vapid_claims=dict(self._claims),
                ttl=self._ttl,
            )
        except WebPushException as exc:
            response = getattr(exc, "response", None)
            status_code = getattr(response, "status_code", None)
            if status_code in GONE_STATUS_CODES:
                raise PushGoneError(subscription.endpoint) from exc
            raise PushDeliveryError(str(exc)) from exc
        except Exception as exc:
            raise PushDeliveryError(str(exc)) from exc


__all__ = ["PushDeliveryError", "PushGoneError", "WebPushSender"]
