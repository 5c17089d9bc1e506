"""Websocket handler streaming realtime notifications to connected clients."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError
from sqlalchemy.orm import Session, sessionmaker

from notifyhub.infrastructure.notifications import (
    NotificationConnectionManager,
    serialize_notification,
)
from notifyhub.infrastructure.repositories import NotificationRepository
from notifyhub.interfaces.api.schemas import NotificationAckMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _manager(websocket: WebSocket) -> NotificationConnectionManager:
    return websocket.app.state.notification_manager


def _session_factory(websocket: WebSocket) -> sessionmaker[Session]:
    return websocket.app.state.session_factory


@router.websocket("/ws")
async def notifications_websocket(websocket: WebSocket) -> None:
    """Register the socket for the user and stream its notifications.

    Identity comes from the ``user_id`` and ``owner_scope_id`` query
    parameters set by the fronting gateway.
    """

    user_id = websocket.query_params.get("user_id")
    owner_scope_id = websocket.query_params.get("owner_scope_id")
    if not user_id or not owner_scope_id:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    session_factory = _session_factory(websocket)
    with session_factory() as session:
        pending_notifications = NotificationRepository(session).list_active_unread_for_user(
            user_id, owner_scope_id=owner_scope_id
        )

    manager = _manager(websocket)
    await manager.connect(user_id, owner_scope_id, websocket)
    try:
        await websocket.send_json(
            {
                "type": "init",
                "data": [serialize_notification(n) for n in pending_notifications],
            }
        )
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                logger.debug("Ignoring malformed websocket message from user %s", user_id)
                continue

            if not isinstance(message, dict):
                continue

            message_type = message.get("type")
            if message_type == "ping":
                await websocket.send_json({"type": "pong"})
                continue

            if message_type == "ack":
                try:
                    ack = NotificationAckMessage.model_validate(message)
                except ValidationError:
                    logger.debug("Ignoring invalid ack from user %s", user_id)
                    continue
                with session_factory() as ack_session:
                    updated = NotificationRepository(ack_session).mark_as_read(
                        ack.unique_ids(),
                        user_id=user_id,
                        owner_scope_id=owner_scope_id,
                    )
                await websocket.send_json({"type": "ack", "data": {"updated": updated}})
    except WebSocketDisconnect:
        manager.disconnect(user_id, owner_scope_id, websocket)
    except Exception:
        manager.disconnect(user_id, owner_scope_id, websocket)
        raise
