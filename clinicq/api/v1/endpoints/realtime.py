"""WebSocket endpoint for live queue and appointment updates."""

import datetime as dt
import json
from typing import Any
from uuid import UUID

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from clinicq.dependencies import user_from_token
from clinicq.schemas.auth import UserRole
from clinicq.services.notifier import (
    ADMIN_ROOM,
    RealtimeNotifier,
    doctor_room,
    notifier,
    patient_room,
    queue_room,
)

logger = structlog.get_logger(__name__)

router = APIRouter()


class MessageError(ValueError):
    """An inbound message could not be handled."""


def field(data: dict[str, Any], camel: str, snake: str) -> Any:
    """Read a payload field sent in either camelCase or snake_case."""
    return data.get(camel, data.get(snake))


def parse_queue(data: dict[str, Any]) -> str:
    """Resolve the queue room named by a join or leave payload."""
    try:
        doctor_id = UUID(str(field(data, "doctorId", "doctor_id")))
        day = dt.date.fromisoformat(str(data.get("date")))
    except ValueError as e:
        raise MessageError("doctorId and date (YYYY-MM-DD) are required") from e
    return queue_room(doctor_id, day)


def identity_room(data: dict[str, Any]) -> tuple[str, UserRole, UUID]:
    """
    Resolve the personal room for an ``authenticate`` payload.

    A ``token`` takes precedence over the claimed ``userId``/``userType``.
    """
    token = data.get("token")
    if token:
        user = user_from_token(str(token))
        if user is None:
            raise MessageError("Invalid token")
        role, user_id = user.role, user.id
    else:
        try:
            role = UserRole(str(field(data, "userType", "user_type")))
            user_id = UUID(str(field(data, "userId", "user_id")))
        except ValueError as e:
            raise MessageError("userId and userType are required") from e

    if role == UserRole.ADMIN:
        return ADMIN_ROOM, role, user_id
    if role == UserRole.DOCTOR:
        return doctor_room(user_id), role, user_id
    return patient_room(user_id), role, user_id


def handle_message(
    websocket: WebSocket,
    hub: RealtimeNotifier,
    message: dict[str, Any],
) -> dict[str, Any]:
    """
    Apply one inbound message and build the reply.

    Raises:
        MessageError: If the event is unknown or its payload is malformed
    """
    event = message.get("event")
    data = message.get("data") or {}
    if not isinstance(data, dict):
        raise MessageError("data must be an object")

    if event == "authenticate":
        room, role, user_id = identity_room(data)
        hub.join(websocket, room)
        logger.info("socket_authenticated", role=role.value, user_id=str(user_id), room=room)
        return {"event": "authenticated", "data": {"room": room, "user_type": role.value}}

    if event == "join_doctor_queue":
        room = parse_queue(data)
        hub.join(websocket, room)
        return {"event": "joined_doctor_queue", "data": {"room": room}}

    if event == "leave_doctor_queue":
        room = parse_queue(data)
        hub.leave(websocket, room)
        return {"event": "left_doctor_queue", "data": {"room": room}}

    if event == "ping":
        return {"event": "pong", "data": {}}

    raise MessageError(f"Unknown event: {event}")


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket) -> None:
    """
    Bidirectional JSON channel of ``{"event": ..., "data": {...}}`` messages.

    Malformed messages, binary frames included, get an ``error`` reply and leave
    the connection open.
    """
    await websocket.accept()
    logger.info("socket_connected", client=websocket.client.host if websocket.client else None)

    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                break
            try:
                raw = frame.get("text")
                if raw is None:
                    raise MessageError("Messages must be JSON text frames")
                message = json.loads(raw)
                if not isinstance(message, dict):
                    raise MessageError("Message must be a JSON object")
                reply = handle_message(websocket, notifier, message)
            except (json.JSONDecodeError, MessageError) as e:
                reply = {"event": "error", "data": {"message": str(e)}}
            await websocket.send_json(reply)
    except WebSocketDisconnect:
        pass
    finally:
        notifier.disconnect(websocket)
        logger.info("socket_disconnected")
