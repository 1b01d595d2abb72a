"""WebSocket endpoint with JWT auth."""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from safetrail.core.alert_policies import PRIVILEGED_ROLES, STAFF_ROOM, tourist_room
from safetrail.core.fanout import fanout
from safetrail.core.security import decode_access_token
from safetrail.db.session import SessionLocal
from safetrail.services.auth_service import get_user_by_email
from safetrail.services.tourist_service import get_tourist_for_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _rooms_for_token(token: str) -> list[str] | None:
    """Validate JWT and return the rooms the user may join, or None."""
    claims = decode_access_token(token)
    if claims is None:
        return None
    db = SessionLocal()
    try:
        user = get_user_by_email(db, claims.subject)
        if not user or not user.is_active:
            return None
        if user.role in PRIVILEGED_ROLES:
            return [STAFF_ROOM]
        tourist = get_tourist_for_user(db, user.id)
        return [tourist_room(tourist.id)] if tourist else []
    finally:
        db.close()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint. Client connects with ?token=<jwt>.
    Staff join the staff room, tourists their own room. Server pushes
    alert.*, device.* and digital_id.issued events.
    """
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4001, reason="Missing token")
        return

    rooms = _rooms_for_token(token)
    if rooms is None:
        await websocket.close(code=4003, reason="Invalid or expired token")
        return
    if not rooms:
        await websocket.close(code=4004, reason="Tourist profile not found")
        return

    await fanout.connect(websocket, rooms)
    try:
        while True:
            # Keep connection alive; client can send pings
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"event":"pong"}')
    except WebSocketDisconnect:
        pass
    finally:
        fanout.disconnect(websocket, rooms)
