"""
WebSocket endpoint for realtime delivery.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, status
from app.core.config import settings
from app.db.session import SessionLocal
from app.api.dependencies import get_user_by_token
from app.services.realtime import serve_websocket

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


def is_allowed_origin(origin: Optional[str]) -> bool:
    # Non-browser clients send no Origin header
    if not origin:
        return True
    return origin in settings.CORS_ORIGINS


def _bearer_token(websocket: WebSocket, token: Optional[str]) -> Optional[str]:
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials
    return None


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Authenticate the client and stream its user's topic until it disconnects."""
    origin = websocket.headers.get("origin")
    if not is_allowed_origin(origin):
        logger.warning("Rejected websocket from origin %s", origin)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()

    db = SessionLocal()
    try:
        user = get_user_by_token(_bearer_token(websocket, token), db)
        user_id = user.id if user else None
    finally:
        db.close()

    if user_id is None:
        await websocket.send_text(json.dumps({"status": "Unauthorized", "error": "Invalid or missing token"}))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    state = websocket.app.state
    await serve_websocket(websocket, user_id, state.session_hub, state.broker)
