"""Chat WebSocket endpoint.

Lives under ``/ws/`` so the error-normalization middleware leaves its
frames alone; it checks the session cookie itself before accepting.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from starlette.websockets import WebSocketDisconnect

if TYPE_CHECKING:
    from starlette.websockets import WebSocket

    from core.auth.session_store import SessionStore

logger = structlog.get_logger()

# Application-defined close code (4000-4999) mirroring HTTP 401.
CLOSE_UNAUTHORIZED = 4401


async def chat_websocket(websocket: WebSocket) -> None:
    session_store: SessionStore = websocket.app.state.session_store
    session = session_store.get(websocket)
    if not session.is_principal:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return

    await websocket.accept()
    log = logger.bind(user_id=session.user_id)
    log.info("chat connection opened")
    try:
        while True:
            text = await websocket.receive_text()
            await websocket.send_json({"user_id": session.user_id, "message": text})
    except WebSocketDisconnect:
        log.info("chat connection closed")
