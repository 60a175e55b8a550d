# Fichier: backend/app/api/v2/endpoints/notification_ws.py
import logging

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from app.api.v2.dependencies import get_current_user_from_websocket, get_db
from app.notifications.websocket_manager import progress_ws_manager

router = APIRouter()
logger = logging.getLogger(__name__)


@router.websocket("/ws")
async def progress_ws(websocket: WebSocket, db: Session = Depends(get_db)):
    """Canal de déblocages en direct ; le client n'envoie que des pings."""
    try:
        current_user = get_current_user_from_websocket(websocket, db)
    except HTTPException as exc:
        logger.warning("WS refusée : %s", exc.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    user_id = current_user.id
    await progress_ws_manager.connect(user_id, websocket)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        progress_ws_manager.disconnect(user_id, websocket)
