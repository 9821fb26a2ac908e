"""
WebSocket relay of change notifications.
Browsers re-fetch from the REST endpoints when told a collection changed.
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
import logging

from portfolio_cms.services.content_store import CONTACT_SUBMISSIONS, WATCHED_COLLECTIONS
from portfolio_cms.utils.jwt_auth import TOKEN_COOKIE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])

# Collections only signed-in admins may watch
PRIVATE_COLLECTIONS = {CONTACT_SUBMISSIONS}


@router.websocket("/{collection}")
async def watch_collection(websocket: WebSocket, collection: str):
    """
    Push {"collection", "event": "changed"} for every change to collection.
    Private collections need the session cookie or a ?token= query parameter.
    """
    if collection not in WATCHED_COLLECTIONS:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=f"Unknown collection: {collection}")
        return

    context = websocket.app.state.context
    if collection in PRIVATE_COLLECTIONS:
        token = websocket.cookies.get(TOKEN_COOKIE) or websocket.query_params.get("token")
        session = (await context.auth.get_session(token)).data
        if session is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Authentication required")
            return

    await websocket.accept()

    async def notify() -> None:
        await websocket.send_json({"collection": collection, "event": "changed"})

    subscription = context.subscriptions.subscribe(collection, notify)
    logger.info(f"Realtime client watching {collection}")
    try:
        while True:
            # Clients only keep the socket open; anything they send is ignored
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info(f"Realtime client for {collection} disconnected")
    finally:
        subscription.release()
