"""Real-time listing feed.

WS /ws/listings[?token=<access token>]

Listings are public, so anonymous viewers may subscribe. A token that is
present but invalid is refused with close code 1008 (policy violation).
On connect the server sends {"event": "connected", "data": {"ok": true}};
afterwards every listing mutation pushes {"event": "listings:updated", ...}.
Client messages are read only to detect disconnects; "ping" gets "pong".
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from src.qc_gateway.auth.jwt_handler import token_identity
from src.qc_realtime.hub import ConnectionHub
from src.qc_realtime.publisher import envelope

router = APIRouter(tags=["realtime"])


@router.websocket("/ws/listings")
async def listings_feed(websocket: WebSocket, token: str | None = None) -> None:
    hub: ConnectionHub = websocket.app.state.hub

    user_id: str | None = None
    name = ""
    if token:
        identity = token_identity(token)
        if identity is None:
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        user_id, name = identity

    client_id = await hub.connect(websocket, user_id, name)
    try:
        await websocket.send_json(envelope("connected", {"ok": True}))
        while True:
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(client_id)
