from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from livestatus.services.live_status import LiveStatusActor, get_live_status_actor

router = APIRouter()


@router.websocket("/")
@router.websocket("/ws")
async def status_ws(
    websocket: WebSocket, actor: LiveStatusActor = Depends(get_live_status_actor)
) -> None:
    await websocket.accept()
    if not await actor.connect(websocket):
        return
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        actor.disconnect(websocket)
