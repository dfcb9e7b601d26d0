import asyncio
from typing import Callable, Optional

import jwt
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from marketplace.core.constants import CONVERSATIONS, MESSAGES, NOTIFICATIONS, QUOTES, REQUESTS, USERS
from marketplace.core.errors import MessagingError
from marketplace.database.connection import mongo_db_dependency
from marketplace.repositories.conversation_repository import ConversationRepository
from marketplace.utils.live_query import LiveQueryGateway, QueryOptions, field_key
from marketplace.utils.security import current_user_from_payload, decode_access_token


router = APIRouter(prefix="/ws", tags=["live"])

StartSubscription = Callable[[Callable, Callable], Callable[[], None]]


def _authenticate(websocket: WebSocket) -> Optional[dict]:
    # browsers cannot set headers on a WebSocket handshake, token comes as ?token=...
    token = websocket.query_params.get("token")
    if not token:
        return None
    try:
        return current_user_from_payload(decode_access_token(token))
    except jwt.InvalidTokenError:
        return None


async def _drain(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


async def _stream(websocket: WebSocket, start: StartSubscription) -> None:
    """Push every snapshot of a live query to the socket until either side goes away."""
    failed = asyncio.Event()
    failure: dict = {}

    async def on_data(items):
        await websocket.send_json({"type": "snapshot", "items": jsonable_encoder(items)})

    def on_error(exc: Exception):
        failure["detail"] = exc.detail if isinstance(exc, MessagingError) else "Live query failed"
        failed.set()

    unsubscribe = start(on_data, on_error)
    receiver = asyncio.create_task(_drain(websocket))
    waiter = asyncio.create_task(failed.wait())
    try:
        await asyncio.wait({receiver, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        unsubscribe()
        waiter.cancel()
        client_gone = receiver.done()
        receiver.cancel()
    if failed.is_set() and not client_gone:
        await websocket.send_json({"type": "error", "detail": failure["detail"]})
        await websocket.close(code=1011)


@router.websocket("/conversations/{conversation_id}/messages")
async def live_messages(websocket: WebSocket, conversation_id: str, db=Depends(mongo_db_dependency)):
    user = _authenticate(websocket)
    if user is None:
        await websocket.close(code=4401)
        return
    conversation = await ConversationRepository(db).get_by_id(conversation_id)
    if conversation is None:
        await websocket.close(code=4404)
        return
    if user["_id"] not in conversation["participants"]:
        await websocket.close(code=4403)
        return
    await websocket.accept()
    gateway = LiveQueryGateway(db)
    options = QueryOptions(sort_key=field_key("created_at"))
    await _stream(websocket, lambda on_data, on_error: gateway.subscribe(CONVERSATIONS, conversation_id, MESSAGES, options, on_data, on_error))


@router.websocket("/requests/{request_id}/quotes")
async def live_quotes(websocket: WebSocket, request_id: str, db=Depends(mongo_db_dependency)):
    if _authenticate(websocket) is None:
        await websocket.close(code=4401)
        return
    await websocket.accept()
    gateway = LiveQueryGateway(db)
    options = QueryOptions(sort_key=field_key("created_at"), descending=True)
    await _stream(websocket, lambda on_data, on_error: gateway.subscribe(REQUESTS, request_id, QUOTES, options, on_data, on_error))


@router.websocket("/conversations")
async def live_conversations(websocket: WebSocket, db=Depends(mongo_db_dependency)):
    user = _authenticate(websocket)
    if user is None:
        await websocket.close(code=4401)
        return
    await websocket.accept()
    gateway = LiveQueryGateway(db)
    options = QueryOptions(
        where=[("participants", "array-contains", user["_id"])],
        sort_key=field_key("updated_at"),
        descending=True,
    )
    await _stream(websocket, lambda on_data, on_error: gateway.subscribe_collection(CONVERSATIONS, options, on_data, on_error))


@router.websocket("/notifications")
async def live_notifications(websocket: WebSocket, db=Depends(mongo_db_dependency)):
    user = _authenticate(websocket)
    if user is None:
        await websocket.close(code=4401)
        return
    await websocket.accept()
    gateway = LiveQueryGateway(db)
    options = QueryOptions(sort_key=field_key("created_at"), descending=True, limit=50)
    await _stream(websocket, lambda on_data, on_error: gateway.subscribe(USERS, user["_id"], NOTIFICATIONS, options, on_data, on_error))
