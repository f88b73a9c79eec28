"""Support chat endpoints and the conversation websocket.

Customers only see their own conversation; administrators see all of
them and can answer in any.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool
from sqlmodel import Session

from .. import models
from ..auth import get_current_user, is_admin, load_active_user, require_admin, get_username
from ..constants import RespCode
from ..database import engine, get_session
from ..exceptions import CoffeeShopException
from ..schemas import ChatMessageIn
from ..services.chat import ChatService, hub
from . import ok

logger = logging.getLogger("coffee_shop.chat")
router = APIRouter(tags=["chat"])


def _check_access(conversation: models.Conversation, user: models.User) -> None:
    if not is_admin(user) and conversation.host_id != user.id:
        raise CoffeeShopException(RespCode.FORBIDDEN, "Conversation does not belong to user")


@router.get("/conversations")
def list_conversations(db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(ChatService(db).get_all_conversations())


@router.get("/conversations/me")
def my_conversation(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """The caller's own conversation, created on first access."""
    return ok(ChatService(db).get_conversation_by_host_id(user.id))


@router.get("/conversations/host/{host_id}")
def conversation_by_host(host_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(ChatService(db).get_conversation_by_host_id(host_id))


@router.post("/conversations/host/{host_id}")
def create_conversation(host_id: int, db: Session = Depends(get_session), admin: models.User = Depends(require_admin)):
    return ok(ChatService(db).create_conversation(host_id))


@router.get("/conversations/{conversation_id}")
def get_conversation(conversation_id: int, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    svc = ChatService(db)
    _check_access(svc.load(conversation_id), user)
    return ok(svc.get_conversation_by_id(conversation_id))


def _post_message(db: Session, conversation_id: int, user: models.User, content) -> dict:
    svc = ChatService(db)
    _check_access(svc.load(conversation_id), user)
    return svc.send_message(conversation_id, user.id, content)


@router.post("/conversations/{conversation_id}/messages")
async def send_message(conversation_id: int, payload: ChatMessageIn,
                       db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Post a message as the current user and push it to open websockets."""
    message = await run_in_threadpool(_post_message, db, conversation_id, user, payload.content)
    await hub.broadcast(conversation_id, message)
    return ok(message)


def _authorize_socket(conversation_id: int, token: str) -> int:
    with Session(engine) as session:
        user = load_active_user(session, get_username(token))
        _check_access(ChatService(session).load(conversation_id), user)
        return user.id


def _store_message(conversation_id: int, user_id: int, content) -> dict:
    with Session(engine) as session:
        return ChatService(session).send_message(conversation_id, user_id, content)


def _error_frame(exc: CoffeeShopException) -> dict:
    return {"resp_code": exc.code, "resp_desc": exc.message}


@router.websocket("/ws/conversations/{conversation_id}")
async def conversation_socket(websocket: WebSocket, conversation_id: int, token: str = ""):
    """Bidirectional chat: clients send `{"content": ...}` and receive messages."""
    try:
        user_id = await run_in_threadpool(_authorize_socket, conversation_id, token)
    except CoffeeShopException as exc:
        logger.info("websocket rejected for conversation %s: %s", conversation_id, exc.message)
        await websocket.close(code=1008)
        return

    await hub.connect(conversation_id, websocket)
    try:
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                data = None
            try:
                if not isinstance(data, dict):
                    raise CoffeeShopException(RespCode.FIELD_NOT_VALID, "Message must be a JSON object", ["content"])
                message = await run_in_threadpool(_store_message, conversation_id, user_id, data.get("content"))
            except CoffeeShopException as exc:
                await websocket.send_json(_error_frame(exc))
                continue
            await hub.broadcast(conversation_id, message)
    except WebSocketDisconnect:
        logger.debug("websocket closed for conversation %s", conversation_id)
    finally:
        hub.disconnect(conversation_id, websocket)
