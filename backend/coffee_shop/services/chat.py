"""Customer support chat: one conversation per customer, messages from the
customer or any administrator."""

import logging
import threading
from collections import defaultdict

from fastapi import WebSocket
from sqlmodel import Session

from .. import models, repositories
from ..constants import RespCode
from ..exceptions import CoffeeShopException
from . import isoformat, require_text

logger = logging.getLogger("coffee_shop.chat")


def message_to_dict(message: models.ChatMessage) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "timestamp": isoformat(message.timestamp),
    }


class ChatService:
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.ConversationRepository(session)
        self.message_repo = repositories.ChatMessageRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def to_dict(self, conversation: models.Conversation) -> dict:
        host = self.user_repo.get(conversation.host_id)
        return {
            "id": conversation.id,
            "host_id": conversation.host_id,
            "host_name": host.name if host else None,
            "host_email": host.email if host else None,
            "created_at": isoformat(conversation.created_at),
            "updated_at": isoformat(conversation.updated_at),
            "message_list": [message_to_dict(m) for m in self.message_repo.list_for_conversation(conversation.id)],
        }

    def _load_user(self, user_id: int) -> models.User:
        user = self.user_repo.get(user_id)
        if not user:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "User not found", ["user_id"])
        return user

    def load(self, conversation_id: int) -> models.Conversation:
        conversation = self.repo.get(conversation_id)
        if not conversation:
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Conversation not found", ["conversation_id"])
        return conversation

    def create_conversation(self, host_id: int) -> dict:
        self._load_user(host_id)
        if self.repo.get_by_host(host_id):
            raise CoffeeShopException(RespCode.FIELD_EXISTED, "Conversation already exists", ["host_id"])
        return self.to_dict(self.repo.save(models.Conversation(host_id=host_id)))

    def get_conversation_by_host_id(self, host_id: int) -> dict:
        """Return the host's conversation, creating it on first use."""
        self._load_user(host_id)
        conversation = self.repo.get_by_host(host_id)
        if not conversation:
            conversation = self.repo.save(models.Conversation(host_id=host_id))
            logger.info("conversation created for host %s", host_id)
        return self.to_dict(conversation)

    def get_conversation_by_id(self, conversation_id: int) -> dict:
        return self.to_dict(self.load(conversation_id))

    def get_all_conversations(self) -> list:
        return [self.to_dict(c) for c in self.repo.list_for_active_hosts()]

    def send_message(self, conversation_id: int, sender_id: int, content) -> dict:
        conversation = self.load(conversation_id)
        if not self.user_repo.get(sender_id):
            raise CoffeeShopException(RespCode.FIELD_NOT_FOUND, "Sender not found", ["sender_id"])
        content = require_text(content, "content", "Message content must be not null")
        message = models.ChatMessage(conversation_id=conversation.id, sender_id=sender_id, content=content)
        conversation.updated_at = models.utcnow()
        self.session.add(conversation)
        return message_to_dict(self.message_repo.save(message))


class ConversationHub:
    """Tracks open websockets per conversation and fans messages out."""

    def __init__(self):
        self._connections = defaultdict(set)
        self._lock = threading.Lock()

    async def connect(self, conversation_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._connections[conversation_id].add(websocket)

    def disconnect(self, conversation_id: int, websocket: WebSocket) -> None:
        with self._lock:
            self._connections[conversation_id].discard(websocket)
            if not self._connections[conversation_id]:
                self._connections.pop(conversation_id, None)

    def connection_count(self, conversation_id: int) -> int:
        with self._lock:
            return len(self._connections.get(conversation_id, ()))

    async def broadcast(self, conversation_id: int, payload: dict) -> None:
        with self._lock:
            targets = list(self._connections.get(conversation_id, ()))
        for websocket in targets:
            try:
                await websocket.send_json(payload)
            except RuntimeError:
                logger.info("dropping closed websocket on conversation %s", conversation_id)
                self.disconnect(conversation_id, websocket)


hub = ConversationHub()
