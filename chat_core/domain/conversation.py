from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List, Protocol
from datetime import datetime
from .models import Role


@dataclass
class Conversation:
    id: str
    owner_id: str
    title: Optional[str]
    created_at: datetime
    updated_at: datetime
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MessageRecord:
    id: str
    conversation_id: str
    owner_id: str
    role: Role
    content: str
    created_at: datetime
    meta: Dict[str, Any] = field(default_factory=dict)


class ConversationStore(Protocol):
    """持久化网关。写失败必须抛出 PersistenceError。"""

    def create_conversation(self, owner_id: str, title: Optional[str] = None) -> Conversation:
        ...

    def get_conversation(self, conversation_id: str) -> Conversation:
        ...

    def list_conversations(self, owner_id: Optional[str] = None) -> List[Conversation]:
        ...

    def insert_message(
        self,
        conversation_id: str,
        role: Role,
        content: str,
        owner_id: str,
        meta: Optional[Dict[str, Any]] = None,
    ) -> MessageRecord:
        ...

    def list_messages(self, conversation_id: str) -> List[MessageRecord]:
        ...

    def update_conversation_title(self, conversation_id: str, title: str) -> None:
        ...

    def delete_conversation(self, conversation_id: str) -> None:
        ...
