from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, ContextManager, Dict, List, Optional, Protocol, Sequence
from uuid import uuid4

from .models import Message, Part, Role


Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Conversation:
    """一段会话的内存记录。

    messages 对调用方是只追加的；只有 clear_messages 会清空。
    每次追加或清空都会刷新 last_updated_at，id 创建后不再变化。
    """

    id: str = field(default_factory=lambda: str(uuid4()))
    messages: List[Message] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    last_updated_at: datetime = field(default_factory=utcnow)
    metadata: Dict[str, str] = field(default_factory=dict)

    def add_message(self, role: Role, parts: Sequence[Part], now: Optional[datetime] = None) -> Message:
        ts = now or utcnow()
        message = Message(role=role, parts=parts, created_at=ts)
        self.messages.append(message)
        self.last_updated_at = ts
        return message

    def clear_messages(self, now: Optional[datetime] = None) -> None:
        self.messages.clear()
        self.last_updated_at = now or utcnow()

    def idle_minutes(self, now: datetime) -> float:
        return (now - self.last_updated_at).total_seconds() / 60.0


class ConversationStore(Protocol):
    def start_new(self, metadata: Optional[Dict[str, str]] = None) -> str:
        ...

    def switch(self, conversation_id: str) -> bool:
        ...

    def clear_current(self) -> None:
        ...

    def append(self, role: Role, parts: Sequence[Part]) -> Message:
        ...

    def current(self) -> Conversation:
        ...

    def get(self, conversation_id: str) -> Optional[Conversation]:
        ...

    def list_conversations(self) -> List[Conversation]:
        ...

    def append_to(self, conversation_id: str, role: Role, parts: Sequence[Part]) -> Message:
        """写入指定会话；id 不存在时抛 KeyError。"""
        ...

    def transaction(self) -> ContextManager[Any]:
        """把多个操作组合成一个原子步骤。"""
        ...
