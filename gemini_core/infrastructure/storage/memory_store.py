import contextlib
import threading
from typing import Any, ContextManager, Dict, List, Optional, Sequence

from gemini_core.config.settings import settings
from gemini_core.domain.conversation import Clock, Conversation, ConversationStore, utcnow
from gemini_core.domain.models import Message, Part, Role
from gemini_core.infrastructure.logging.logger import logger


class InMemoryConversationStore(ConversationStore):
    """进程内会话存储。

    构造时会创建一个默认会话，因此 current() 始终指向 sessions 中的有效条目。
    超时只在 switch 时按需判断，没有后台清理：从未被切换过的过期会话会一直留在字典里。

    本类不是线程安全的；多线程共享时请使用 SynchronizedConversationStore 包装。
    """

    def __init__(self, timeout_minutes: Optional[int] = None, clock: Clock = utcnow):
        if timeout_minutes is None:
            timeout_minutes = settings.conversation_timeout_minutes
        if timeout_minutes < 0:
            raise ValueError("timeout_minutes must be >= 0")
        self._timeout_minutes = timeout_minutes
        self._clock = clock
        self._sessions: Dict[str, Conversation] = {}
        self._current: Conversation
        self.start_new()

    @property
    def timeout_minutes(self) -> int:
        return self._timeout_minutes

    def start_new(self, metadata: Optional[Dict[str, str]] = None) -> str:
        now = self._clock()
        conv = Conversation(created_at=now, last_updated_at=now)
        if metadata:
            conv.metadata.update(metadata)
        self._sessions[conv.id] = conv
        self._current = conv
        logger.info("Started new conversation", extra={"extra": {"conversation_id": conv.id}})
        return conv.id

    def switch(self, conversation_id: str) -> bool:
        conv = self._sessions.get(conversation_id)
        if conv is None:
            logger.warning("Conversation not found", extra={"extra": {"conversation_id": conversation_id}})
            return False
        if self.is_stale(conv):
            logger.warning(
                "Conversation timed out",
                extra={"extra": {"conversation_id": conversation_id, "timeout_minutes": self._timeout_minutes}},
            )
            return False
        self._current = conv
        logger.info("Switched conversation", extra={"extra": {"conversation_id": conversation_id}})
        return True

    def is_stale(self, conv: Conversation) -> bool:
        return conv.idle_minutes(self._clock()) > self._timeout_minutes

    def clear_current(self) -> None:
        self._current.clear_messages(now=self._clock())
        logger.info("Cleared conversation history", extra={"extra": {"conversation_id": self._current.id}})

    def append(self, role: Role, parts: Sequence[Part]) -> Message:
        return self._current.add_message(role, parts, now=self._clock())

    def append_to(self, conversation_id: str, role: Role, parts: Sequence[Part]) -> Message:
        conv = self._sessions.get(conversation_id)
        if conv is None:
            raise KeyError(conversation_id)
        return conv.add_message(role, parts, now=self._clock())

    def transaction(self) -> ContextManager[Any]:
        # 单线程使用，无需加锁
        return contextlib.nullcontext()

    def current(self) -> Conversation:
        return self._current

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self._sessions.get(conversation_id)

    def list_conversations(self) -> List[Conversation]:
        return sorted(self._sessions.values(), key=lambda c: c.created_at)

    def __len__(self) -> int:
        return len(self._sessions)


class SynchronizedConversationStore(ConversationStore):
    """用一把可重入锁串行化底层存储的所有操作。

    单个方法各自持锁；需要"写入后立即读取快照"这类组合操作时，
    在 transaction() 内完成，期间其他线程无法插入写入或切换会话。
    """

    def __init__(self, inner: ConversationStore):
        self._inner = inner
        self._lock = threading.RLock()

    def start_new(self, metadata: Optional[Dict[str, str]] = None) -> str:
        with self._lock:
            return self._inner.start_new(metadata)

    def switch(self, conversation_id: str) -> bool:
        with self._lock:
            return self._inner.switch(conversation_id)

    def clear_current(self) -> None:
        with self._lock:
            self._inner.clear_current()

    def append(self, role: Role, parts: Sequence[Part]) -> Message:
        with self._lock:
            return self._inner.append(role, parts)

    def append_to(self, conversation_id: str, role: Role, parts: Sequence[Part]) -> Message:
        with self._lock:
            return self._inner.append_to(conversation_id, role, parts)

    def transaction(self) -> ContextManager[Any]:
        return self._lock

    def current(self) -> Conversation:
        with self._lock:
            return self._inner.current()

    def get(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            return self._inner.get(conversation_id)

    def list_conversations(self) -> List[Conversation]:
        with self._lock:
            return self._inner.list_conversations()
