"""单轮/多轮请求的判定与历史裁剪。"""

from enum import Enum
from typing import List, Optional, Sequence

from gemini_core.config.settings import settings
from gemini_core.domain.conversation import ConversationStore
from gemini_core.domain.models import GenerationConfig, Message, Part, RequestEnvelope, TextPart
from gemini_core.providers.registry import DEFAULT_GENERATION_CONFIG


class HistoryAppendPolicy(str, Enum):
    """用户消息写入会话历史的时机。

    - BEFORE_SEND: 发送前写入；调用失败时该轮用户消息仍保留在历史中。
    - AFTER_SUCCESS: 调用成功后与模型回复一起写入；失败时历史不变。
    """

    BEFORE_SEND = "before_send"
    AFTER_SUCCESS = "after_success"


class HistoryShaper:
    def __init__(
        self,
        store: ConversationStore,
        max_history_messages: Optional[int] = None,
        policy: Optional[HistoryAppendPolicy] = None,
        generation_config: GenerationConfig = DEFAULT_GENERATION_CONFIG,
    ):
        self._store = store
        if max_history_messages is None:
            max_history_messages = settings.max_history_messages
        if max_history_messages < 1:
            raise ValueError("max_history_messages must be >= 1")
        self._max_history = max_history_messages
        self._policy = HistoryAppendPolicy(policy if policy is not None else settings.history_append_policy)
        self._generation_config = generation_config

    @property
    def policy(self) -> HistoryAppendPolicy:
        return self._policy

    @property
    def max_history_messages(self) -> int:
        return self._max_history

    def prepare(self, parts: Sequence[Part], use_history: bool) -> RequestEnvelope:
        """构造请求体；启用历史且策略为 BEFORE_SEND 时会先写入用户消息。

        写入与读取历史快照在同一个 store.transaction() 内完成，
        返回的请求体记下所用会话的 id，供 record_reply 写回。
        """

        user_message = Message(role="user", parts=parts)
        if not use_history:
            return self._single_turn(user_message)

        with self._store.transaction():
            conv = self._store.current()
            if self._policy is HistoryAppendPolicy.BEFORE_SEND:
                self._store.append_to(conv.id, "user", parts)
                history = list(conv.messages)
            else:
                history = list(conv.messages) + [user_message]

        if len(history) <= 1:
            return self._single_turn(user_message, conversation_id=conv.id)
        return RequestEnvelope(
            contents=self.clip(history),
            generation_config=self._generation_config,
            multi_turn=True,
            conversation_id=conv.id,
        )

    def record_reply(
        self,
        parts: Sequence[Part],
        reply_text: str,
        use_history: bool,
        conversation_id: Optional[str] = None,
    ) -> None:
        """调用成功后记录模型回复；未启用历史时不做任何事。

        conversation_id 为 prepare 时的会话；为 None 时写入当前会话。
        """

        if not use_history:
            return
        with self._store.transaction():
            target = conversation_id if conversation_id is not None else self._store.current().id
            if self._policy is HistoryAppendPolicy.AFTER_SUCCESS:
                self._store.append_to(target, "user", parts)
            self._store.append_to(target, "model", [TextPart(content=reply_text)])

    def clip(self, messages: Sequence[Message]) -> List[Message]:
        return list(messages[-self._max_history:])

    def _single_turn(self, user_message: Message, conversation_id: Optional[str] = None) -> RequestEnvelope:
        return RequestEnvelope(
            contents=[user_message],
            generation_config=self._generation_config,
            conversation_id=conversation_id,
        )
