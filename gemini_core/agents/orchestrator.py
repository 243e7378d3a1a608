"""Gemini 调用编排核心模块。

一次调用的流程：组装 Part → 判定单轮/多轮并裁剪历史 → Transport 发送 →
取出 candidates[0] 文本 → 清洗并提取 JSON → 返回给调用方。

RequestOrchestrator 通过构造参数注入 Transport、会话存储与各个处理组件，
上层分析服务只需持有一个实例并调用 send / decode_as。
"""

import logging
import time
from typing import Any, Dict, Optional, Sequence, Type, TypeVar
from uuid import uuid4

from gemini_core.agents.decoder import DecodeResult, decode_as
from gemini_core.agents.history import HistoryShaper
from gemini_core.agents.request_builder import RequestBuilder
from gemini_core.agents.sanitizer import sanitize_response
from gemini_core.config.settings import settings
from gemini_core.domain.conversation import Conversation, ConversationStore
from gemini_core.domain.models import PageImage
from gemini_core.infrastructure.logging.logger import logger
from gemini_core.infrastructure.storage.memory_store import InMemoryConversationStore
from gemini_core.providers.base import Transport
from gemini_core.providers.gemini_client import extract_response_text

T = TypeVar("T")

DEFAULT_OPERATION = "Generic Operation"


class RequestOrchestrator:
    def __init__(
        self,
        transport: Transport,
        store: Optional[ConversationStore] = None,
        builder: Optional[RequestBuilder] = None,
        shaper: Optional[HistoryShaper] = None,
        model_id: Optional[str] = None,
        use_history_default: Optional[bool] = None,
        cfg=settings,
    ):
        self._transport = transport
        self._store = store if store is not None else InMemoryConversationStore(
            timeout_minutes=cfg.conversation_timeout_minutes
        )
        self._builder = builder or RequestBuilder(max_workers=cfg.image_workers)
        self._shaper = shaper or HistoryShaper(
            self._store,
            max_history_messages=cfg.max_history_messages,
            policy=cfg.history_append_policy,
        )
        self._model_id = model_id or cfg.gemini_model_id
        self._use_history_default = (
            cfg.use_conversation_history if use_history_default is None else use_history_default
        )
        logger.info(
            "Initialized orchestrator",
            extra={"extra": {
                "model": self._model_id,
                "location": getattr(cfg, "gemini_location", None),
                "project_id": getattr(cfg, "gemini_project_id", None),
            }},
        )

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def model_id(self) -> str:
        return self._model_id

    # ---- 调用入口 ----

    def send(
        self,
        prompt: str,
        images: Optional[Sequence[PageImage]] = None,
        operation: str = DEFAULT_OPERATION,
        use_history: Optional[bool] = None,
    ) -> str:
        """发送 prompt（可带图片），返回清洗并提取后的模型文本。

        Args:
            prompt: 文本提示词
            images: 页面图片（可选），顺序即请求中的图片顺序
            operation: 操作名，只用于日志
            use_history: 是否使用会话历史，None 时取配置默认值

        Raises:
            NetworkError / ApiError: 传输失败，不重试
            ResponseFormatError: 响应中缺少 candidates[0].content.parts[0].text
        """
        use_history = self._use_history_default if use_history is None else use_history
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "operation": operation,
            "use_history": use_history,
        }
        start_time = time.time()
        self._log(logging.INFO, "Calling Gemini API", log_ctx, image_count=len(images or []))
        self._log(logging.DEBUG, "Gemini input prompt", log_ctx, prompt=prompt)

        parts = self._builder.build_parts(prompt, images)
        envelope = self._shaper.prepare(parts, use_history)
        if envelope.multi_turn:
            self._log(
                logging.DEBUG,
                "Using conversation history",
                log_ctx,
                conversation_id=envelope.conversation_id,
                message_count=len(envelope.contents),
            )

        try:
            body = self._transport.generate(envelope, self._model_id)
            text = extract_response_text(body)
        except Exception as e:
            self._log(
                logging.ERROR,
                "Error calling Gemini API",
                log_ctx,
                error=str(e),
                code=getattr(e, "code", type(e).__name__),
            )
            raise

        self._log(logging.DEBUG, "Gemini output response", log_ctx, response=text)
        self._shaper.record_reply(parts, text, use_history, conversation_id=envelope.conversation_id)
        self._log(
            logging.INFO,
            "Completed Gemini call",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return sanitize_response(text)

    def converse(self, prompt: str, use_history: bool = True) -> str:
        """对话式调用，默认带上当前会话的历史。"""

        return self.send(prompt, operation="Conversation", use_history=use_history)

    def decode_as(self, text: Optional[str], shape: Type[T]) -> DecodeResult[T]:
        return decode_as(text, shape)

    # ---- 会话管理 ----

    def start_new_conversation(self, metadata: Optional[Dict[str, str]] = None) -> str:
        return self._store.start_new(metadata)

    def switch_conversation(self, conversation_id: str) -> bool:
        return self._store.switch(conversation_id)

    def clear_current_conversation(self) -> None:
        self._store.clear_current()

    def current_conversation(self) -> Conversation:
        return self._store.current()

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
