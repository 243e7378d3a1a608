"""对外 API 服务模块。

提供简化的函数接口供上层应用调用。编排器由调用方创建并持有，
这里不保存任何模块级单例。
"""

from typing import Any, Dict, List, Optional, Sequence

from gemini_core.agents.line_item_agent import LineItemAnalysisResult, LineItemAnalyzer
from gemini_core.agents.orchestrator import RequestOrchestrator
from gemini_core.config.settings import settings
from gemini_core.domain.conversation import ConversationStore
from gemini_core.domain.invoice import Invoice
from gemini_core.domain.models import PageImage
from gemini_core.infrastructure.logging.logger import logger
from gemini_core.infrastructure.storage.memory_store import InMemoryConversationStore, SynchronizedConversationStore
from gemini_core.providers import create_transport
from gemini_core.providers.base import Transport


def create_orchestrator(
    cfg=None,
    transport: Optional[Transport] = None,
    store: Optional[ConversationStore] = None,
    thread_safe: bool = False,
) -> RequestOrchestrator:
    """创建编排器。

    Args:
        cfg: 配置对象（可选，默认模块级 settings）
        transport: 传输层实现（可选，默认 GeminiClient）
        store: 会话存储（可选，默认新建内存存储）
        thread_safe: 为 True 时用锁包装会话存储，供多线程共享同一编排器；
            每次调用的"写入用户消息 + 读取历史"与回复写回都在同一把锁内完成
    """
    cfg = cfg or settings
    if store is None:
        store = InMemoryConversationStore(timeout_minutes=cfg.conversation_timeout_minutes)
    if thread_safe and not isinstance(store, SynchronizedConversationStore):
        store = SynchronizedConversationStore(store)
    return RequestOrchestrator(
        transport=transport or create_transport(cfg),
        store=store,
        cfg=cfg,
    )


def run_prompt(
    orchestrator: RequestOrchestrator,
    prompt: str,
    images: Optional[Sequence[PageImage]] = None,
    operation: str = "Generic Operation",
    use_history: Optional[bool] = None,
) -> Dict[str, Any]:
    """发送一次 prompt。

    Returns:
        包含会话ID、消息数量与清洗后响应文本的字典

    Raises:
        各种 domain.exceptions 中定义的异常
    """
    try:
        text = orchestrator.send(prompt, images=images, operation=operation, use_history=use_history)
    except Exception as e:
        logger.error(f"Prompt failed: {e}", extra={"extra": {
            "operation": operation,
            "error": str(e),
        }})
        raise
    conv = orchestrator.current_conversation()
    return {
        "conversation_id": conv.id,
        "message_count": len(conv.messages),
        "response": text,
    }


def analyze_line_items(orchestrator: RequestOrchestrator, invoice: Invoice) -> LineItemAnalysisResult:
    return LineItemAnalyzer(orchestrator).analyze(invoice)


def list_conversations(orchestrator: RequestOrchestrator) -> List[Dict[str, Any]]:
    """列出编排器持有的所有会话。"""
    return [
        {
            "id": c.id,
            "message_count": len(c.messages),
            "created_at": c.created_at.isoformat(),
            "last_updated_at": c.last_updated_at.isoformat(),
            "metadata": dict(c.metadata),
        }
        for c in orchestrator.store.list_conversations()
    ]
