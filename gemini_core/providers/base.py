"""Transport 抽象接口。

上层 RequestOrchestrator 不直接依赖 httpx，而是依赖此协议：

- 负责：把 RequestEnvelope 序列化并发出一次 HTTP 请求，返回原始响应文本。
- 不负责：解析 candidates、清洗模型输出，这些由 agents 层完成。

测试中可以用任意实现了 generate 的对象替代真实客户端。
"""

from typing import Protocol

from gemini_core.domain.models import RequestEnvelope


class Transport(Protocol):
    """LLM 传输层协议。

    - name: Provider 名称，用于日志。
    - generate(envelope, model_id): 执行一次非流式调用，返回原始响应体文本。
    """

    name: str

    def generate(self, envelope: RequestEnvelope, model_id: str) -> str:
        ...
