"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Transport 抽象接口 (base)。
- 维护端点与生成参数配置 (registry)。
- 提供 Gemini 的具体实现 (gemini_client)。
"""

from gemini_core.config.settings import settings
from gemini_core.providers.base import Transport
from gemini_core.providers.gemini_client import GeminiClient


def create_transport(cfg=None) -> Transport:
    """根据配置创建 Transport 实例，默认使用模块级 settings。"""

    return GeminiClient(cfg or settings)


__all__ = ["GeminiClient", "Transport", "create_transport"]
