"""Gemini Core 顶层包。

该包提供发票校验场景下调用 Gemini 的编排层，
包括配置加载、请求内容模型、会话管理、并行图片编码、
HTTP 传输以及模型输出的清洗、JSON 提取与类型化解码。
"""

from gemini_core.agents.decoder import DecodeResult
from gemini_core.agents.orchestrator import RequestOrchestrator
from gemini_core.api.service import create_orchestrator

__all__ = ["DecodeResult", "RequestOrchestrator", "create_orchestrator"]
