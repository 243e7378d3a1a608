"""Gemini generateContent 适配器。

本模块负责：

1. 接收已经组装好的 RequestEnvelope。
2. 通过进程内共享的 httpx.Client（连接池）发出一次 POST。
3. 处理网络/API 异常：任何非 2xx 都视为本次调用失败，不重试、不退避。
4. 记录请求耗时（只用于日志，不影响控制流）。

端点形如 {base_url}/{api_version}/models/{model_id}:generateContent?key={api_key}，
密钥出现在 URL 中，因此所有涉及 URL 的日志都先经过 redact_secret。
"""

import json
import time
from typing import Any, Optional

import httpx

from gemini_core.config.settings import settings
from gemini_core.domain.exceptions import (
    ApiError,
    NetworkError,
    RateLimitError,
    ResponseFormatError,
    ValidationError,
)
from gemini_core.domain.models import RequestEnvelope
from gemini_core.infrastructure.logging.logger import logger, redact_secret
from gemini_core.providers.registry import EndpointConfig


class GeminiClient:
    """Gemini Provider 客户端实现。

    同一个实例内部只持有一个 httpx.Client，可被多个编排调用并发复用；
    用完后调用 close()，或以 with 语句使用。
    """

    name = "gemini"

    def __init__(self, cfg=settings, http_client: Optional[httpx.Client] = None):
        self._settings = cfg
        self._endpoint = EndpointConfig(
            base_url=getattr(cfg, "gemini_base_url", None) or EndpointConfig.base_url,
            api_version=getattr(cfg, "gemini_api_version", None) or EndpointConfig.api_version,
        )
        self._client = http_client or httpx.Client(timeout=cfg.http_timeout, trust_env=False)

    def generate(self, envelope: RequestEnvelope, model_id: str) -> str:
        """发送请求并返回原始响应文本。"""

        api_key = getattr(self._settings, "gemini_api_key", None)
        if not api_key:
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")

        url = self._endpoint.generate_url(model_id, api_key)
        payload = envelope.to_payload()
        logger.debug(
            "Sending Gemini request",
            extra={"extra": {
                "url": redact_secret(url, api_key),
                "message_count": len(envelope.contents),
                "multi_turn": envelope.multi_turn,
            }},
        )

        started = time.perf_counter()
        try:
            resp = self._client.post(url, json=payload, headers={"Content-Type": "application/json"})
            body = resp.text
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等。异常文本里可能带 URL，先脱敏
            raise NetworkError(code="NETWORK_ERROR", message=redact_secret(str(e), api_key)) from e
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        logger.info(
            "Received Gemini response",
            extra={"extra": {"status": resp.status_code, "duration_ms": round(elapsed_ms, 1), "model": model_id}},
        )
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Gemini rate limit", http_status=429)
        if not resp.is_success:
            raise ApiError(code="API_ERROR", message=body, http_status=resp.status_code)
        logger.debug("Raw Gemini response", extra={"extra": {"body": body}})
        return body

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GeminiClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def extract_response_text(body: str) -> str:
    """读取 candidates[0].content.parts[0].text。

    任何一级缺失（或响应体不是 JSON）都抛 ResponseFormatError，
    与 ApiError/NetworkError 区分开。
    """

    try:
        data: Any = json.loads(body)
    except (TypeError, json.JSONDecodeError) as e:
        raise ResponseFormatError(code="MISSING_RESPONSE_TEXT", message=f"Response is not JSON: {e}") from e

    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as e:
        raise ResponseFormatError(
            code="MISSING_RESPONSE_TEXT",
            message="Could not extract text from Gemini API response",
        ) from e
    if not isinstance(text, str):
        raise ResponseFormatError(code="MISSING_RESPONSE_TEXT", message="Response text is not a string")
    return text
