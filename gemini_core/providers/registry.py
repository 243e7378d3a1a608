"""Gemini 端点与生成参数配置。

端点模板与固定的生成参数集中在这里，GeminiClient 与 HistoryShaper
只引用本模块，便于后续升级 API 版本或调整解码参数。"""

from dataclasses import dataclass, field

from gemini_core.domain.models import GenerationConfig


@dataclass(frozen=True)
class EndpointConfig:
    """generateContent 端点配置。"""

    base_url: str = "https://generativelanguage.googleapis.com"
    api_version: str = "v1beta"
    generation: GenerationConfig = field(default_factory=GenerationConfig)

    def generate_url(self, model_id: str, api_key: str) -> str:
        base = self.base_url.rstrip("/")
        return f"{base}/{self.api_version}/models/{model_id}:generateContent?key={api_key}"


GEMINI_CONFIG = EndpointConfig()

DEFAULT_GENERATION_CONFIG = GEMINI_CONFIG.generation
