"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载 Gemini 调用相关配置。
优先级：构造参数 > 环境变量 > .env > config.yaml > secrets 目录。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Literal, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


HistoryAppendPolicyName = Literal["before_send", "after_success"]


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("GEMINI_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
        Path(__file__).resolve().parents[1] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class GeminiSettings(BaseSettings):
    """Gemini 编排层配置。"""

    # ---- API / 模型 ----
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Gemini API 主机地址",
    )
    gemini_api_version: str = Field(default="v1beta", description="API 版本路径段")
    gemini_model_id: str = Field(default="gemini-flash-2.0", description="模型 ID")
    # 项目/区域仅用于日志，调用路径本身不使用
    gemini_project_id: str = Field(default="your-project-id", description="GCP 项目 ID")
    gemini_location: str = Field(default="us-central1", description="GCP 区域")
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 会话 ----
    max_history_messages: int = Field(default=10, ge=1, description="多轮请求中携带的最大历史消息数")
    use_conversation_history: bool = Field(default=False, description="默认是否启用会话历史")
    conversation_timeout_minutes: int = Field(default=30, ge=1, description="会话超时时间（分钟）")
    history_append_policy: HistoryAppendPolicyName = Field(
        default="before_send",
        description="用户消息写入历史的时机：发送前，或调用成功后",
    )

    # ---- 并发 ----
    image_workers: int = Field(default=4, ge=1, le=32, description="图片并行编码的最大线程数")

    # ---- 日志 ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否截断日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = GeminiSettings()

Settings = GeminiSettings
