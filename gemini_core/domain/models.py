"""请求/响应内容的统一数据模型。

本模块定义了编排层内部共享的标准数据结构：

- TextPart / ImagePart: 消息内容的最小单元（文本或内联图片）。
- Message: 一条 user/model 消息，由有序的 Part 组成。
- PageImage: 外部图片来源提供的单页图片（原始字节 + 页码 + 预先编码的 base64）。
- GenerationConfig: 每次请求都携带的固定解码参数。
- RequestEnvelope: 单次调用构造出的请求体，调用结束即丢弃，不做持久化。

Gemini HTTP 适配层只依赖这些模型，并负责把它们转换成 API 的 JSON 请求体。
"""

import base64
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Sequence, Union


# Gemini 的消息角色只有 user / model 两种
Role = Literal["user", "model"]

IMAGE_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class TextPart:
    content: str

    def to_payload(self) -> Dict[str, Any]:
        return {"text": self.content}


@dataclass(frozen=True)
class ImagePart:
    """内联图片。data 为 base64 文本，而不是原始字节。"""

    mime_type: str
    data: str

    def to_payload(self) -> Dict[str, Any]:
        return {"inline_data": {"mime_type": self.mime_type, "data": self.data}}


Part = Union[TextPart, ImagePart]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Message:
    """一条对话消息。

    - role: "user" 或 "model"。
    - parts: 有序内容列表，约定文本在前、图片在后。
    - created_at: 创建时间，只用于本地记录，不会发给 API。
    """

    role: Role
    parts: Sequence[Part]
    created_at: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        # 冻结 parts，避免调用方在消息入库后再修改
        object.__setattr__(self, "parts", tuple(self.parts))

    def to_payload(self) -> Dict[str, Any]:
        return {"role": self.role, "parts": [p.to_payload() for p in self.parts]}

    @property
    def text(self) -> str:
        """拼接所有文本 Part，便于日志与调试。"""

        return "".join(p.content for p in self.parts if isinstance(p, TextPart))


@dataclass
class PageImage:
    """发票的单页图片。

    base64_encoded 由图片来源预先计算（可能是压缩优化后的版本），
    编排层只负责把它放进请求里，不做任何图片处理。
    """

    image_data: bytes
    page_number: int
    base64_encoded: str = ""

    @classmethod
    def from_bytes(cls, image_data: bytes, page_number: int) -> "PageImage":
        encoded = base64.b64encode(image_data).decode("ascii") if image_data else ""
        return cls(image_data=image_data, page_number=page_number, base64_encoded=encoded)

    @property
    def has_data(self) -> bool:
        return bool(self.image_data)


@dataclass(frozen=True)
class GenerationConfig:
    temperature: float = 0.2
    max_output_tokens: int = 2048
    top_p: float = 0.8
    top_k: int = 40

    def to_payload(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
            "topP": self.top_p,
            "topK": self.top_k,
        }


@dataclass
class RequestEnvelope:
    """一次 generateContent 调用的完整请求。

    multi_turn 仅用于日志，表示 contents 是否来自会话历史。
    conversation_id 记录构造时所用的会话，模型回复写回同一会话；不参与序列化。
    """

    contents: List[Message]
    generation_config: GenerationConfig = field(default_factory=GenerationConfig)
    multi_turn: bool = False
    conversation_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return {
            "contents": [m.to_payload() for m in self.contents],
            "generationConfig": self.generation_config.to_payload(),
        }
