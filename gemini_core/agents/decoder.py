"""把模型文本解码为指定结构。

decode_as 是一个全函数：对任意字符串输入都不会抛异常，
要么得到合法的 T，要么得到带失败原因的空结果，并写一条日志。
上层分析服务（如 LineItemAnalyzer）只依赖这个约定。
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Generic, Optional, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from gemini_core.agents.sanitizer import extract_json_object, find_json_span, normalize, strip_carriage_returns
from gemini_core.infrastructure.logging.logger import logger

T = TypeVar("T")

# 失败原因
EMPTY = "empty"
NO_JSON = "no_json"
INVALID_JSON = "invalid_json"
SHAPE_MISMATCH = "shape_mismatch"


@dataclass(frozen=True)
class DecodeResult(Generic[T]):
    """解码结果。

    - value: 成功时为解析后的对象。
    - error: 失败原因（empty/no_json/invalid_json/shape_mismatch），成功时为 None。
    - candidate: 实际送去解析的文本，便于排查。
    """

    value: Optional[T] = None
    error: Optional[str] = None
    candidate: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        return self.value if self.ok else default

    @classmethod
    def success(cls, value: T, candidate: str) -> "DecodeResult[T]":
        return cls(value=value, candidate=candidate)

    @classmethod
    def failure(cls, error: str, candidate: Optional[str] = None) -> "DecodeResult[T]":
        return cls(error=error, candidate=candidate)


@lru_cache(maxsize=64)
def _adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


def shape_name(shape: Any) -> str:
    return getattr(shape, "__name__", None) or repr(shape)


def decode_as(text: Optional[str], shape: Type[T]) -> DecodeResult[T]:
    name = shape_name(shape)
    logger.debug("Decoding model output", extra={"extra": {"shape": name}})

    if not text or not text.strip():
        logger.warning("Empty text, nothing to decode", extra={"extra": {"shape": name}})
        return DecodeResult.failure(EMPTY)

    normalized = normalize(text)
    if find_json_span(normalized) is None:
        logger.warning("No JSON object found in model output", extra={"extra": {"shape": name}})
        return DecodeResult.failure(NO_JSON, candidate=normalized)

    candidate = strip_carriage_returns(extract_json_object(normalized))
    try:
        value = _adapter(shape).validate_json(candidate)
    except ValueError as e:
        # pydantic 的 ValidationError 也是 ValueError；非法代理字符等编码错误同样归为 invalid_json
        reason = INVALID_JSON
        if isinstance(e, ValidationError) and not any(err.get("type") == "json_invalid" for err in e.errors()):
            reason = SHAPE_MISMATCH
        logger.warning(
            "Failed to decode model output",
            extra={"extra": {"shape": name, "reason": reason, "error": str(e)[:500]}},
        )
        return DecodeResult.failure(reason, candidate=candidate)

    logger.info("Decoded model output", extra={"extra": {"shape": name}})
    return DecodeResult.success(value, candidate)
