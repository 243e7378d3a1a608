"""模型输出清洗与 JSON 提取。

模型返回的是“准结构化”文本：JSON 前后可能带说明文字，
中间可能夹杂真实的或转义形式的回车/换行/制表符，直接解析会失败。

处理分两步，均为幂等操作：

1. normalize: 把所有控制字符（含转义形式与 Unicode 行分隔符）替换为单个空格，
   得到一行可安全做子串扫描的文本。
2. extract_json_object: 取第一个 "{" 到最后一个 "}" 之间（含）的内容。
   不识别嵌套；模型输出多个对象时会把它们之间的内容一起取出。
   找不到时原样返回，由调用方的严格解析来报错。

解码前还有一次 strip_carriage_returns，去掉残留的回车序列。
"""

import re
from typing import Optional

from gemini_core.infrastructure.logging.logger import logger


# 转义形式（反斜杠 + r/n/t）与真实控制字符；U+0085/U+2028/U+2029 是 Unicode 中的换行类字符
_CONTROL_RE = re.compile(r"\\[rnt]|[\r\n\t\u0085\u2028\u2029]")
_CARRIAGE_RETURN_RE = re.compile(r"\\r|\r")


def normalize(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    return _CONTROL_RE.sub(" ", text)


def find_json_span(text: str) -> Optional[tuple[int, int]]:
    """返回 [start, end) 区间；没有合法的 {...} 时返回 None。"""

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return None
    return start, end + 1


def extract_json_object(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    span = find_json_span(text)
    if span is None:
        return text
    return text[span[0]:span[1]]


def strip_carriage_returns(text: Optional[str]) -> Optional[str]:
    if not text:
        return text
    return _CARRIAGE_RETURN_RE.sub("", text)


def sanitize_response(text: Optional[str]) -> Optional[str]:
    """normalize + extract，用于刚从 HTTP 响应中取出的模型文本。"""

    if not text:
        return text
    logger.debug("Sanitizing model output", extra={"extra": {"length": len(text)}})
    normalized = normalize(text)
    if find_json_span(normalized) is None:
        logger.warning("Could not extract JSON object from response")
        return normalized
    return extract_json_object(normalized)
