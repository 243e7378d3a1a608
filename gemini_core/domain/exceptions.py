"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或上层分析服务中做统一捕获与日志记录。

注意：JSON 提取/解析失败不走异常，由 decoder.DecodeResult 表达；
切换到不存在或已超时的会话也不走异常，由布尔返回值表达。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"）。
        message: 可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 operation、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """Gemini API 返回非 2xx 状态码时抛出，不做自动重试。"""


class RateLimitError(ApiError):
    """Gemini 返回 429。与其他 ApiError 一样直接上抛，不做退避。"""


class ResponseFormatError(BusinessError):
    """响应体中缺少 candidates[0].content.parts[0].text。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""
