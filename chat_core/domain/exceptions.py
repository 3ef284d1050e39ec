"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在编排层做统一捕获并转换为用户可读的提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 capability、conversation_id 等）。
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
    """能力端点返回非 2xx 状态时抛出。"""


class RateLimitError(BusinessError):
    """能力端点限流（429）。本系统不做自动重试，只提示用户稍后再试。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class CapabilityError(BusinessError):
    """能力端点以 2xx 返回，但响应体里带有显式 error 字段或结构不可用。"""


class PersistenceError(BusinessError):
    """持久化网关读写失败。"""


class GeolocationError(BusinessError):
    """无法取得设备坐标。"""


class GeolocationDenied(GeolocationError):
    """用户拒绝了定位授权，或设备不提供定位。"""


class GeolocationTimeout(GeolocationError):
    """在限定时间内没有拿到坐标。"""
