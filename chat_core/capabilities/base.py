"""能力客户端抽象接口。

编排层不直接依赖各端点的 HTTP 细节，而是依赖此协议：

- 每个能力实现一个 CapabilityClient（如 SearchClient）。
- 负责：把 CapabilityRequest 转成端点请求，并把响应 JSON 归一化为 CapabilityResult。

每次调用都是单发的：一个请求、一个响应，不做自动重试。
"""

from typing import Iterable, Protocol

from chat_core.domain.models import CapabilityRequest, CapabilityResult


class CapabilityClient(Protocol):
    """能力客户端协议。

    实现者需要提供：
    - name: 能力名称，用于日志。
    - invoke(req): 执行一次调用，返回归一化后的结果；失败时抛出 BusinessError 子类。
    """

    name: str

    def invoke(self, req: CapabilityRequest) -> CapabilityResult:
        ...


class StreamingCapabilityClient(CapabilityClient, Protocol):
    """支持增量文本通道的能力客户端（目前只有普通对话）。"""

    def stream(self, req: CapabilityRequest) -> Iterable[str]:
        """逐块产出文本，通道关闭即结束。"""

        ...
