"""能力路由：Intent 与能力客户端一一对应。

任何失败（网络、非 2xx、显式 error 字段、客户端自身抛错）都在这里
被转换为 ErrorResult，编排层只需把它渲染成一条助手错误消息。
不做任何自动重试。
"""

from typing import Mapping, Optional

from chat_core.capabilities.base import CapabilityClient, StreamingCapabilityClient
from chat_core.capabilities.registry import CAPABILITY_REGISTRY
from chat_core.domain.exceptions import (
    ApiError,
    BusinessError,
    CapabilityError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from chat_core.domain.models import CapabilityRequest, CapabilityResult, EntityList, ErrorResult, Intent, Prose
from chat_core.infrastructure.logging.logger import logger
from chat_core.transcript.streaming import StreamingAssembler


def describe_error(error: Exception, intent: Intent) -> str:
    """把异常转换为面向用户的说明文字。"""

    endpoint = CAPABILITY_REGISTRY.get(intent)
    label = endpoint.label if endpoint else intent.value
    if isinstance(error, NetworkError):
        return f"I couldn't reach the {label} service. Please check your connection and try again."
    if isinstance(error, RateLimitError):
        return f"The {label} service is busy right now. Please try again in a moment."
    if isinstance(error, ApiError):
        return f"The {label} service returned an error ({error.http_status}): {error.message}"
    if isinstance(error, CapabilityError):
        return f"The {label} service couldn't answer that: {error.message}"
    if isinstance(error, ValidationError):
        return error.message
    return f"Sorry, I encountered an error: {error}"


class CapabilityRouter:
    def __init__(self, clients: Mapping[Intent, CapabilityClient]):
        self._clients = dict(clients)

    def client_for(self, intent: Intent) -> Optional[CapabilityClient]:
        return self._clients.get(intent)

    def supports_streaming(self, intent: Intent) -> bool:
        client = self._clients.get(intent)
        return intent is Intent.PLAIN_CHAT and callable(getattr(client, "stream", None))

    def dispatch(
        self,
        request: CapabilityRequest,
        assembler: Optional[StreamingAssembler] = None,
    ) -> CapabilityResult:
        """调用意图对应的能力客户端；永不抛出，失败返回 ErrorResult。"""

        intent = request.intent
        client = self._clients.get(intent)
        if client is None:
            logger.warning("router.no_client", extra={"extra": {"intent": intent.value}})
            return ErrorResult(message=f"The {intent.value} capability is not available.", code="NO_CLIENT")

        logger.info("router.dispatch", extra={"extra": {"intent": intent.value, "client": client.name}})
        try:
            if assembler is not None and self.supports_streaming(intent):
                return self._dispatch_stream(client, request, assembler)
            result = client.invoke(request)
        except BusinessError as e:
            return self._failure(e, intent, assembler, code=e.code)
        except Exception as e:
            return self._failure(e, intent, assembler, code="UNEXPECTED_ERROR")

        if intent is Intent.LOCAL_BUSINESS and not isinstance(result, EntityList):
            # 本地商户结果只允许走结构化列表视图
            return ErrorResult(message="The local search service returned an unexpected result.", code="INVALID_RESPONSE")
        return result

    def _dispatch_stream(
        self,
        client: StreamingCapabilityClient,
        request: CapabilityRequest,
        assembler: StreamingAssembler,
    ) -> CapabilityResult:
        text = assembler.consume(client.stream(request))
        if not assembler.started:
            return ErrorResult(message="The assistant returned an empty response.", code="EMPTY_RESPONSE")
        return Prose(text=text, streamed_message_id=assembler.message_id)

    @staticmethod
    def _failure(
        error: Exception,
        intent: Intent,
        assembler: Optional[StreamingAssembler],
        code: str,
    ) -> ErrorResult:
        message = describe_error(error, intent)
        logger.warning(
            "router.capability_error",
            extra={"extra": {"intent": intent.value, "code": code, "error": str(error)}},
        )
        streamed_id = assembler.fail(message) if assembler is not None else None
        return ErrorResult(message=message, code=code, streamed_message_id=streamed_id)
