"""能力端点的 HTTP 调用辅助。

所有能力客户端共用同一套错误映射：

- httpx.RequestError（DNS 失败、连接超时等） -> NetworkError
- 429 -> RateLimitError（本系统不自动重试）
- 其他 >= 400 -> ApiError
- 2xx 但响应体带 error 字段 / 不是 JSON 对象 -> CapabilityError
"""

from typing import Any, Dict, Optional

import httpx

from chat_core.capabilities.registry import EndpointConfig
from chat_core.domain.exceptions import ApiError, CapabilityError, NetworkError, RateLimitError


def build_url(cfg, endpoint: EndpointConfig) -> str:
    base = (getattr(cfg, "capability_base_url", None) or "").rstrip("/")
    return f"{base}{endpoint.path}"


def build_headers(cfg) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    api_key = getattr(cfg, "capability_api_key", None)
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def timeout_of(cfg) -> float:
    return getattr(cfg, "capability_timeout", None) or 30.0


def raise_for_status(resp, endpoint: EndpointConfig) -> None:
    """按状态码抛出对应的业务异常。"""

    if resp.status_code == 429:
        raise RateLimitError(code="RATE_LIMIT", message=f"{endpoint.name} rate limit", http_status=429)
    if resp.status_code >= 400:
        raise ApiError(
            code="API_ERROR",
            message=_error_detail(resp),
            http_status=resp.status_code,
            endpoint=endpoint.name,
        )


def post_json(cfg, endpoint: EndpointConfig, payload: Dict[str, Any]) -> Dict[str, Any]:
    """POST 一个 JSON 请求并返回已校验的 JSON 对象。"""

    try:
        with httpx.Client(timeout=timeout_of(cfg), trust_env=False) as client:
            resp = client.post(build_url(cfg, endpoint), json=payload, headers=build_headers(cfg))
    except httpx.RequestError as e:
        raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=endpoint.name)
    raise_for_status(resp, endpoint)
    return _checked_body(resp, endpoint)


def get_json(cfg, endpoint: EndpointConfig, params: Dict[str, Any]) -> Dict[str, Any]:
    """GET 请求版本，参数放在 query string 中。"""

    try:
        with httpx.Client(timeout=timeout_of(cfg), trust_env=False) as client:
            resp = client.get(build_url(cfg, endpoint), params=params, headers=build_headers(cfg))
    except httpx.RequestError as e:
        raise NetworkError(code="NETWORK_ERROR", message=str(e), endpoint=endpoint.name)
    raise_for_status(resp, endpoint)
    return _checked_body(resp, endpoint)


def _checked_body(resp, endpoint: EndpointConfig) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        raise CapabilityError(code="INVALID_RESPONSE", message="response is not JSON", endpoint=endpoint.name)
    if not isinstance(data, dict):
        raise CapabilityError(code="INVALID_RESPONSE", message="response is not a JSON object", endpoint=endpoint.name)
    error = data.get("error")
    if error:
        if isinstance(error, dict):
            error = error.get("message") or error.get("details") or str(error)
        raise CapabilityError(code="CAPABILITY_ERROR", message=str(error), endpoint=endpoint.name)
    return data


def _error_detail(resp) -> str:
    """尽量从错误响应中取出可读信息（details / error 字段优先）。"""

    detail: Optional[str] = None
    try:
        data = resp.json()
        if isinstance(data, dict):
            detail = data.get("details") or data.get("error") or data.get("message")
    except ValueError:
        detail = None
    if detail:
        return str(detail)
    return getattr(resp, "text", "") or f"HTTP {resp.status_code}"
