"""能力端点配置。

本模块把“意图”与“后端端点”解耦：上层只关心 Intent，
具体请求哪个路径、展示时用什么名称由这里集中配置。"""

from dataclasses import dataclass
from typing import Mapping

from chat_core.domain.models import Intent


@dataclass(frozen=True)
class EndpointConfig:
    """单个端点的配置。"""

    name: str
    path: str
    label: str  # 错误提示里展示给用户的服务名


CHAT_ENDPOINT = EndpointConfig(name="chat", path="/api/chat", label="chat")
SEARCH_ENDPOINT = EndpointConfig(name="search", path="/api/search", label="web search")
LOCAL_SEARCH_ENDPOINT = EndpointConfig(name="local_search", path="/api/local-search", label="local search")
FACT_CHECK_ENDPOINT = EndpointConfig(name="fact_check", path="/api/fact-check", label="fact-check")
AIR_QUALITY_ENDPOINT = EndpointConfig(name="air_quality", path="/api/air-quality", label="air quality")
DIRECTIONS_ENDPOINT = EndpointConfig(name="directions", path="/api/directions", label="directions")
TIMEZONE_ENDPOINT = EndpointConfig(name="timezone", path="/api/timezone", label="time zone")

TITLE_ENDPOINT = EndpointConfig(name="title", path="/api/chat/generate-title", label="title")
REVERSE_GEOCODE_ENDPOINT = EndpointConfig(name="reverse_geocode", path="/api/geocode/reverse", label="geocoding")


CAPABILITY_REGISTRY: Mapping[Intent, EndpointConfig] = {
    Intent.PLAIN_CHAT: CHAT_ENDPOINT,
    Intent.WEB_SEARCH: SEARCH_ENDPOINT,
    Intent.LOCAL_BUSINESS: LOCAL_SEARCH_ENDPOINT,
    Intent.FACT_CHECK: FACT_CHECK_ENDPOINT,
    Intent.AIR_QUALITY: AIR_QUALITY_ENDPOINT,
    Intent.DIRECTIONS: DIRECTIONS_ENDPOINT,
    Intent.TIMEZONE: TIMEZONE_ENDPOINT,
}


def get_endpoint(intent: Intent) -> EndpointConfig:
    """根据意图获取端点配置。"""

    try:
        return CAPABILITY_REGISTRY[intent]
    except KeyError:
        raise KeyError(f"No endpoint registered for intent: {intent!r}")
