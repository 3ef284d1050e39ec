"""能力客户端集成层。

该包下的模块负责：
- 定义能力客户端抽象接口 (base)。
- 维护意图与端点的配置 (registry)。
- 提供每种能力的具体实现 (chat_client、search_client 等)。
- 按意图路由并把失败归一化为 ErrorResult (router)。
"""

from typing import Dict

from chat_core.config.settings import settings
from chat_core.capabilities.base import CapabilityClient
from chat_core.capabilities.air_quality_client import AirQualityClient
from chat_core.capabilities.chat_client import ChatClient
from chat_core.capabilities.directions_client import DirectionsClient
from chat_core.capabilities.fact_check_client import FactCheckClient
from chat_core.capabilities.router import CapabilityRouter
from chat_core.capabilities.search_client import LocalBusinessClient, SearchClient
from chat_core.capabilities.timezone_client import TimezoneClient
from chat_core.capabilities.title_client import TitleClient
from chat_core.domain.models import Intent


def create_capability_clients(cfg=None) -> Dict[Intent, CapabilityClient]:
    """按配置为每个 Intent 创建一个 HTTP 能力客户端。"""

    cfg = cfg or settings
    return {
        Intent.PLAIN_CHAT: ChatClient(cfg),
        Intent.WEB_SEARCH: SearchClient(cfg),
        Intent.LOCAL_BUSINESS: LocalBusinessClient(cfg),
        Intent.FACT_CHECK: FactCheckClient(cfg),
        Intent.AIR_QUALITY: AirQualityClient(cfg),
        Intent.DIRECTIONS: DirectionsClient(cfg),
        Intent.TIMEZONE: TimezoneClient(cfg),
    }


def create_router(cfg=None) -> CapabilityRouter:
    return CapabilityRouter(create_capability_clients(cfg))


__all__ = [
    "CapabilityClient",
    "CapabilityRouter",
    "TitleClient",
    "create_capability_clients",
    "create_router",
]
