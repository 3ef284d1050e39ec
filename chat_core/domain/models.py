"""统一的对话与能力结果数据模型。

本模块定义了编排层在各组件之间共享的标准数据结构：

- Message: 内存对话记录中的一条消息（带生命周期标记）。
- Intent: 一轮对话被判定的唯一意图。
- GeoCoordinate: 单轮有效的设备坐标，不落库。
- CapabilityRequest: 分发给能力客户端的请求上下文。
- Prose / EntityList / StructuredRecord / ErrorResult: 能力结果的四种形态。

所有能力客户端都必须只依赖这些模型，
并负责在各自端点的 JSON 和这些模型之间做转换。
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union


# 消息角色：本系统只展示 user / assistant 两种
Role = Literal["user", "assistant"]

# 消息生命周期：
# - ephemeral: 仅用于进度播报，轮次结束前必须移除，永不持久化
# - pending: 已乐观展示，尚未写入存储
# - committed: 已持久化
# - error: 终态错误展示，不重试
Lifecycle = Literal["ephemeral", "pending", "committed", "error"]

# 展示层据此选择渲染方式；entities 永远不走 prose/markdown 路径
ContentType = Literal["text", "entities", "record", "error"]


class Intent(str, Enum):
    """一轮对话的意图。PLAIN_CHAT 为兜底，保证不存在“未分类”状态。"""

    PLAIN_CHAT = "plain_chat"
    WEB_SEARCH = "web_search"
    LOCAL_BUSINESS = "local_business"
    FACT_CHECK = "fact_check"
    AIR_QUALITY = "air_quality"
    DIRECTIONS = "directions"
    TIMEZONE = "timezone"


@dataclass
class Message:
    """内存对话记录中的一条消息。

    - content: 纯文本，或结构化结果序列化后的 JSON 字符串。
    - turn_id: 创建该消息的轮次，用于按身份清理 ephemeral 消息。
    - streaming: 流式组装尚未结束时为 True。
    """

    id: str
    role: Role
    content: str
    created_at: datetime
    lifecycle: Lifecycle
    streaming: bool = False
    turn_id: Optional[str] = None
    content_type: ContentType = "text"
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GeoCoordinate:
    """设备坐标，place_name 为可选的反向地理编码结果。"""

    lat: float
    lon: float
    place_name: Optional[str] = None


@dataclass
class CapabilityRequest:
    """一次能力调用的上下文。

    各客户端只取自己需要的字段：例如 FactCheck 只用 text，
    Directions 用 destination/origin，AirQuality 用 coordinates 或 place。
    """

    intent: Intent
    text: str
    coordinates: Optional[GeoCoordinate] = None
    place: Optional[str] = None
    attachment: Optional[Dict[str, Any]] = None
    tool_context: Optional[str] = None
    # 已提交的历史消息 (role, content)，仅普通对话使用
    history: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class Citation:
    title: str
    url: str


@dataclass
class Business:
    """本地商户条目，字段全部来自端点，缺失即为 None。"""

    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    rating: Optional[float] = None
    open_now: Optional[bool] = None
    website: Optional[str] = None


@dataclass
class Prose:
    """文本类结果（对话、搜索、事实核查）。

    streamed_message_id 非空时，表示内容已经通过流式组装器
    写进了对话记录中的那条消息，结算阶段只需提交而无需再追加。
    """

    text: str
    citations: List[Citation] = field(default_factory=list)
    streamed_message_id: Optional[str] = None

    content_type: ContentType = field(default="text", init=False, repr=False)

    def to_content(self) -> str:
        if not self.citations:
            return self.text
        lines = [self.text, "", "Sources:"]
        for i, c in enumerate(self.citations, start=1):
            lines.append(f"{i}. {c.title} ({c.url})" if c.title else f"{i}. {c.url}")
        return "\n".join(lines)


@dataclass
class EntityList:
    """本地商户列表，始终以结构化列表视图渲染。"""

    businesses: List[Business]

    content_type: ContentType = field(default="entities", init=False, repr=False)

    def to_content(self) -> str:
        return json.dumps(
            {"type": "entities", "businesses": [asdict(b) for b in self.businesses]},
            ensure_ascii=False,
        )


@dataclass
class StructuredRecord:
    """结构化记录（空气质量、路线、时区）。"""

    kind: str
    fields: Dict[str, Any]

    content_type: ContentType = field(default="record", init=False, repr=False)

    def to_content(self) -> str:
        return json.dumps({"type": "record", "kind": self.kind, "fields": self.fields}, ensure_ascii=False)


@dataclass
class ErrorResult:
    """能力调用失败（或被定位失败短路）后替代输出的结果。"""

    message: str
    code: str = "CAPABILITY_ERROR"
    # 流式中途失败时，错误已写进那条部分消息
    streamed_message_id: Optional[str] = None

    content_type: ContentType = field(default="error", init=False, repr=False)

    def to_content(self) -> str:
        return self.message


CapabilityResult = Union[Prose, EntityList, StructuredRecord, ErrorResult]
