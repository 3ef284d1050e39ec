"""网页搜索与本地商户搜索适配器。

两者共享“搜索”语义，但结果形态完全不同：

- SearchClient -> Prose（回答 + 引用来源）。
- LocalBusinessClient -> EntityList（商户列表），永远不当作文本渲染。
"""

from typing import Any, Dict, List, Optional

from chat_core.capabilities.http import post_json
from chat_core.capabilities.registry import LOCAL_SEARCH_ENDPOINT, SEARCH_ENDPOINT
from chat_core.config.settings import settings
from chat_core.domain.exceptions import CapabilityError, ValidationError
from chat_core.domain.models import Business, CapabilityRequest, Citation, EntityList, Prose


class SearchClient:
    """网页搜索客户端：query（+ 可选坐标）-> 回答与引用。"""

    name = "web_search"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def invoke(self, req: CapabilityRequest) -> Prose:
        payload: Dict[str, Any] = {"query": req.text.strip()}
        if req.coordinates is not None:
            payload["lat"] = req.coordinates.lat
            payload["lon"] = req.coordinates.lon
        data = post_json(self._settings, SEARCH_ENDPOINT, payload)
        answer = data.get("answer") or data.get("content")
        if not isinstance(answer, str) or not answer.strip():
            raise CapabilityError(code="EMPTY_RESULT", message="search returned no answer")
        return Prose(text=answer, citations=self._parse_citations(data))

    @staticmethod
    def _parse_citations(data: Dict[str, Any]) -> List[Citation]:
        raw = data.get("citations") or data.get("sources") or []
        citations: List[Citation] = []
        for item in raw:
            if isinstance(item, str):
                citations.append(Citation(title="", url=item))
            elif isinstance(item, dict) and item.get("url"):
                citations.append(Citation(title=item.get("title") or "", url=item["url"]))
        return citations


class LocalBusinessClient:
    """本地商户搜索客户端：query + 坐标或地名 -> 商户列表。"""

    name = "local_business"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def invoke(self, req: CapabilityRequest) -> EntityList:
        payload: Dict[str, Any] = {"query": req.text.strip()}
        if req.coordinates is not None:
            payload["lat"] = req.coordinates.lat
            payload["lon"] = req.coordinates.lon
        elif req.place:
            payload["location"] = req.place
        else:
            raise ValidationError(code="MISSING_LOCATION", message="local search needs coordinates or a place name")
        data = post_json(self._settings, LOCAL_SEARCH_ENDPOINT, payload)
        raw = data.get("businesses")
        if raw is None:
            raw = data.get("results")
        if not isinstance(raw, list):
            raise CapabilityError(code="INVALID_RESPONSE", message="local search returned no business list")
        return EntityList(businesses=[b for b in (self._parse_business(item) for item in raw) if b])

    @staticmethod
    def _parse_business(item: Any) -> Optional[Business]:
        """把单条商户 JSON 转为 Business；没有名称的条目直接丢弃。"""

        if not isinstance(item, dict) or not item.get("name"):
            return None
        rating = item.get("rating")
        if isinstance(rating, dict):
            rating = rating.get("ratingValue")
        open_now = item.get("openNow")
        if open_now is None:
            open_now = item.get("open_now")
        return Business(
            name=str(item["name"]),
            address=item.get("address"),
            phone=item.get("phone"),
            rating=float(rating) if isinstance(rating, (int, float)) else None,
            open_now=bool(open_now) if open_now is not None else None,
            website=item.get("website") or item.get("url"),
        )
