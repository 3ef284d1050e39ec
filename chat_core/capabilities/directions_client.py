"""路线导航适配器。

起点取值顺序：当前坐标 > 文本中的 "from <X>" > "current location" 哨兵值；
终点为去掉命令措辞后的文本。
"""

from typing import Any, Dict, List

from chat_core.capabilities.http import post_json
from chat_core.capabilities.registry import DIRECTIONS_ENDPOINT
from chat_core.config.settings import settings
from chat_core.domain.exceptions import CapabilityError, ValidationError
from chat_core.domain.models import CapabilityRequest, StructuredRecord
from chat_core.intents.classifier import extract_destination, extract_origin

CURRENT_LOCATION = "current location"


class DirectionsClient:
    name = "directions"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def build_payload(self, req: CapabilityRequest) -> Dict[str, Any]:
        destination = extract_destination(req.text)
        if not destination:
            raise ValidationError(code="MISSING_DESTINATION", message="Please tell me where you want to go.")
        if req.coordinates is not None:
            origin: Any = {"lat": req.coordinates.lat, "lon": req.coordinates.lon}
        else:
            origin = extract_origin(req.text) or CURRENT_LOCATION
        return {"origin": origin, "destination": destination}

    def invoke(self, req: CapabilityRequest) -> StructuredRecord:
        payload = self.build_payload(req)
        data = post_json(self._settings, DIRECTIONS_ENDPOINT, payload)
        if data.get("distance") is None and data.get("duration") is None:
            raise CapabilityError(code="INVALID_RESPONSE", message="no route found")
        fields = {
            "origin": payload["origin"],
            "destination": payload["destination"],
            "distance": data.get("distance"),
            "duration": data.get("duration"),
            "steps": self._parse_steps(data.get("steps") or []),
        }
        return StructuredRecord(kind="directions", fields=fields)

    @staticmethod
    def _parse_steps(raw: List[Any]) -> List[str]:
        steps: List[str] = []
        for step in raw:
            if isinstance(step, str):
                steps.append(step)
            elif isinstance(step, dict) and step.get("instruction"):
                steps.append(str(step["instruction"]))
        return steps
