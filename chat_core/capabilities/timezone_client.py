"""时区查询适配器：地名 -> 当地时间与 UTC 偏移。"""

from typing import Any, Dict

from chat_core.capabilities.http import post_json
from chat_core.capabilities.registry import TIMEZONE_ENDPOINT
from chat_core.config.settings import settings
from chat_core.domain.exceptions import CapabilityError, ValidationError
from chat_core.domain.models import CapabilityRequest, StructuredRecord
from chat_core.intents.classifier import extract_timezone_place


class TimezoneClient:
    name = "timezone"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def build_payload(self, req: CapabilityRequest) -> Dict[str, Any]:
        place = extract_timezone_place(req.text)
        if not place:
            raise ValidationError(code="MISSING_PLACE", message="Please tell me which place you mean.")
        return {"location": place}

    def invoke(self, req: CapabilityRequest) -> StructuredRecord:
        payload = self.build_payload(req)
        data = post_json(self._settings, TIMEZONE_ENDPOINT, payload)
        local_time = data.get("localTime") or data.get("local_time")
        if not local_time:
            raise CapabilityError(code="INVALID_RESPONSE", message="time zone response has no local time")
        fields = {
            "location": data.get("location") or payload["location"],
            "local_time": local_time,
            "utc_offset": data.get("utcOffset") or data.get("utc_offset"),
            "time_zone": data.get("timeZone") or data.get("time_zone"),
        }
        return StructuredRecord(kind="timezone", fields=fields)
