"""空气质量适配器：坐标（或显式地名）-> AQI 与花粉信息。"""

from typing import Any, Dict

from chat_core.capabilities.http import post_json
from chat_core.capabilities.registry import AIR_QUALITY_ENDPOINT
from chat_core.config.settings import settings
from chat_core.domain.exceptions import CapabilityError, ValidationError
from chat_core.domain.models import CapabilityRequest, StructuredRecord


class AirQualityClient:
    name = "air_quality"

    def __init__(self, cfg=settings):
        self._settings = cfg

    def build_payload(self, req: CapabilityRequest) -> Dict[str, Any]:
        if req.coordinates is not None:
            return {"lat": req.coordinates.lat, "lon": req.coordinates.lon}
        if req.place:
            return {"location": req.place}
        raise ValidationError(code="MISSING_LOCATION", message="air quality needs coordinates or a place name")

    def invoke(self, req: CapabilityRequest) -> StructuredRecord:
        data = post_json(self._settings, AIR_QUALITY_ENDPOINT, self.build_payload(req))
        if data.get("aqi") is None:
            raise CapabilityError(code="INVALID_RESPONSE", message="air quality response has no AQI")
        location = data.get("location")
        if not location:
            if req.coordinates is not None:
                location = req.coordinates.place_name
            else:
                location = req.place
        fields = {
            "aqi": data["aqi"],
            "category": data.get("category"),
            "dominant_pollutant": data.get("dominantPollutant") or data.get("dominant_pollutant"),
            "pollen": data.get("pollen") or {},
            "location": location,
        }
        return StructuredRecord(kind="air_quality", fields=fields)
