import json

import httpx
import pytest

from chat_core.capabilities.air_quality_client import AirQualityClient
from chat_core.capabilities.directions_client import CURRENT_LOCATION, DirectionsClient
from chat_core.capabilities.fact_check_client import FactCheckClient
from chat_core.capabilities.search_client import LocalBusinessClient, SearchClient
from chat_core.capabilities.timezone_client import TimezoneClient
from chat_core.capabilities.title_client import TitleClient
from chat_core.domain.exceptions import ApiError, CapabilityError, NetworkError, RateLimitError, ValidationError
from chat_core.domain.models import CapabilityRequest, EntityList, GeoCoordinate, Intent, Prose, StructuredRecord


class SettingsStub:
    capability_base_url = "https://caps.example.com/"
    capability_api_key = "secret-token-123"
    capability_timeout = 5.0
    max_history_messages = 20


class Resp:
    def __init__(self, status_code=200, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def install_client(monkeypatch, resp, captured=None):
    """用假的 httpx.Client 替换真实网络调用，并记录请求。"""

    captured = captured if captured is not None else {}

    class Client:
        def __init__(self, *a, **kw):
            captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            captured["url"] = url
            captured["payload"] = json
            captured["headers"] = headers
            return resp

        def get(self, url, params=None, headers=None, **_):
            captured["url"] = url
            captured["params"] = params
            return resp

    monkeypatch.setattr("httpx.Client", Client)
    return captured


def test_search_client_prose_with_citations(monkeypatch):
    captured = install_client(monkeypatch, Resp(body={
        "answer": "Rain expected.",
        "citations": [{"title": "Weather", "url": "https://w.example"}, "https://x.example"],
    }))
    res = SearchClient(SettingsStub()).invoke(CapabilityRequest(intent=Intent.WEB_SEARCH, text=" latest news "))
    assert isinstance(res, Prose)
    assert res.text == "Rain expected."
    assert [c.url for c in res.citations] == ["https://w.example", "https://x.example"]
    assert captured["url"] == "https://caps.example.com/api/search"
    assert captured["payload"] == {"query": "latest news"}
    assert captured["headers"]["Authorization"] == "Bearer secret-token-123"
    assert captured["client_kwargs"]["timeout"] == 5.0
    assert "Sources:" in res.to_content()


def test_local_business_sends_coordinates(monkeypatch):
    captured = install_client(monkeypatch, Resp(body={
        "businesses": [
            {"name": "Joe's Pizza", "address": "1 Main St", "rating": {"ratingValue": 4.5}, "openNow": True},
            {"address": "no name, dropped"},
        ]
    }))
    req = CapabilityRequest(intent=Intent.LOCAL_BUSINESS, text="pizza near me", coordinates=GeoCoordinate(42.0, -71.0))
    res = LocalBusinessClient(SettingsStub()).invoke(req)
    assert captured["payload"] == {"query": "pizza near me", "lat": 42.0, "lon": -71.0}
    assert isinstance(res, EntityList)
    assert len(res.businesses) == 1
    biz = res.businesses[0]
    assert biz.name == "Joe's Pizza"
    assert biz.rating == 4.5
    assert biz.open_now is True
    content = json.loads(res.to_content())
    assert content["type"] == "entities"
    assert res.content_type == "entities"


def test_local_business_uses_place_name(monkeypatch):
    captured = install_client(monkeypatch, Resp(body={"results": []}))
    req = CapabilityRequest(intent=Intent.LOCAL_BUSINESS, text="cafes in Boston", place="Boston")
    res = LocalBusinessClient(SettingsStub()).invoke(req)
    assert captured["payload"]["location"] == "Boston"
    assert res.businesses == []


def test_local_business_without_location_fails():
    req = CapabilityRequest(intent=Intent.LOCAL_BUSINESS, text="pizza near me")
    with pytest.raises(ValidationError):
        LocalBusinessClient(SettingsStub()).invoke(req)


def test_fact_check_sends_claim_verbatim(monkeypatch):
    captured = install_client(monkeypatch, Resp(body={"verdict": "False", "explanation": "The earth is round."}))
    req = CapabilityRequest(intent=Intent.FACT_CHECK, text="fact check: the earth is flat")
    res = FactCheckClient(SettingsStub()).invoke(req)
    assert captured["payload"] == {"claim": "fact check: the earth is flat"}
    assert res.text == "Verdict: False\n\nThe earth is round."


def test_air_quality_record(monkeypatch):
    captured = install_client(monkeypatch, Resp(body={
        "aqi": 42,
        "category": "Good",
        "dominantPollutant": "pm25",
        "pollen": {"grass": "low"},
    }))
    req = CapabilityRequest(
        intent=Intent.AIR_QUALITY,
        text="air quality",
        coordinates=GeoCoordinate(42.0, -71.0, place_name="Cambridge, MA"),
    )
    res = AirQualityClient(SettingsStub()).invoke(req)
    assert captured["payload"] == {"lat": 42.0, "lon": -71.0}
    assert isinstance(res, StructuredRecord)
    assert res.kind == "air_quality"
    assert res.fields["aqi"] == 42
    assert res.fields["dominant_pollutant"] == "pm25"
    assert res.fields["location"] == "Cambridge, MA"


def test_air_quality_without_aqi_is_error(monkeypatch):
    install_client(monkeypatch, Resp(body={"category": "Good"}))
    req = CapabilityRequest(intent=Intent.AIR_QUALITY, text="air quality in Boston", place="Boston")
    with pytest.raises(CapabilityError):
        AirQualityClient(SettingsStub()).invoke(req)


def test_directions_origin_selection():
    client = DirectionsClient(SettingsStub())
    with_coords = client.build_payload(CapabilityRequest(
        intent=Intent.DIRECTIONS, text="Directions to Fenway Park", coordinates=GeoCoordinate(42.0, -71.0),
    ))
    assert with_coords == {"origin": {"lat": 42.0, "lon": -71.0}, "destination": "Fenway Park"}

    with_from = client.build_payload(CapabilityRequest(
        intent=Intent.DIRECTIONS, text="How do I get to Fenway Park from Cambridge?",
    ))
    assert with_from == {"origin": "Cambridge", "destination": "Fenway Park"}

    bare = client.build_payload(CapabilityRequest(intent=Intent.DIRECTIONS, text="Directions to Fenway Park"))
    assert bare["origin"] == CURRENT_LOCATION


def test_directions_record(monkeypatch):
    install_client(monkeypatch, Resp(body={
        "distance": "3.2 mi",
        "duration": "12 min",
        "steps": [{"instruction": "Head north"}, "Turn left"],
    }))
    res = DirectionsClient(SettingsStub()).invoke(CapabilityRequest(
        intent=Intent.DIRECTIONS, text="Directions to Fenway Park", coordinates=GeoCoordinate(42.0, -71.0),
    ))
    assert res.kind == "directions"
    assert res.fields["steps"] == ["Head north", "Turn left"]
    assert res.fields["destination"] == "Fenway Park"


def test_timezone_record(monkeypatch):
    captured = install_client(monkeypatch, Resp(body={
        "localTime": "2024-05-01T21:00:00+09:00",
        "utcOffset": "+09:00",
        "timeZone": "Asia/Tokyo",
    }))
    res = TimezoneClient(SettingsStub()).invoke(CapabilityRequest(intent=Intent.TIMEZONE, text="What time is it in Tokyo?"))
    assert captured["payload"] == {"location": "Tokyo"}
    assert res.fields == {
        "location": "Tokyo",
        "local_time": "2024-05-01T21:00:00+09:00",
        "utc_offset": "+09:00",
        "time_zone": "Asia/Tokyo",
    }


def test_title_client(monkeypatch):
    captured = install_client(monkeypatch, Resp(body={"title": "  Pizza in Cambridge "}))
    title = TitleClient(SettingsStub()).generate_title("c-1", "pizza near me", "Here are some places")
    assert title == "Pizza in Cambridge"
    assert captured["url"].endswith("/api/chat/generate-title")
    assert captured["payload"] == {
        "conversationId": "c-1",
        "userMessage": "pizza near me",
        "assistantMessage": "Here are some places",
    }


def test_http_error_mapping(monkeypatch):
    req = CapabilityRequest(intent=Intent.WEB_SEARCH, text="search cats")

    install_client(monkeypatch, Resp(status_code=429, body={}))
    with pytest.raises(RateLimitError):
        SearchClient(SettingsStub()).invoke(req)

    install_client(monkeypatch, Resp(status_code=500, body={"details": "boom"}))
    with pytest.raises(ApiError) as ei:
        SearchClient(SettingsStub()).invoke(req)
    assert ei.value.http_status == 500
    assert ei.value.message == "boom"

    install_client(monkeypatch, Resp(status_code=200, body={"error": "quota exceeded"}))
    with pytest.raises(CapabilityError) as ei:
        SearchClient(SettingsStub()).invoke(req)
    assert ei.value.message == "quota exceeded"

    install_client(monkeypatch, Resp(status_code=200, body=None, text="<html>"))
    with pytest.raises(CapabilityError):
        SearchClient(SettingsStub()).invoke(req)


def test_network_error_mapping(monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, **_):
            raise httpx.ConnectError("connection refused")

    monkeypatch.setattr("httpx.Client", Client)
    with pytest.raises(NetworkError):
        SearchClient(SettingsStub()).invoke(CapabilityRequest(intent=Intent.WEB_SEARCH, text="search cats"))
