"""地理定位解析。

只有 LocalBusiness / AirQuality / Directions 且文本里没有显式地名时才会调用。
流程：带超时地请求设备坐标 -> 成功后尽力反向地理编码（失败忽略）；
拒绝或超时抛出 GeolocationDenied / GeolocationTimeout，由编排层改为提示消息。
"""

from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Optional, Protocol

from chat_core.capabilities.http import get_json
from chat_core.capabilities.registry import REVERSE_GEOCODE_ENDPOINT
from chat_core.config.settings import settings
from chat_core.domain.exceptions import GeolocationDenied, GeolocationError, GeolocationTimeout
from chat_core.domain.models import GeoCoordinate
from chat_core.infrastructure.logging.logger import logger


class GeolocationProvider(Protocol):
    """平台定位接口；拒绝授权时应抛出 GeolocationDenied。"""

    def current_position(self, timeout: float) -> GeoCoordinate:
        ...


class ReverseGeocoder(Protocol):
    """坐标 -> 可读地名，尽力而为。"""

    def reverse(self, coordinate: GeoCoordinate) -> Optional[str]:
        ...


class FixedGeolocationProvider:
    """返回配置中固定坐标的定位源（桌面/服务端场景）。"""

    def __init__(self, lat: float, lon: float):
        self._coordinate = GeoCoordinate(lat=lat, lon=lon)

    def current_position(self, timeout: float) -> GeoCoordinate:
        return GeoCoordinate(lat=self._coordinate.lat, lon=self._coordinate.lon)


class UnavailableGeolocationProvider:
    """没有任何定位能力时使用，始终视为拒绝授权。"""

    def current_position(self, timeout: float) -> GeoCoordinate:
        raise GeolocationDenied(code="GEOLOCATION_DENIED", message="location access is not available")


class HttpReverseGeocoder:
    """调用 /api/geocode/reverse，把 {city, region} 拼成地名。"""

    def __init__(self, cfg=settings):
        self._settings = cfg

    def reverse(self, coordinate: GeoCoordinate) -> Optional[str]:
        data = get_json(self._settings, REVERSE_GEOCODE_ENDPOINT, {"lat": coordinate.lat, "lon": coordinate.lon})
        parts = [p for p in (data.get("city"), data.get("region")) if p]
        return ", ".join(parts) or None


class GeolocationResolver:
    """获取单轮有效的设备坐标。

    定位调用在独立线程中执行，并用 timeout 兜底：即使底层实现
    不遵守传入的超时，本轮次也最多阻塞 timeout 秒。
    """

    def __init__(
        self,
        provider: GeolocationProvider,
        reverse_geocoder: Optional[ReverseGeocoder] = None,
        timeout: Optional[float] = None,
    ):
        self._provider = provider
        self._reverse_geocoder = reverse_geocoder
        self._timeout = timeout if timeout is not None else settings.geolocation_timeout

    def resolve(self) -> GeoCoordinate:
        coordinate = self._acquire()
        if self._reverse_geocoder is not None:
            try:
                coordinate.place_name = self._reverse_geocoder.reverse(coordinate)
            except Exception as e:
                # 反向地理编码失败不影响本轮次，坐标本身已足够
                logger.info("reverse_geocode.failed", extra={"extra": {"error": str(e)}})
        return coordinate

    def _acquire(self) -> GeoCoordinate:
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="geolocate")
        try:
            future = pool.submit(self._provider.current_position, self._timeout)
            try:
                return future.result(timeout=self._timeout)
            except FutureTimeout:
                raise GeolocationTimeout(
                    code="GEOLOCATION_TIMEOUT",
                    message=f"no position within {self._timeout}s",
                )
            except GeolocationError:
                raise
            except Exception as e:
                raise GeolocationDenied(code="GEOLOCATION_UNAVAILABLE", message=str(e))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)


def create_default_resolver(cfg=settings) -> GeolocationResolver:
    """根据配置构造解析器：配置了坐标则用固定定位，否则视为不可用。"""

    if cfg.device_latitude is not None and cfg.device_longitude is not None:
        provider: GeolocationProvider = FixedGeolocationProvider(cfg.device_latitude, cfg.device_longitude)
    else:
        provider = UnavailableGeolocationProvider()
    reverse = HttpReverseGeocoder(cfg) if cfg.reverse_geocode_enabled else None
    return GeolocationResolver(provider, reverse, timeout=cfg.geolocation_timeout)
