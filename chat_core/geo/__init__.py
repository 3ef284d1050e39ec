"""设备定位与反向地理编码。"""

from chat_core.geo.resolver import (
    FixedGeolocationProvider,
    GeolocationProvider,
    GeolocationResolver,
    HttpReverseGeocoder,
    ReverseGeocoder,
    UnavailableGeolocationProvider,
    create_default_resolver,
)

__all__ = [
    "FixedGeolocationProvider",
    "GeolocationProvider",
    "GeolocationResolver",
    "HttpReverseGeocoder",
    "ReverseGeocoder",
    "UnavailableGeolocationProvider",
    "create_default_resolver",
]
