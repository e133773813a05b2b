from functools import lru_cache

from pydantic_settings import BaseSettings

from src.common.logging import get_logger
from src.common.settings import SettingsMeta

from .models import TravelMode

logger = get_logger(__name__)


class Settings(BaseSettings, metaclass=SettingsMeta):
    google_maps_api_key: str | None = None
    google_maps_language: str = "en"
    google_maps_region: str | None = None
    google_maps_timeout: float = 5.0
    default_travel_mode: TravelMode = TravelMode.DRIVING_HEAVY
    default_service_time_min: float = 5.0
    use_traffic: bool = True
    max_stops: int = 25


@lru_cache
def get_settings() -> Settings:
    return Settings()


@lru_cache
def get_maps_provider():
    """Return a cached Google Maps provider, or ``None`` without an API key."""

    from .maps import GoogleMapsError, GoogleMapsProvider

    settings = get_settings()
    if not settings.google_maps_api_key:
        return None
    try:
        return GoogleMapsProvider(
            settings.google_maps_api_key,
            timeout=settings.google_maps_timeout,
            language=settings.google_maps_language,
            region=settings.google_maps_region,
        )
    except (GoogleMapsError, ValueError) as exc:
        logger.error("google_maps.init_failed", error=str(exc))
        return None


def get_routing_provider():
    from .maps import StraightLineProvider

    provider = get_maps_provider()
    if provider is None:
        logger.warning("routing_provider.offline")
        return StraightLineProvider()
    return provider


def get_waypoint_optimizer():
    return get_maps_provider()
