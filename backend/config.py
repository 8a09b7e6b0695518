import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-preview-09-2025"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
LOCATIONIQ_URL = "https://us1.locationiq.com/v1/search.php"
GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


def _env_flag(name, default):
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name):
    value = os.getenv(name)
    if not value:
        return None
    return float(value)


@dataclass(frozen=True)
class Settings:
    """
    Process configuration, read once at startup and passed to each service.
    Any key may be missing; the services decide what a missing key means.
    """
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    gemini_base_url: str = GEMINI_BASE_URL
    gemini_search_grounding: bool = True
    gemini_retry_model_casing: bool = True
    locationiq_key: Optional[str] = None
    locationiq_url: str = LOCATIONIQ_URL
    google_maps_api_key: Optional[str] = None
    google_geocode_url: str = GOOGLE_GEOCODE_URL
    mongo_uri: Optional[str] = None
    mongo_db: str = "trip_planner"
    http_timeout: Optional[float] = None
    port: int = 5050

    @classmethod
    def from_env(cls, dotenv_path=None):
        """Load `.env` (next to this file unless told otherwise) and snapshot the environment."""
        load_dotenv(dotenv_path=dotenv_path or os.path.join(os.path.dirname(__file__), ".env"))
        return cls(
            gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
            gemini_model=os.getenv("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
            gemini_base_url=os.getenv("GEMINI_BASE_URL") or GEMINI_BASE_URL,
            gemini_search_grounding=_env_flag("GEMINI_SEARCH_GROUNDING", True),
            gemini_retry_model_casing=_env_flag("GEMINI_RETRY_MODEL_CASING", True),
            locationiq_key=os.getenv("LOCATIONIQ_KEY") or None,
            locationiq_url=os.getenv("LOCATIONIQ_URL") or LOCATIONIQ_URL,
            google_maps_api_key=os.getenv("GOOGLE_MAPS_API_KEY") or None,
            mongo_uri=os.getenv("MONGO_URI") or None,
            mongo_db=os.getenv("MONGO_DB") or "trip_planner",
            http_timeout=_env_float("HTTP_TIMEOUT"),
            port=int(os.getenv("PORT", 5050)),
        )
