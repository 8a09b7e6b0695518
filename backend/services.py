import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

import requests
import google.generativeai as genai
from pymongo import MongoClient

logger = logging.getLogger(__name__)

# Gemini accepts up to 8192 output tokens for the flash models; asking for
# the maximum keeps long itineraries from stopping with MAX_TOKENS.
CHAT_TEMPERATURE = 0.2
MAX_OUTPUT_TOKENS = 8192

DEFAULT_LOCATION_NAME = "Dhaka, Bangladesh"


# ============== HTTP ==============

def default_http(settings):
    """
    Build the outbound HTTP callable used by every service.
    Signature: http(method, url, **kwargs) -> requests.Response, raising
    requests.RequestException on transport failure.
    """
    def send(method, url, **kwargs):
        kwargs.setdefault("timeout", settings.http_timeout)
        return requests.request(method, url, **kwargs)
    return send


# ---------------- Chat (Gemini) ----------------

GEMINI_ROLES = {"user": "user", "assistant": "model"}
MESSAGE_ROLES = ("user", "assistant", "system")


@dataclass(frozen=True)
class Message:
    role: str
    content: str

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValueError(f"message must be an object, got {type(data).__name__}")
        role = data.get("role")
        if role not in MESSAGE_ROLES:
            raise ValueError(f"unknown message role: {role!r}")
        content = data.get("content")
        return cls(role=role, content="" if content is None else str(content))


@dataclass(frozen=True)
class ChatSuccess:
    text: str
    raw: Any = None
    ok = True

    def to_response(self):
        return {"text": self.text, "raw": self.raw}, 200


@dataclass(frozen=True)
class ChatFailure:
    """
    kind is one of: config, transport, upstream, empty.
    status is what the HTTP layer should answer with.
    """
    kind: str
    message: str
    status: int = 500
    detail: Any = None
    ok = False

    def to_response(self):
        body = {"error": self.message}
        if self.detail is not None:
            body["detail"] = self.detail
        return body, self.status


def split_conversation(messages: List[Message]) -> Tuple[str, List[dict]]:
    """
    Separate system messages from the dialogue.
    Returns (system_instruction, contents) where contents is the Gemini
    'contents' list with assistant turns renamed to 'model'.
    """
    system_instruction = "\n".join(m.content for m in messages if m.role == "system")
    contents = [
        {"role": GEMINI_ROLES[m.role], "parts": [{"text": m.content}]}
        for m in messages
        if m.role in GEMINI_ROLES
    ]
    return system_instruction, contents


def build_chat_payload(messages, settings):
    system_instruction, contents = split_conversation(messages)
    payload = {
        "contents": contents,
        "generationConfig": {
            "temperature": CHAT_TEMPERATURE,
            "maxOutputTokens": MAX_OUTPUT_TOKENS,
        },
    }
    if system_instruction:
        payload["systemInstruction"] = {"parts": [{"text": system_instruction}]}
    if settings.gemini_search_grounding:
        payload["tools"] = [{"google_search": {}}]
    return payload


def list_available_models(api_key):
    """
    Names of the Gemini models that support generateContent.
    Best effort: any failure is logged and yields an empty list.
    """
    try:
        genai.configure(api_key=api_key)
        return [
            m.name for m in genai.list_models()
            if "generateContent" in (getattr(m, "supported_generation_methods", None) or [])
        ]
    except Exception as e:
        logger.warning("Could not list Gemini models: %s", e)
        return []


def _generate_content(http, settings, model, payload):
    url = f"{settings.gemini_base_url}/models/{model}:generateContent"
    return http(
        "POST", url,
        params={"key": settings.gemini_api_key},
        headers={"Content-Type": "application/json"},
        json=payload,
    )


def _extract_reply(data):
    candidates = data.get("candidates") if isinstance(data, dict) else None
    first = candidates[0] if isinstance(candidates, list) and candidates else {}
    if not isinstance(first, dict):
        first = {}

    content = first.get("content")
    parts = content.get("parts") if isinstance(content, dict) else None
    part = parts[0] if isinstance(parts, list) and parts else None
    text = part.get("text") if isinstance(part, dict) else None
    if isinstance(text, str) and text:
        return ChatSuccess(text=text, raw=data)

    reason = first.get("finishReason")
    if not reason and isinstance(data, dict):
        feedback = data.get("promptFeedback")
        reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
    reason = reason or "UNKNOWN"
    logger.warning("Gemini returned no text content (reason: %s)", reason)
    return ChatFailure(
        kind="empty",
        message=f"Model returned no text content. Reason: {reason}",
        status=500,
        detail=data,
    )


def send_chat(messages, settings, http=None):
    """
    Forward a conversation to Gemini and return ChatSuccess or ChatFailure.
    Never raises; a missing API key fails before any network call.
    """
    if not settings.gemini_api_key:
        return ChatFailure(kind="config", message="GEMINI_API_KEY not set in environment.", status=500)

    http = http or default_http(settings)
    payload = build_chat_payload(messages, settings)
    model = settings.gemini_model

    try:
        res = _generate_content(http, settings, model, payload)

        if res.status_code == 404 and settings.gemini_retry_model_casing and model.lower() != model:
            logger.warning("Gemini model %r not found, retrying as %r", model, model.lower())
            model = model.lower()
            res = _generate_content(http, settings, model, payload)

        if not res.ok:
            logger.error("Gemini API Error (Status %s): %s", res.status_code, res.text)
            detail = {"model": model, "body": res.text}
            if res.status_code == 404 and settings.gemini_retry_model_casing:
                detail["available_models"] = list_available_models(settings.gemini_api_key)
            return ChatFailure(
                kind="upstream",
                message="Failed to communicate with the Gemini API.",
                status=res.status_code,
                detail=detail,
            )

        data = res.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Gemini request failed: %s", e)
        return ChatFailure(kind="transport", message=f"Internal Server Error: {e}", status=500)

    return _extract_reply(data)


# ---------------- Geocoding (LocationIQ / Google) ----------------

@dataclass(frozen=True)
class GeocodeResult:
    lat: float
    lng: float

    def to_dict(self):
        return {"lat": self.lat, "lng": self.lng}


DEFAULT_LOCATION = GeocodeResult(lat=23.8103, lng=90.4125)


def geocode_address(address, settings, http=None) -> Optional[GeocodeResult]:
    """
    One LocationIQ forward lookup for the top match.
    Returns None on any failure, including a missing LOCATIONIQ_KEY.
    """
    if not settings.locationiq_key:
        logger.error("LOCATIONIQ_KEY is missing")
        return None

    http = http or default_http(settings)
    params = {
        "key": settings.locationiq_key,
        "q": address,
        "format": "json",
        "limit": 1,
    }
    try:
        r = http("GET", settings.locationiq_url, params=params)
        if not r.ok:
            logger.info("Geocoding request failed for %r: %s %s", address, r.status_code, r.text)
            return None
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.info("Geocoding error for %r: %s", address, e)
        return None

    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        return None

    try:
        return GeocodeResult(lat=float(data[0]["lat"]), lng=float(data[0]["lon"]))
    except (KeyError, TypeError, ValueError):
        logger.info("Failed to extract coordinates from geocode response for %r", address)
        return None


def fallback_queries(address):
    """
    Queries to try in order: the full address, then the comma-separated
    components with leading parts dropped one at a time. Repeats are skipped.
    """
    parts = [p.strip() for p in address.split(",")]
    queries = [address]
    for i in range(len(parts)):
        query = ", ".join(parts[i:])
        if query not in queries:
            queries.append(query)
    return queries


def resolve_address(address, settings, http=None) -> GeocodeResult:
    """Geocode with progressively less specific queries, ending at DEFAULT_LOCATION."""
    http = http or default_http(settings)
    for query in fallback_queries(address):
        result = geocode_address(query, settings, http)
        if result:
            if query != address:
                logger.info("Geocoded %r using partial address %r", address, query)
            return result

    logger.warning('No geocoding results for "%s", using default location (%s).', address, DEFAULT_LOCATION_NAME)
    return DEFAULT_LOCATION


UNKNOWN_PLACE = {"country": "Unknown", "formatted_address": "Location not found"}


def describe_coordinates(lat, lng, settings, http=None):
    """
    Reverse geocode a coordinate pair with the Google Maps API.
    Returns {"country", "formatted_address"}; unresolved lookups return
    UNKNOWN_PLACE rather than raising.
    """
    if not settings.google_maps_api_key:
        logger.error("GOOGLE_MAPS_API_KEY is missing")
        return dict(UNKNOWN_PLACE)

    http = http or default_http(settings)
    try:
        r = http("GET", settings.google_geocode_url,
                 params={"latlng": f"{lat},{lng}", "key": settings.google_maps_api_key})
        if not r.ok:
            logger.info("Reverse geocoding failed: %s %s", r.status_code, r.text)
            return dict(UNKNOWN_PLACE)
        data = r.json()
    except (requests.RequestException, ValueError) as e:
        logger.info("Reverse geocoding error: %s", e)
        return dict(UNKNOWN_PLACE)

    results = data.get("results") if isinstance(data, dict) else None
    result = results[0] if isinstance(results, list) and results else None
    components = result.get("address_components") if isinstance(result, dict) else None
    if not isinstance(components, list) or not components:
        return dict(UNKNOWN_PLACE)

    country = next(
        (c for c in components
         if isinstance(c, dict) and "country" in (c.get("types") or [])),
        None,
    )
    return {
        "country": (country or {}).get("long_name") or "Unknown",
        "formatted_address": result.get("formatted_address") or "Unknown address",
    }


# ---------------- Itinerary locations (MongoDB) ----------------

def get_locations_collection(settings):
    mongo = MongoClient(settings.mongo_uri)
    return mongo[settings.mongo_db]["locations"]


def _serialize_location(doc):
    doc = dict(doc)
    doc["_id"] = str(doc["_id"])
    return doc


def add_location(address, trip_id, settings, locations, http=None):
    """
    Resolve an address and append it to the end of a trip's itinerary.
    The new location's order is the number of locations the trip already had.
    """
    address = str(address or "").strip()
    if not address:
        raise ValueError("Missing address")

    coords = resolve_address(address, settings, http)
    count = locations.count_documents({"trip_id": trip_id})

    location_doc = {
        "trip_id": trip_id,
        "location_title": address,
        "lat": coords.lat,
        "lng": coords.lng,
        "order": count,
        "created_at": datetime.now(timezone.utc),
    }
    result = locations.insert_one(dict(location_doc))
    location_doc["_id"] = result.inserted_id
    return _serialize_location(location_doc)


def list_locations(trip_id, locations):
    return [
        _serialize_location(doc)
        for doc in locations.find({"trip_id": trip_id}).sort("order", 1)
    ]
