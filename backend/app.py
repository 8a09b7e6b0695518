import logging

from flask import Flask, request, jsonify

from config import Settings
from services import (
    Message, send_chat, resolve_address, describe_coordinates,
    add_location, list_locations, get_locations_collection, default_http,
)

logger = logging.getLogger(__name__)


def create_app(settings=None, http=None, locations=None):
    """
    Build the Flask app. settings defaults to Settings.from_env(); http and
    locations may be swapped out (tests pass fakes for both).
    """
    settings = settings or Settings.from_env()
    http = http or default_http(settings)
    if locations is None and settings.mongo_uri:
        locations = get_locations_collection(settings)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings

    @app.route("/api/config", methods=["GET"])
    def api_config():
        """Feature flags for the frontend."""
        return jsonify({
            "has_llm": bool(settings.gemini_api_key),
            "has_geocoder": bool(settings.locationiq_key),
            "has_reverse_geocoder": bool(settings.google_maps_api_key),
            "has_mongodb": locations is not None,
            "model": settings.gemini_model,
        })

    @app.route("/api/ai/chat", methods=["POST"])
    def api_ai_chat():
        """
        Travel assistant chat.

        Expects JSON:
        - messages: Array of {role: "user"|"assistant"|"system", content}
        """
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "request body must be an object"}), 400
        raw_messages = data.get("messages") or []
        if not isinstance(raw_messages, list):
            return jsonify({"error": "messages must be an array"}), 400
        try:
            messages = [Message.from_dict(m) for m in raw_messages]
        except ValueError as e:
            return jsonify({"error": str(e)}), 400

        body, status = send_chat(messages, settings, http).to_response()
        return jsonify(body), status

    @app.route("/api/geocode", methods=["GET"])
    def api_geocode():
        address = (request.args.get("address") or "").strip()
        if not address:
            return jsonify({"error": "missing address"}), 400
        return jsonify(resolve_address(address, settings, http).to_dict())

    @app.route("/api/geocode/reverse", methods=["GET"])
    def api_reverse_geocode():
        try:
            lat = float(request.args["lat"])
            lng = float(request.args["lng"])
        except (KeyError, ValueError):
            return jsonify({"error": "lat and lng must be numbers"}), 400
        return jsonify(describe_coordinates(lat, lng, settings, http))

    @app.route("/api/trips/<trip_id>/locations", methods=["GET", "POST"])
    def api_trip_locations(trip_id):
        """
        GET: the trip's locations in itinerary order
        POST: geocode {"address"} and append it to the itinerary
        """
        if locations is None:
            return jsonify({"error": "MONGO_URI not configured"}), 503

        if request.method == "GET":
            try:
                return jsonify({"locations": list_locations(trip_id, locations)})
            except Exception as e:
                logger.exception("Failed to load locations for trip %s", trip_id)
                return jsonify({"error": str(e)}), 500

        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return jsonify({"error": "request body must be an object"}), 400
        try:
            location = add_location(data.get("address"), trip_id, settings, locations, http)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        except Exception as e:
            logger.exception("Failed to add location to trip %s", trip_id)
            return jsonify({"error": str(e)}), 500
        return jsonify(location), 201

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = Settings.from_env()
    app = create_app(settings)
    # Default to port 5050 to avoid macOS AirPlay conflict on port 5000
    logger.info("Starting server on http://127.0.0.1:%s", settings.port)
    app.run(host="0.0.0.0", port=settings.port, debug=True)
