"""Flask API surface for exposing the stop router."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from flask import Flask, Response, jsonify, request
from werkzeug.exceptions import BadRequest

from stoproute.config import settings
from stoproute.plan import StopRouter
from stoproute.stops import load_stops

if TYPE_CHECKING:
    from stoproute.config import Settings


def _parse_stop_id(payload: dict[str, object], label: str) -> str:
    """Validate that payload[label] looks like a stop id."""
    value = payload.get(label)
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        msg = f"{label} must be a stop id (string or integer)."
        raise BadRequest(msg)
    stop_id = str(value).strip()
    if not stop_id:
        msg = f"{label} must not be empty."
        raise BadRequest(msg)
    return stop_id


def create_app(router: StopRouter) -> Flask:
    """Build the Flask app serving routes for `router`'s stop set."""
    app = Flask(__name__)

    @app.after_request
    def _inject_cors(response: Response) -> Response:  # type: ignore[override]
        """Allow simple cross-origin requests from the map frontend."""
        response.headers.setdefault("Access-Control-Allow-Origin", "*")
        response.headers.setdefault("Access-Control-Allow-Headers", "Content-Type")
        response.headers.setdefault(
            "Access-Control-Allow-Methods",
            "GET, POST, DELETE, OPTIONS",
        )
        return response

    @app.route("/health", methods=["GET"])
    def health() -> Response:
        return jsonify({"status": "ok", "stops": len(router.stops)})

    @app.route("/api/route", methods=["POST", "OPTIONS"])
    def route_planner() -> Response:
        """Plan a route between two stops of the loaded stop set."""
        if request.method == "OPTIONS":
            return Response("", status=204)

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            msg = "Request body must be a JSON object."
            raise BadRequest(msg)

        start = _parse_stop_id(payload, "start")
        end = _parse_stop_id(payload, "end")

        result = asyncio.run(router.route(start, end))
        return jsonify(result.to_dict())

    @app.route("/api/cache", methods=["DELETE"])
    def clear_cache() -> Response:
        router.clear_caches()
        return Response("", status=204)

    return app


def app_from_settings(config: Settings = settings) -> Flask:
    """Load the configured stop file and build the app around it."""
    if config.STOPS_FILE is None:
        msg = "STOPROUTE_STOPS_FILE must point to a GeoJSON file of stops."
        raise RuntimeError(msg)
    stops = load_stops(config.STOPS_FILE)
    return create_app(StopRouter.from_settings(stops, config))


if __name__ == "__main__":  # pragma: no cover
    app_from_settings().run()
