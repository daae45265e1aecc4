#!/usr/bin/env python3
"""
AgriSense API Bridge

Serves the farm dashboard from server-held state:

1.  Routes are FAST: they only read from the in-memory store and the
    AI content the dashboard has already generated.
2.  A single background poller refreshes the soil readings every 15
    seconds and only replaces them when a newer reading shows up.
3.  Recommendations and the daily actionable are generated once when data
    first arrives; the regenerate routes re-request them on demand.
"""

import time
import logging
import functools
from datetime import date

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import Settings, load_settings, configure_logging
from .errors import ConfigError
from .dashboard import Dashboard
from .gateway import build_session, fetch_sensor_readings, fetch_weather
from .insights import InsightRequester, build_model
from .store import DataStore

logger = logging.getLogger("agrisense.app")


# ==============================================================================
# === 1. WIRING
# ==============================================================================

def build_dashboard(settings: Settings) -> Dashboard:
    """Create the store, upstream fetchers and Gemini requester for `settings`."""
    session = build_session(settings.max_concurrent_fetches, verify_ssl=settings.verify_ssl)
    fetch_sensor = functools.partial(fetch_sensor_readings, settings.sensor_url,
                                     session=session, timeout=settings.upstream_timeout)
    fetch_forecast = functools.partial(fetch_weather, settings.weather_url,
                                       session=session, timeout=settings.upstream_timeout)
    requester = InsightRequester(build_model(settings))
    logger.info("Upstreams: sensor=%s timeout=%ss model=%s",
                settings.sensor_url, settings.upstream_timeout, settings.gemini_model)
    return Dashboard(DataStore(), requester, fetch_sensor=fetch_sensor,
                     fetch_weather=fetch_forecast, poll_interval=settings.poll_interval)


def _parse_day(value: str) -> date:
    return date.fromisoformat(value.strip())


# ==============================================================================
# === 2. FLASK APP
# ==============================================================================

def create_app(settings: Settings | None = None, dashboard: Dashboard | None = None) -> Flask:
    if dashboard is None:
        settings = settings or load_settings()
        dashboard = build_dashboard(settings)

    app = Flask(__name__)
    app.extensions['dashboard'] = dashboard

    origins = list(settings.cors_origins) if settings else []
    if origins:
        CORS(app, resources={r"/api/*": {"origins": origins}})
        logger.info('CORS configured for origins: %s', origins)
    else:
        # default to wildcard for development; set CORS_ORIGINS in production
        CORS(app, resources={r"/api/*": {"origins": "*"}})
        logger.warning('CORS_ORIGINS not set. Defaulting to "*" (development only).')

    @app.route("/", methods=["GET"])
    def home():
        return jsonify({
            "status": "running",
            "message": "AgriSense API Bridge is active.",
        })

    @app.route("/api/status", methods=["GET"])
    def status():
        return jsonify(dashboard.status())

    @app.route("/api/overview", methods=["GET"])
    def overview():
        return jsonify(dashboard.overview())

    @app.route("/api/soil", methods=["GET"])
    def soil_all():
        """All held readings, newest first."""
        return jsonify([r.to_dict() for r in dashboard.store.readings])

    @app.route("/api/soil/latest", methods=["GET"])
    def soil_latest():
        latest = dashboard.store.latest
        if latest is None:
            return jsonify({"error": "not yet loaded"}), 404
        return jsonify(latest.to_dict())

    @app.route("/api/soil/history", methods=["GET"])
    def soil_history():
        """Chart data, oldest first. Optional ?start=YYYY-MM-DD&end=YYYY-MM-DD window."""
        start_raw = request.args.get('start')
        end_raw = request.args.get('end')
        if bool(start_raw) != bool(end_raw):
            return jsonify({"error": "start and end must be given together"}), 400
        start = end = None
        if start_raw and end_raw:
            try:
                start, end = _parse_day(start_raw), _parse_day(end_raw)
            except ValueError:
                return jsonify({"error": "dates must be YYYY-MM-DD"}), 400
        return jsonify(dashboard.chart_series(start, end))

    @app.route("/api/weather", methods=["GET"])
    def weather():
        snapshot = dashboard.store.weather
        if snapshot is None:
            return jsonify({"error": "weather not yet loaded", "detail": dashboard.error}), 503
        return jsonify(snapshot.to_dict())

    @app.route("/api/recommendations", methods=["GET"])
    def recommendations():
        return jsonify(dashboard.recommendations_view())

    @app.route("/api/recommendations/regenerate", methods=["POST"])
    def regenerate_recommendations():
        if not dashboard.store.has_data():
            return jsonify({"error": "data not yet loaded"}), 503
        if dashboard.regenerate_recommendations() is None:
            return jsonify({"error": "recommendations already being generated"}), 409
        return jsonify(dashboard.recommendations_view())

    @app.route("/api/actionable", methods=["GET"])
    def actionable():
        return jsonify(dashboard.actionable_view())

    @app.route("/api/actionable/regenerate", methods=["POST"])
    def regenerate_actionable():
        if not dashboard.store.has_data():
            return jsonify({"error": "data not yet loaded"}), 503
        if dashboard.regenerate_actionable() is None:
            return jsonify({"error": "insight already being generated"}), 409
        return jsonify(dashboard.actionable_view())

    @app.route("/api/chat", methods=["GET"])
    def chat_history():
        return jsonify([t.to_dict() for t in dashboard.chat.turns])

    @app.route("/api/chat", methods=["POST"])
    def chat():
        payload = request.get_json(silent=True) or {}
        query = payload.get('query') if isinstance(payload, dict) else None
        if not isinstance(query, str) or not query.strip():
            return jsonify({"error": "query is required"}), 400
        if dashboard.store.weather is None:
            return jsonify({"error": "weather not yet loaded"}), 503
        reply = dashboard.chat.ask(query)
        if reply is None:
            return jsonify({"error": "previous question still being answered"}), 409
        return jsonify({"reply": reply.to_dict(), "turns": [t.to_dict() for t in dashboard.chat.turns]})

    @app.route("/api/refresh", methods=["POST"])
    def refresh():
        """Run one poll cycle now instead of waiting for the next tick."""
        outcome = dashboard.poller.poll_once()
        return jsonify({"outcome": outcome.value, "_fetched_ts": int(time.time())})

    return app


# ==============================================================================
# === 3. MAIN EXECUTION BLOCK
# ==============================================================================

def main():
    try:
        settings = load_settings()
    except ConfigError as ex:
        configure_logging()
        logger.error("Startup aborted: %s", ex)
        raise SystemExit(1) from ex
    configure_logging(settings.log_level)
    dashboard = build_dashboard(settings)
    app = create_app(settings, dashboard)

    logger.info("Starting AgriSense API Bridge on port %s", settings.port)
    result = dashboard.load()
    if not result.ok:
        logger.warning("Serving without data: %s", result.error)
    dashboard.start_polling()

    try:
        app.run(host="0.0.0.0", port=settings.port, debug=settings.debug, threaded=True,
                use_reloader=False)
    except KeyboardInterrupt:
        logger.info('Keyboard interrupt received: shutting down poller...')
        raise
    finally:
        dashboard.shutdown()


if __name__ == "__main__":
    main()
