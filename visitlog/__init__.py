from flask import Flask, jsonify, request

from .config import DEFAULT_TOKEN, load_config, setup_logging
from .enrich import GeoLocator
from .ingest import client_ip
from .store import StoreError, VisitStore

__all__ = ["create_app", "StoreError", "VisitStore", "GeoLocator"]


def pick_cors_origin(request_origin, allowed_origins):
    """
    Return allowed origin if it matches our allowlist.
    """
    if not request_origin:
        return None
    for allowed in allowed_origins:
        if request_origin == allowed:
            return allowed
    return None


def create_app(test_config=None, store=None, locator=None) -> Flask:
    """
    Build the collector app.

    The store and the geo locator are built once here and shared by every
    request; pass substitutes in for tests. Opening the store is the one
    startup step allowed to fail: StoreError propagates and the process
    should exit.
    """
    app = Flask(__name__)
    app.config.update(load_config())
    if test_config:
        app.config.update(test_config)

    setup_logging(app)

    if store is None:
        store = VisitStore(app.config["ANALYTICS_DB"])
        store.init_schema()
    if locator is None:
        locator = GeoLocator(app.config["GEOIP_DB_PATH"])

    app.extensions["visitlog.store"] = store
    app.extensions["visitlog.locator"] = locator

    if app.config.get("ANALYTICS_API_TOKEN") == DEFAULT_TOKEN:
        app.logger.warning("ANALYTICS_API_TOKEN is the default; set a real token")

    from .routes import bp
    app.register_blueprint(bp)

    @app.before_request
    def log_request():
        app.logger.info("%s %s - %s", request.method, request.path, client_ip(request))

    @app.after_request
    def add_headers(resp):
        """
        CORS for allowlisted origins (beacons posted from another domain).
        """
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")

        origin = pick_cors_origin(request.headers.get("Origin"), app.config["CORS_ALLOW_ORIGINS"])
        if origin:
            req_method = request.headers.get("Access-Control-Request-Method", "GET,POST,OPTIONS")
            req_headers = request.headers.get("Access-Control-Request-Headers", "Content-Type, Authorization")

            resp.headers["Access-Control-Allow-Origin"] = origin
            resp.headers["Vary"] = "Origin"
            resp.headers["Access-Control-Allow-Credentials"] = "false"
            resp.headers["Access-Control-Allow-Methods"] = req_method
            resp.headers["Access-Control-Allow-Headers"] = req_headers
            resp.headers["Access-Control-Max-Age"] = "600"
        return resp

    @app.errorhandler(404)
    def not_found(exc):
        return jsonify({"error": "Endpoint not found"}), 404

    @app.errorhandler(500)
    def server_error(exc):
        app.logger.error("Unhandled error: %s", getattr(exc, "original_exception", exc))
        return jsonify({"error": "Internal server error"}), 500

    return app
