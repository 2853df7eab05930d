import hmac
import logging

from flask import Blueprint, Response, abort, current_app, jsonify, request

from . import ingest
from .dashboard import render_dashboard
from .records import VisitRejected, utc_now_iso
from .store import StoreError

log = logging.getLogger(__name__)

bp = Blueprint("visitlog", __name__)

# 1x1 transparent gif bytes (tracking pixel)
PIXEL_BYTES = (
    b"GIF89a"
    b"\x01\x00\x01\x00"
    b"\x80"
    b"\x00"
    b"\x00"
    b"\x00\x00\x00"
    b"\xff\xff\xff"
    b"\x21\xf9\x04\x01\x00\x00\x00\x00"
    b"\x2c\x00\x00\x00\x00\x01\x00\x01\x00\x00"
    b"\x02\x02\x44\x01\x00"
    b"\x3b"
)


def _store():
    return current_app.extensions["visitlog.store"]


def _locator():
    return current_app.extensions["visitlog.locator"]


def pixel_response():
    resp = Response(PIXEL_BYTES, mimetype="image/gif")
    resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    resp.headers["Cross-Origin-Resource-Policy"] = "cross-origin"
    return resp


def _record(fields):
    return ingest.record_visit(
        _store(),
        _locator(),
        fields,
        ip_address=ingest.client_ip(request),
        language=ingest.request_language(request),
    )


def _record_quietly(fields):
    """
    Beacon variant: the embedding page can't act on errors, so log and move on.
    """
    try:
        _record(fields)
    except VisitRejected as exc:
        log.warning("Beacon dropped: %s", exc)
    except StoreError as exc:
        log.error("Insert error: %s", exc)


def _authorized() -> bool:
    """
    Read endpoints need ANALYTICS_API_TOKEN, as a Bearer header or ?token=.
    """
    expected = current_app.config.get("ANALYTICS_API_TOKEN") or ""
    header = request.headers.get("Authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer":
        supplied = credentials.strip()
    else:
        supplied = request.args.get("token", "")
    if expected and supplied and hmac.compare_digest(supplied.encode(), expected.encode()):
        return True
    log.warning("Unauthorized analytics access from %s", ingest.client_ip(request))
    return False


# -----------------------------------------------------------------------------
# Ingest routes
# -----------------------------------------------------------------------------
@bp.route("/api/track", methods=["POST", "OPTIONS"])
def track():
    """
    JSON beacon. Body example:
      { "visitor_id": "v1", "timestamp": "2024-01-01T00:00:00Z",
        "url": "https://example.com/a", "path": "/a", "duration": 12 }
    """
    if request.method == "OPTIONS":
        return ("", 200)

    try:
        visit_id = _record(ingest.fields_from_body(request))
    except VisitRejected as exc:
        log.warning("Rejected visit: %s", exc)
        return jsonify({"error": "Missing required fields"}), 400
    except StoreError as exc:
        log.error("Insert error: %s", exc)
        return jsonify({"error": "Failed to save visit"}), 500

    return jsonify({"success": True, "id": visit_id})


@bp.route("/api/track-pixel")
def track_pixel():
    """
    <img src="/api/track-pixel?data=<url-encoded json>">
    Always answers with the gif.
    """
    _record_quietly(ingest.fields_from_pixel(request))
    return pixel_response()


@bp.route("/api/ios-track")
def ios_track():
    _record_quietly(ingest.fields_from_ios(request))
    return pixel_response()


# -----------------------------------------------------------------------------
# Read routes
# -----------------------------------------------------------------------------
@bp.route("/api/analytics")
def analytics():
    if not _authorized():
        return jsonify({"error": "Unauthorized"}), 401

    try:
        rows = _store().recent(current_app.config["ANALYTICS_MAX_ROWS"])
    except StoreError as exc:
        log.error("Analytics fetch error: %s", exc)
        return jsonify({"error": "Failed to fetch data"}), 500
    return jsonify(rows)


@bp.route("/dashboard")
def dashboard():
    if not _authorized():
        return abort(403)

    limit = current_app.config["ANALYTICS_MAX_ROWS"]
    try:
        rows = _store().recent(limit)
    except StoreError as exc:
        log.error("Dashboard fetch error: %s", exc)
        return render_dashboard([], limit, error="storage unavailable"), 503
    return render_dashboard(rows, limit)


# -----------------------------------------------------------------------------
# health
# -----------------------------------------------------------------------------
@bp.route("/health")
@bp.route("/api/health")
def health():
    try:
        _store().ping()
    except StoreError as exc:
        log.error("Health check failed: %s", exc)
        return jsonify({
            "status": "degraded",
            "timestamp": utc_now_iso(),
            "error": "database unavailable",
        }), 503
    return jsonify({"status": "ok", "timestamp": utc_now_iso()})
