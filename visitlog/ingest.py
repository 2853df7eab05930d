"""
Shared ingestion path for every beacon flavour.

Each ingress (POST body, GET pixel, GET iOS) only differs in where the
candidate fields come from; ``record_visit`` does the rest.
"""
import json
import logging
from urllib.parse import unquote

from .enrich import classify_device, language_from_header
from .records import VisitRecord, utc_now_iso

log = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Request helpers
# -----------------------------------------------------------------------------
def client_ip(req) -> str:
    """
    X-Forwarded-For (first hop) > X-Real-IP > socket peer.
    """
    forwarded = req.headers.get("X-Forwarded-For", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    real_ip = req.headers.get("X-Real-IP", "").strip()
    if real_ip:
        return real_ip
    return req.remote_addr or ""


def request_language(req) -> str:
    return language_from_header(req.headers.get("Accept-Language"))


# -----------------------------------------------------------------------------
# Candidate field sources
# -----------------------------------------------------------------------------
def fields_from_body(req) -> dict:
    data = req.get_json(silent=True)
    if data is None and req.form:
        data = req.form.to_dict()
    if not isinstance(data, dict):
        return {}
    return data


def fields_from_pixel(req) -> dict:
    """
    ?data=<url-encoded json>, or plain query params when that's missing
    or doesn't decode to an object.
    """
    raw = req.args.get("data")
    if raw is None:
        return req.args.to_dict()

    try:
        data = json.loads(unquote(raw))
    except ValueError:
        data = None
    if not isinstance(data, dict):
        log.warning("Failed to parse tracking data, using raw query params")
        return req.args.to_dict()
    return data


def fields_from_ios(req) -> dict:
    return {
        "visitor_id": req.args.get("vid") or "ios-unknown",
        "timestamp": utc_now_iso(),
        "url": unquote(req.args.get("url", "")),
        "path": "",
        "referrer": req.headers.get("Referer", ""),
        "user_agent": req.headers.get("User-Agent", ""),
        "screen_width": req.args.get("w"),
        "screen_height": req.args.get("h"),
        "event_type": "ios_visit",
    }


# -----------------------------------------------------------------------------
# Record
# -----------------------------------------------------------------------------
def record_visit(store, locator, fields, *, ip_address, language) -> int:
    """
    Validate, enrich and persist one beacon; returns the new row id.

    Raises VisitRejected for a missing visitor_id/timestamp and StoreError
    when the insert fails. Callers decide whether those reach the client.
    """
    record = VisitRecord.from_fields(fields)
    record.ip_address = ip_address or ""
    record.country, record.city = locator.locate(record.ip_address)
    record.device_type = classify_device(record.user_agent)
    record.language = language

    visit_id = store.insert(record)
    log.info("Visit recorded (ID: %s)", visit_id)
    return visit_id
