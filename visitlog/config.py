import logging
import os

# -----------------------------------------------------------------------------
# Env helpers
# -----------------------------------------------------------------------------
DEFAULT_TOKEN = "changeme"

_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def env_list(key: str, default: str = "") -> list:
    raw = os.environ.get(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def load_config() -> dict:
    """
    Read collector settings from the environment.
    Keys match the env var names so app.config can be overridden 1:1.
    """
    return {
        "ANALYTICS_DB": os.environ.get("ANALYTICS_DB", "analytics.sqlite3"),
        "ANALYTICS_API_TOKEN": os.environ.get("ANALYTICS_API_TOKEN", DEFAULT_TOKEN),
        "GEOIP_DB_PATH": os.environ.get("GEOIP_DB_PATH", "/geoip/GeoLite2-City.mmdb"),
        "ANALYTICS_MAX_ROWS": env_int("ANALYTICS_MAX_ROWS", 1000),
        "CORS_ALLOW_ORIGINS": env_list("CORS_ALLOW_ORIGINS"),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
        # request bodies (beacons are tiny)
        "MAX_CONTENT_LENGTH": 1024 * 1024,
    }


def setup_logging(app) -> None:
    lvl = (app.config.get("LOG_LEVEL") or "").strip().upper()
    level = getattr(logging, lvl) if lvl in _LEVELS else logging.INFO

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(
            level=level,
            format="%(asctime)s | %(levelname)-8s | %(name)s - %(message)s",
        )
    app.logger.setLevel(level)
    logging.getLogger("visitlog").setLevel(level)
