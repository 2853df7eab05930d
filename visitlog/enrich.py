import ipaddress
import logging
import os

import geoip2.database
import geoip2.errors
import maxminddb.errors

log = logging.getLogger(__name__)

UNKNOWN = "Unknown"

MOBILE_TOKENS = (
    "android",
    "iphone",
    "ipad",
    "ipod",
    "windows phone",
    "blackberry",
    "opera mini",
    "iemobile",
    "mobile",
)
DESKTOP_TOKENS = ("macintosh", "windows nt", "linux")


# -----------------------------------------------------------------------------
# User agent / language
# -----------------------------------------------------------------------------
def classify_device(ua) -> str:
    """
    Coarse device bucket: Mobile, Desktop, Laptop or Unknown.
    Order matters: Android UAs also carry "Linux".
    """
    ua_lower = (ua or "").lower()
    if not ua_lower:
        return UNKNOWN

    if any(token in ua_lower for token in MOBILE_TOKENS):
        return "Mobile"
    if any(token in ua_lower for token in DESKTOP_TOKENS):
        return "Desktop"
    if "cros" in ua_lower:
        return "Laptop"
    return UNKNOWN


def language_from_header(accept_language) -> str:
    """
    "en-US,en;q=0.9" -> "en-US"
    """
    if not accept_language:
        return UNKNOWN
    first = accept_language.split(",")[0].split(";")[0].strip()
    return first or UNKNOWN


# -----------------------------------------------------------------------------
# Geo
# -----------------------------------------------------------------------------
def _lookup_address(raw_ip):
    """
    Parsed address worth sending to the geo db, or None.
    """
    if not raw_ip:
        return None
    try:
        ip_obj = ipaddress.ip_address(raw_ip.strip())
    except ValueError:
        return None

    if ip_obj.version == 6 and ip_obj.ipv4_mapped:
        ip_obj = ip_obj.ipv4_mapped

    if (
        ip_obj.is_loopback
        or ip_obj.is_private
        or ip_obj.is_link_local
        or ip_obj.is_unspecified
    ):
        return None
    return ip_obj


class GeoLocator:
    """
    Country/city lookup against a local MaxMind City database.
    Never raises; everything that can't be resolved is Unknown.
    """

    def __init__(self, db_path=None, reader=None):
        self.db_path = db_path
        self._reader = reader
        self._opened = reader is not None

    def reader(self):
        if not self._opened:
            self._opened = True
            if self.db_path and os.path.exists(self.db_path):
                try:
                    self._reader = geoip2.database.Reader(self.db_path)
                except (OSError, ValueError, maxminddb.errors.InvalidDatabaseError) as exc:
                    log.warning("GeoIP database %s could not be opened: %s", self.db_path, exc)
            else:
                log.info("GeoIP database not found at %s, geo lookups disabled", self.db_path)
        return self._reader

    def locate(self, raw_ip):
        ip_obj = _lookup_address(raw_ip)
        if ip_obj is None:
            return UNKNOWN, UNKNOWN

        reader = self.reader()
        if reader is None:
            return UNKNOWN, UNKNOWN

        try:
            resp = reader.city(str(ip_obj))
        except (geoip2.errors.GeoIP2Error, maxminddb.errors.InvalidDatabaseError, TypeError, ValueError):
            # TypeError: a Country-only database has no city()
            return UNKNOWN, UNKNOWN

        country = resp.country.name or resp.country.iso_code or UNKNOWN
        city = resp.city.name or UNKNOWN
        return country, city
