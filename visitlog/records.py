from dataclasses import asdict, dataclass
from datetime import datetime, timezone

MAX_TEXT = 2048

REQUIRED_FIELDS = ("visitor_id", "timestamp")


class VisitRejected(ValueError):
    """A beacon without visitor_id or timestamp."""

    def __init__(self, missing):
        self.missing = tuple(missing)
        super().__init__("Missing required fields: " + ", ".join(self.missing))


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def as_text(value) -> str:
    if value is None:
        return ""
    return str(value)[:MAX_TEXT]


def as_int(value) -> int:
    """
    Lenient int: "1280" -> 1280, junk/None/bool -> 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        pass
    try:
        return int(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0


@dataclass
class VisitRecord:
    visitor_id: str
    timestamp: str
    url: str = ""
    path: str = ""
    referrer: str = ""
    user_agent: str = ""
    screen_width: int = 0
    screen_height: int = 0
    ip_address: str = ""
    country: str = "Unknown"
    city: str = "Unknown"
    device_type: str = "Unknown"
    language: str = "Unknown"
    event_type: str = "page_view"
    duration: int = 0

    @classmethod
    def from_fields(cls, fields):
        """
        Build a record from a loose mapping of client fields.

        Only visitor_id and timestamp are required; everything else falls
        back to its column default. Server-derived fields (ip_address, geo,
        device, language) are left at their defaults here and filled in by
        the ingestion path, so a client can never set them.
        """
        fields = fields or {}
        missing = [
            name for name in REQUIRED_FIELDS
            if not as_text(fields.get(name)).strip()
        ]
        if missing:
            raise VisitRejected(missing)

        return cls(
            visitor_id=as_text(fields["visitor_id"]).strip(),
            timestamp=as_text(fields["timestamp"]).strip(),
            url=as_text(fields.get("url")),
            path=as_text(fields.get("path")),
            referrer=as_text(fields.get("referrer")),
            user_agent=as_text(fields.get("user_agent")),
            screen_width=as_int(fields.get("screen_width")),
            screen_height=as_int(fields.get("screen_height")),
            event_type=as_text(fields.get("event_type")) or "page_view",
            duration=as_int(fields.get("duration")),
        )

    def as_row(self) -> dict:
        return asdict(self)
