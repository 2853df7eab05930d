import logging
import os
import sqlite3
from contextlib import closing

log = logging.getLogger(__name__)

COLUMNS = (
    "visitor_id",
    "timestamp",
    "url",
    "path",
    "referrer",
    "user_agent",
    "screen_width",
    "screen_height",
    "ip_address",
    "country",
    "city",
    "device_type",
    "language",
    "event_type",
    "duration",
)


class StoreError(Exception):
    """Anything that went wrong talking to the visits database."""


class VisitStore:
    """
    The visits table. One short-lived connection per call, so a store can be
    shared by every request thread without locking.
    """

    def __init__(self, path):
        self.path = path

    def connect(self):
        try:
            db = sqlite3.connect(self.path)
        except sqlite3.Error as exc:
            raise StoreError(f"cannot open {self.path}: {exc}") from exc
        db.row_factory = sqlite3.Row
        return db

    def init_schema(self):
        """
        Create the visits table if missing. Raises StoreError if the
        database can't be opened, which stops the app at startup.
        """
        folder = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(folder, exist_ok=True)
        except OSError as exc:
            raise StoreError(f"cannot create {folder}: {exc}") from exc

        try:
            with closing(self.connect()) as db:
                db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS visits (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        visitor_id TEXT NOT NULL,
                        timestamp TEXT NOT NULL,
                        url TEXT,
                        path TEXT,
                        referrer TEXT,
                        user_agent TEXT,
                        screen_width INTEGER,
                        screen_height INTEGER,
                        ip_address TEXT,
                        country TEXT,
                        city TEXT,
                        device_type TEXT,
                        language TEXT,
                        event_type TEXT DEFAULT 'page_view',
                        duration INTEGER DEFAULT 0,
                        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                        processed INTEGER DEFAULT 0
                    );
                    """
                )
                db.execute("CREATE INDEX IF NOT EXISTS idx_visitor_id ON visits (visitor_id);")
                db.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"cannot create schema in {self.path}: {exc}") from exc
        log.info("Visits table ready at %s", self.path)

    def insert(self, record) -> int:
        row = record.as_row()
        sql = "INSERT INTO visits ({}) VALUES ({})".format(
            ", ".join(COLUMNS), ", ".join("?" for _ in COLUMNS)
        )
        try:
            with closing(self.connect()) as db:
                cur = db.execute(sql, tuple(row[c] for c in COLUMNS))
                db.commit()
                return cur.lastrowid
        except (sqlite3.Error, OverflowError, ValueError) as exc:
            raise StoreError(f"insert failed: {exc}") from exc

    def recent(self, limit: int) -> list:
        """
        Newest first, by id (client timestamps aren't trusted for ordering).
        """
        try:
            with closing(self.connect()) as db:
                rows = db.execute(
                    "SELECT * FROM visits ORDER BY id DESC LIMIT ?;",
                    (max(int(limit), 0),),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"query failed: {exc}") from exc
        return [dict(row) for row in rows]

    def ping(self):
        try:
            with closing(self.connect()) as db:
                db.execute("SELECT 1;").fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"ping failed: {exc}") from exc
