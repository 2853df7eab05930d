from __future__ import annotations

from types import SimpleNamespace

import geoip2.errors
import pytest

from visitlog import create_app
from visitlog.enrich import GeoLocator
from visitlog.store import StoreError, VisitStore

TOKEN = "test-token"


class FakeCityReader:
    """
    Stand-in for geoip2.database.Reader with a fixed address table.
    """

    def __init__(self, table=None):
        self.table = table or {}
        self.lookups = []

    def city(self, ip):
        self.lookups.append(ip)
        if ip not in self.table:
            raise geoip2.errors.AddressNotFoundError(f"{ip} not in database")
        country, city = self.table[ip]
        return SimpleNamespace(
            country=SimpleNamespace(name=country, iso_code=None),
            city=SimpleNamespace(name=city),
        )


class FailingStore(VisitStore):
    """
    Store whose every operation fails, as if the disk went away.
    """

    def __init__(self):
        super().__init__(":failing:")

    def insert(self, record):
        raise StoreError("disk I/O error")

    def recent(self, limit):
        raise StoreError("disk I/O error")

    def ping(self):
        raise StoreError("disk I/O error")


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "visits.sqlite3")


@pytest.fixture()
def store(db_path):
    s = VisitStore(db_path)
    s.init_schema()
    return s


@pytest.fixture()
def geo_reader():
    return FakeCityReader({"81.2.69.160": ("United Kingdom", "London")})


@pytest.fixture()
def app(db_path, store, geo_reader):
    app = create_app(
        {
            "TESTING": True,
            "ANALYTICS_DB": db_path,
            "ANALYTICS_API_TOKEN": TOKEN,
            "ANALYTICS_MAX_ROWS": 1000,
            "CORS_ALLOW_ORIGINS": ["https://example.com"],
        },
        store=store,
        locator=GeoLocator(reader=geo_reader),
    )
    yield app


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def failing_client(db_path):
    app = create_app(
        {"TESTING": True, "ANALYTICS_DB": db_path, "ANALYTICS_API_TOKEN": TOKEN},
        store=FailingStore(),
        locator=GeoLocator(reader=FakeCityReader()),
    )
    return app.test_client()


@pytest.fixture()
def auth():
    return {"Authorization": f"Bearer {TOKEN}"}
