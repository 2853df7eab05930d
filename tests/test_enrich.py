import pytest

from visitlog.enrich import GeoLocator, classify_device, language_from_header

from .conftest import FakeCityReader

IPHONE = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Mobile/15E148"
ANDROID = "Mozilla/5.0 (Linux; Android 14; Pixel 8) AppleWebKit/537.36 Chrome/120.0 Mobile Safari/537.36"
MAC = "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 Safari/605.1.15"
WINDOWS = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
CHROMEBOOK = "Mozilla/5.0 (X11; CrOS x86_64 14541.0.0) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"


@pytest.mark.parametrize(
    "ua, expected",
    [
        (IPHONE, "Mobile"),
        (ANDROID, "Mobile"),
        (MAC, "Desktop"),
        (WINDOWS, "Desktop"),
        ("Mozilla/5.0 (X11; Linux x86_64) Firefox/121.0", "Desktop"),
        (CHROMEBOOK, "Laptop"),
        ("curl/8.4.0", "Unknown"),
        ("", "Unknown"),
        (None, "Unknown"),
    ],
)
def test_classify_device(ua, expected):
    assert classify_device(ua) == expected


def test_android_wins_over_linux():
    # Android UAs carry "Linux" too; mobile has to be checked first
    assert "Linux" in ANDROID
    assert classify_device(ANDROID) == "Mobile"


@pytest.mark.parametrize(
    "header, expected",
    [
        ("en-US,en;q=0.9", "en-US"),
        ("de;q=0.8", "de"),
        ("fr", "fr"),
        ("", "Unknown"),
        (None, "Unknown"),
        (" , en", "Unknown"),
    ],
)
def test_language_from_header(header, expected):
    assert language_from_header(header) == expected


def test_locate_known_address():
    locator = GeoLocator(reader=FakeCityReader({"81.2.69.160": ("United Kingdom", "London")}))
    assert locator.locate("81.2.69.160") == ("United Kingdom", "London")


@pytest.mark.parametrize("ip", ["", None, "127.0.0.1", "::1", "10.0.0.7", "192.168.1.20", "not-an-ip"])
def test_locate_skips_lookup(ip):
    reader = FakeCityReader({"127.0.0.1": ("Nowhere", "Nowhere")})
    locator = GeoLocator(reader=reader)
    assert locator.locate(ip) == ("Unknown", "Unknown")
    assert reader.lookups == []


def test_locate_unknown_address_does_not_raise():
    reader = FakeCityReader()
    locator = GeoLocator(reader=reader)
    assert locator.locate("8.8.8.8") == ("Unknown", "Unknown")
    assert reader.lookups == ["8.8.8.8"]


def test_locate_unwraps_ipv4_mapped():
    locator = GeoLocator(reader=FakeCityReader({"81.2.69.160": ("United Kingdom", "London")}))
    assert locator.locate("::ffff:81.2.69.160") == ("United Kingdom", "London")


def test_locate_missing_database(tmp_path):
    locator = GeoLocator(str(tmp_path / "nope.mmdb"))
    assert locator.reader() is None
    assert locator.locate("8.8.8.8") == ("Unknown", "Unknown")


def test_locate_partial_answer():
    class NoCityReader(FakeCityReader):
        def city(self, ip):
            resp = super().city(ip)
            resp.city.name = None
            resp.country.iso_code = "GB"
            return resp

    locator = GeoLocator(reader=NoCityReader({"81.2.69.160": (None, "London")}))
    assert locator.locate("81.2.69.160") == ("GB", "Unknown")


def test_locate_corrupt_database(tmp_path):
    junk = tmp_path / "GeoLite2-City.mmdb"
    junk.write_bytes(b"this is not a maxmind database" * 10)
    locator = GeoLocator(str(junk))
    assert locator.locate("8.8.8.8") == ("Unknown", "Unknown")
    assert locator.reader() is None


def test_locate_country_only_database():
    class CountryOnlyReader:
        def city(self, ip):
            raise TypeError("The city method cannot be used with the GeoLite2-Country database")

    locator = GeoLocator(reader=CountryOnlyReader())
    assert locator.locate("8.8.8.8") == ("Unknown", "Unknown")
