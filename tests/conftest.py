from datetime import datetime, timezone

import phonenumbers
import pytest

from contacts_directory.engine import RecordEngine
from contacts_directory.geo_catalog import GeoCatalog, load_geo_catalog
from contacts_directory.store import MemoryStore

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

SMALL_CATALOG = {
    "countries": [
        {
            "code": "US",
            "name": "United States",
            "states": [
                {"code": "FL", "name": "Florida"},
                {"code": "GA", "name": "Georgia"},
                {"code": "MA", "name": "Massachusetts", "cities": ["Boston", "Quincy"]},
            ],
        },
        {
            "code": "CA",
            "name": "Canada",
            "states": [
                {"code": "ON", "name": "Ontario", "cities": ["Toronto", "Ottawa"]},
                {"code": "NB", "name": "New Brunswick"},
            ],
        },
        {"code": "SG", "name": "Singapore", "cities": ["Singapore"]},
        {"code": "LI", "name": "Liechtenstein"},
    ]
}


def example_phone(region: str) -> str:
    number = phonenumbers.example_number(region)
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


@pytest.fixture
def small_catalog():
    return GeoCatalog.from_mapping(SMALL_CATALOG)


@pytest.fixture(scope="session")
def bundled_catalog():
    return load_geo_catalog()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def engine(store, bundled_catalog):
    return RecordEngine(store, bundled_catalog, clock=lambda: FIXED_NOW)
