"""Shared test fixtures for the BikePath test suite."""

from datetime import datetime, timezone

import pytest

from bikepath.aggregation.engine import AggregationEngine
from bikepath.core.config import DEFAULT_CONFIG
from bikepath.storage.database import BikePathStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

# Three consecutive streets running north through central Milan.
VIA_ROMA = [(9.1900, 45.4640), (9.1900, 45.4660)]
VIA_DANTE = [(9.1900, 45.4660), (9.1920, 45.4680)]
CORSO_COMO = [(9.1920, 45.4680), (9.1920, 45.4700)]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def config():
    return DEFAULT_CONFIG


@pytest.fixture
def store(tmp_path):
    """Create a temp SQLite store."""
    store = BikePathStore(tmp_path / "test_bikepath.db")
    yield store
    store.close()


@pytest.fixture
def engine(store):
    return AggregationEngine(store, clock=lambda: NOW)


@pytest.fixture
def network(store):
    """Three streets, a rated trip over them and one path.

    Returns a dict of the created entities keyed by short names.
    """
    roma = store.add_street("Via Roma", VIA_ROMA, city="Milano", now=NOW)
    dante = store.add_street("Via Dante", VIA_DANTE, city="Milano", now=NOW)
    como = store.add_street("Corso Como", CORSO_COMO, city="Milano", now=NOW)
    trip = store.add_trip("rider-1", rating=4, now=NOW)
    visits = [
        store.add_visit(trip.id, street.id, order_index=i)
        for i, street in enumerate((roma, dante, como))
    ]
    path = store.add_path(
        "Roma to Como", [roma.id, dante.id, como.id], trip_id=trip.id, now=NOW
    )
    return {
        "roma": roma,
        "dante": dante,
        "como": como,
        "trip": trip,
        "visits": visits,
        "path": path,
    }
