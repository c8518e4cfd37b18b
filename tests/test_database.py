"""Unit tests for the SQLite store."""

from datetime import timedelta

import pytest

from bikepath.core.exceptions import InvalidReportError, NotFoundError
from bikepath.core.models import ObstacleStatus, StreetStatus
from bikepath.storage.database import BikePathStore


class TestStreets:
    def test_add_and_get(self, store, now):
        street = store.add_street("Via Roma", [(9.19, 45.464), (9.19, 45.466)], city="Milano",
                                  now=now)
        loaded = store.get_street(street.id)
        assert loaded.name == "Via Roma"
        assert loaded.coordinates == [(9.19, 45.464), (9.19, 45.466)]
        assert loaded.status is None
        assert loaded.created_at == now

    def test_missing(self, store):
        with pytest.raises(NotFoundError):
            store.get_street("nope")

    def test_set_status(self, store, network, now):
        roma = network["roma"]
        store.set_street_status(roma.id, StreetStatus.MEDIUM, now)
        assert store.get_street(roma.id).status is StreetStatus.MEDIUM

        store.set_street_status(roma.id, None, now)
        assert store.get_street(roma.id).status is None

    def test_set_status_missing(self, store, now):
        with pytest.raises(NotFoundError):
            store.set_street_status("nope", StreetStatus.OPTIMAL, now)


class TestPaths:
    def test_geometry_combined_from_streets(self, network):
        path = network["path"]
        assert path.coordinates == [
            (9.19, 45.464),
            (9.19, 45.466),
            (9.192, 45.468),
            (9.192, 45.47),
        ]

    def test_segments_ordered(self, network):
        path = network["path"]
        assert [s.order_index for s in path.segments] == [0, 1, 2]
        assert path.street_names == ["Via Roma", "Via Dante", "Corso Como"]

    def test_lookups(self, store, network):
        path = network["path"]
        assert store.paths_containing_street(network["dante"].id) == [path.id]
        assert store.paths_for_trip(network["trip"].id) == [path.id]
        assert [p.id for p in store.list_paths()] == [path.id]

    def test_add_path_unknown_street(self, store):
        with pytest.raises(NotFoundError):
            store.add_path("Broken", ["nope"])

    def test_set_score(self, store, network, now):
        path = network["path"]
        store.set_path_score(path.id, 42.5, StreetStatus.SUFFICIENT, now)
        loaded = store.get_path(path.id)
        assert loaded.score == 42.5
        assert loaded.status is StreetStatus.SUFFICIENT
        assert loaded.score_calculated_at == now
        assert loaded.last_scored_at == now

    def test_unscored_path(self, network):
        path = network["path"]
        assert path.score is None
        assert path.last_scored_at == path.created_at


class TestReports:
    def test_needs_exactly_one_link(self, store, network):
        with pytest.raises(InvalidReportError):
            store.add_report("u", "optimal")
        with pytest.raises(InvalidReportError):
            store.add_report("u", "optimal", visit_id=network["visits"][0].id,
                             street_id=network["roma"].id)

    def test_visit_and_standalone_reports(self, store, network, now):
        roma = network["roma"]
        store.add_report("u1", "optimal", visit_id=network["visits"][0].id, created_at=now)
        store.add_report("u2", "medium", street_id=roma.id, lat=45.465, lon=9.19,
                         created_at=now - timedelta(days=1))
        store.add_report("u3", "sufficient", street_id=network["como"].id, created_at=now)

        reports = store.reports_for_street(roma.id)
        assert [r.status for r in reports] == [StreetStatus.OPTIMAL, StreetStatus.MEDIUM]

    def test_since_filter(self, store, network, now):
        roma = network["roma"]
        store.add_report("u", "optimal", street_id=roma.id, created_at=now - timedelta(days=40))
        store.add_report("u", "medium", street_id=roma.id, created_at=now - timedelta(days=2))
        recent = store.reports_for_street(roma.id, since=now - timedelta(days=30))
        assert [r.status for r in recent] == [StreetStatus.MEDIUM]

    def test_reports_for_trip(self, store, network, now):
        store.add_report("u", "optimal", visit_id=network["visits"][1].id, rating=5,
                         created_at=now)
        store.add_report("u", "optimal", street_id=network["roma"].id, created_at=now)
        reports = store.reports_for_trip(network["trip"].id)
        assert len(reports) == 1
        assert reports[0].rating == 5

    def test_save_report(self, store, network, now):
        report = store.add_report("u", "optimal", street_id=network["roma"].id, created_at=now)
        report.publishable = False
        store.save_report(report)
        assert store.get_report(report.id).publishable is False

    def test_street_of_report(self, store, network, now):
        visit = network["visits"][2]
        report = store.add_report("u", "optimal", visit_id=visit.id, created_at=now)
        assert store.street_of_report(report) == network["como"].id

    def test_list_reports_filters(self, store, network, now):
        roma = network["roma"].id
        older = store.add_report("u", "medium", visit_id=network["visits"][0].id,
                                 created_at=now - timedelta(days=2))
        newer = store.add_report("v", "optimal", street_id=roma, created_at=now)
        store.add_report("u", "optimal", street_id=network["como"].id, created_at=now)

        assert len(store.list_reports()) == 3
        assert [r.id for r in store.list_reports(street_id=roma)] == [newer.id, older.id]
        assert [r.id for r in store.list_reports(author_id="u", street_id=roma)] == [older.id]
        assert store.list_reports(author_id="nobody") == []

    def test_delete_report(self, store, network, now):
        report = store.add_report("u", "optimal", street_id=network["roma"].id, created_at=now)
        deleted = store.delete_report(report.id)
        assert deleted.status is StreetStatus.OPTIMAL
        assert store.list_reports() == []
        with pytest.raises(NotFoundError):
            store.delete_report(report.id)


class TestObstacles:
    def test_add_and_save(self, store, network, now):
        visit = network["visits"][0]
        obstacle = store.add_obstacle(visit.id, "pothole", 45.465, 9.19, created_at=now)
        assert store.get_obstacle(obstacle.id).status is ObstacleStatus.PENDING

        obstacle.status = ObstacleStatus.CONFIRMED
        obstacle.confirmed_at = now
        store.save_obstacle(obstacle)
        loaded = store.get_obstacle(obstacle.id)
        assert loaded.status is ObstacleStatus.CONFIRMED
        assert loaded.confirmed_at == now

    def test_obstacles_since(self, store, network, now):
        visit = network["visits"][0]
        store.add_obstacle(visit.id, "glass", 45.465, 9.19, created_at=now - timedelta(days=3))
        store.add_obstacle(visit.id, "roadworks", 45.465, 9.19, created_at=now)
        trip_id = network["trip"].id
        assert len(store.obstacles_for_trip(trip_id)) == 2
        since = store.obstacles_for_trip(trip_id, since=now - timedelta(days=1))
        assert [o.kind for o in since] == ["roadworks"]

    def test_unknown_visit(self, store):
        with pytest.raises(NotFoundError):
            store.add_obstacle("nope", "pothole", 45.0, 9.0)

    def test_obstacles_for_path(self, store, network, now):
        store.add_obstacle(network["visits"][1].id, "glass", 45.467, 9.191, created_at=now)
        assert [o.kind for o in store.obstacles_for_path(network["path"].id)] == ["glass"]

        solo = store.add_path("Solo", [network["roma"].id])
        assert store.obstacles_for_path(solo.id) == []
        with pytest.raises(NotFoundError):
            store.obstacles_for_path("nope")


class TestConnection:
    def test_in_memory(self):
        store = BikePathStore(":memory:")
        street = store.add_street("Via Roma")
        assert store.get_street(street.id).coordinates == []
        store.close()

    def test_persists_across_connections(self, tmp_path, now):
        db = tmp_path / "nested" / "paths.db"
        first = BikePathStore(db)
        street = first.add_street("Via Roma", now=now)
        first.close()

        second = BikePathStore(db)
        assert second.get_street(street.id).name == "Via Roma"
        second.close()
