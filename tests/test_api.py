"""Tests for the one-liner API (bikepath.find_routes, aggregate_street, recompute_path)."""

import pytest

import bikepath
from bikepath.api import PathScoreResult, RouteSearchResult
from bikepath.core.exceptions import InvalidQueryError, NotFoundError


class TestFindRoutes:
    def test_exact_route(self, store, network):
        result = bikepath.find_routes(store.db_path, "Via Roma", "Corso Como")
        assert isinstance(result, RouteSearchResult)
        assert len(result["routes"]) == 1
        route = result["routes"][0]
        assert route["path_id"] == network["path"].id
        assert route["match_type"] == "exact"
        assert route["original_score"] == 50

    def test_repr_and_summary(self, store, network):
        result = bikepath.find_routes(store.db_path, "roma", "como")
        assert "routes=1" in repr(result)
        assert "Roma to Como" in result.summary()

    def test_routes_list_obstacles(self, store, network, now):
        store.add_obstacle(network["visits"][1].id, "glass", 45.467, 9.191, created_at=now)
        result = bikepath.find_routes(store.db_path, "Via Roma", "Corso Como")
        obstacles = result["routes"][0]["obstacles"]
        assert [o["kind"] for o in obstacles] == ["glass"]
        assert obstacles[0]["confirmed"] is False
        assert "1 obstacles (0 confirmed)" in result.summary()

    def test_nearby_with_coordinates(self, store, network):
        result = bikepath.find_routes(
            store.db_path, "Viale Monza", "Piazza Duomo",
            start_lat=45.4638, start_lon=9.19, end_lat=45.4703, end_lon=9.192,
        )
        assert [r["match_type"] for r in result["routes"]] == ["nearby"]
        assert result["routes"][0]["proximity_penalty"] > 0

    def test_no_matches(self, store, network):
        result = bikepath.find_routes(store.db_path, "Viale Monza", "Piazza Duomo")
        assert result["routes"] == []
        assert "No matching paths" in result.summary()

    def test_same_street(self, store, network):
        with pytest.raises(InvalidQueryError):
            bikepath.find_routes(store.db_path, "Via Roma", "via roma")


class TestAggregateAndRescore:
    def test_aggregate_street(self, store, network):
        store.add_report("u", "medium", street_id=network["roma"].id)
        assert bikepath.aggregate_street(store.db_path, network["roma"].id) == "medium"

    def test_aggregate_without_reports(self, store, network):
        assert bikepath.aggregate_street(store.db_path, network["roma"].id) is None

    def test_recompute_path(self, store, network):
        result = bikepath.recompute_path(store.db_path, network["path"].id)
        assert isinstance(result, PathScoreResult)
        assert result["components"]["rating"] == 75
        assert result["components"]["condition"] == 50
        assert result["status"] is None
        assert "Path" in result.summary()
        assert store.get_path(network["path"].id).score == pytest.approx(result["score"])

    def test_recompute_unknown(self, store):
        with pytest.raises(NotFoundError):
            bikepath.recompute_path(store.db_path, "nope")
