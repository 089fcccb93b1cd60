"""Unit tests for GeoAnomalyDetector and distance helpers."""

from unittest.mock import MagicMock

import pytest

from shareguard.common.exceptions import DependencyUnavailable
from shareguard.geo.detector import GeoAnomalyDetector, haversine_km, min_travel_ms
from tests.conftest import DELHI_IP, LONDON_IP, MUMBAI_IP, NEW_YORK_IP, UNRESOLVED_IP

HOUR = 3600


@pytest.fixture
def detector(store, resolver, clock):
    return GeoAnomalyDetector(store, resolver, clock=clock)


class TestDistance:
    """Tests for the haversine helpers."""

    def test_one_degree_of_longitude_at_equator(self):
        assert haversine_km(0, 0, 0, 1) == pytest.approx(111.19, rel=1e-3)

    def test_zero_distance(self):
        assert haversine_km(28.7, 77.1, 28.7, 77.1) == pytest.approx(0.0)

    def test_delhi_to_new_york(self):
        assert haversine_km(28.70, 77.10, 40.71, -74.01) == pytest.approx(11760, rel=0.01)

    def test_min_travel_at_900_kmh(self):
        assert min_travel_ms(900) == pytest.approx(3600 * 1000)


class TestGeoCheck:
    """Tests for the impossible-travel check."""

    def test_first_location(self, detector):
        result = detector.check("u1", DELHI_IP)

        assert not result.is_impossible
        assert result.risk_score == 0
        assert result.reason == "First location recorded"
        assert result.current_location.city == "Delhi"

    def test_impossible_travel(self, detector, clock):
        detector.check("u1", DELHI_IP)
        clock.advance(2 * HOUR)
        result = detector.check("u1", NEW_YORK_IP)

        assert result.is_impossible
        assert result.risk_score == 95
        assert result.reason.startswith("Impossible travel:")
        assert result.elapsed_minutes == pytest.approx(120.0)
        assert result.distance_km == pytest.approx(11760, rel=0.01)
        assert result.last_location.city == "Delhi"

    def test_plausible_domestic_move(self, detector, clock):
        detector.check("u1", DELHI_IP)
        clock.advance(3 * HOUR)
        result = detector.check("u1", MUMBAI_IP)

        assert not result.is_impossible
        assert result.risk_score == 20
        assert result.reason.startswith("Location changed by")

    def test_fast_domestic_move_is_impossible(self, detector, clock):
        detector.check("u1", DELHI_IP)
        clock.advance(30 * 60)
        result = detector.check("u1", MUMBAI_IP)

        assert result.is_impossible
        assert result.risk_score == 95

    def test_country_change_after_enough_time(self, detector, clock):
        detector.check("u1", DELHI_IP)
        clock.advance(10 * HOUR)
        result = detector.check("u1", LONDON_IP)

        assert not result.is_impossible
        assert result.risk_score == 40
        assert result.reason == "Country changed: IN -> GB"

    def test_same_place_is_zero_risk(self, detector, clock):
        detector.check("u1", DELHI_IP)
        clock.advance(60)
        result = detector.check("u1", DELHI_IP)

        assert result.risk_score == 0
        assert result.reason == ""
        assert result.distance_km == pytest.approx(0.0)

    def test_unresolvable_ip_keeps_previous_location(self, detector, clock):
        detector.check("u1", DELHI_IP)
        clock.advance(HOUR)
        unknown = detector.check("u1", UNRESOLVED_IP)
        clock.advance(HOUR)
        result = detector.check("u1", NEW_YORK_IP)

        assert unknown.reason == "Could not determine location"
        assert unknown.risk_score == 0
        assert result.is_impossible
        assert result.last_location.city == "Delhi"

    def test_resolver_failure_is_zero_risk(self, store, clock):
        resolver = MagicMock()
        resolver.resolve.side_effect = DependencyUnavailable("down", dependency="geoip")
        detector = GeoAnomalyDetector(store, resolver, clock=clock)

        result = detector.check("u1", DELHI_IP)

        assert not result.is_impossible
        assert result.reason == "Could not determine location"

    def test_users_are_independent(self, detector, clock):
        detector.check("u1", DELHI_IP)
        clock.advance(HOUR)
        result = detector.check("u2", NEW_YORK_IP)
        assert result.reason == "First location recorded"


class TestLocationHistory:
    """Tests for the bounded location history."""

    def test_history_is_newest_first(self, detector, clock):
        detector.record_history("u1", DELHI_IP, "d1")
        clock.advance(60)
        detector.record_history("u1", LONDON_IP, "d1")

        history = detector.history("u1")
        assert [e.country for e in history] == ["GB", "IN"]
        assert history[0].device_id == "d1"

    def test_history_is_capped(self, detector):
        for _ in range(55):
            detector.record_history("u1", DELHI_IP, "d1")
        assert len(detector.history("u1")) == 50

    def test_unresolvable_ip_not_recorded(self, detector):
        detector.record_history("u1", UNRESOLVED_IP, "d1")
        assert detector.history("u1") == []

    def test_location_change_count(self, detector, clock):
        for ip in (DELHI_IP, NEW_YORK_IP, MUMBAI_IP, DELHI_IP, LONDON_IP):
            detector.record_history("u1", ip, "d1")
            clock.advance(60)
        # IN -> US -> IN -> IN -> GB
        assert detector.location_change_count("u1") == 3

    def test_location_change_count_ignores_old_entries(self, detector, clock):
        detector.record_history("u1", NEW_YORK_IP, "d1")
        clock.advance(25 * HOUR)
        detector.record_history("u1", DELHI_IP, "d1")
        assert detector.location_change_count("u1") == 0
