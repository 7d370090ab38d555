"""
Tests for pickup suggestions and route building
"""
import math

import pytest

from backend.services.record_store import RecordStore
from backend.services.tracker_service import (
    DEFAULT_DESTINATION,
    MAX_ROUTE_VOLUME,
    MAX_STOPS_PER_ROUTE,
    PickupRequest,
    TrackerService,
    default_location_pattern,
)
from backend.tests import factories


def _busy_store(locations, volume):
    """One Monday pickup per location, all of the same size"""
    return RecordStore(pickups=[
        factories.pickup(loc, "2024-03-04", volume) for loc in locations
    ])


class TestOptimizePickups:

    def test_single_driver_takes_both_locations(self, record_store):
        result = TrackerService(record_store).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=["Main Dining Hall", "North Cafe"],
            available_drivers=["Alex", "Sam"],
        ))
        routes = result["optimized_routes"]
        # both pickups fit one route, so the second driver gets nothing
        assert len(routes) == 1
        route = routes[0]
        assert route["driver"] == "Alex"
        assert route["locations"] == ["Main Dining Hall", "North Cafe"]
        assert route["route_id"].startswith("RT_Alex_")
        assert route["total_volume"] == 71
        assert all(p["driver_assignment"] == "Alex" for p in route["pickups"])
        assert result["unassigned_pickups"] == []
        assert result["total_volume_rescued"] == 71
        assert result["total_meals_equivalent"] == pytest.approx(71 * 2.5)
        assert result["total_co2_savings"] == pytest.approx(71 * 3.2)

    def test_route_caps(self):
        locations = [f"Hall {i}" for i in range(10)]
        result = TrackerService(_busy_store(locations, 80)).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=locations,
            available_drivers=["Alex", "Sam"],
        ))
        for route in result["optimized_routes"]:
            assert len(route["pickups"]) <= MAX_STOPS_PER_ROUTE
            assert route["total_volume"] <= MAX_ROUTE_VOLUME

        assigned = sum(len(r["pickups"]) for r in result["optimized_routes"])
        assert assigned == 4
        assert len(result["unassigned_pickups"]) == 6

    def test_stop_cap_with_small_pickups(self):
        locations = [f"Kiosk {i}" for i in range(6)]
        result = TrackerService(_busy_store(locations, 10)).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=locations,
            available_drivers=["Alex"],
        ))
        assert len(result["optimized_routes"][0]["pickups"]) == MAX_STOPS_PER_ROUTE
        assert len(result["unassigned_pickups"]) == 2

    def test_oversized_pickup_gets_no_empty_route(self):
        store = RecordStore(pickups=[
            factories.pickup("Big Hall", "2024-03-04", 250.0),
            factories.pickup("Kiosk", "2024-03-04", 20.0),
        ])
        result = TrackerService(store).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=["Big Hall", "Kiosk"],
            available_drivers=["Alex", "Sam"],
        ))
        routes = result["optimized_routes"]
        assert [r["driver"] for r in routes] == ["Alex"]
        assert routes[0]["locations"] == ["Kiosk"]
        assert [p["source_location"] for p in result["unassigned_pickups"]] == ["Big Hall"]

    def test_unknown_location_uses_defaults(self):
        result = TrackerService(RecordStore()).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=["New Kitchen"],
            available_drivers=["Alex"],
        ))
        pickup = result["optimized_routes"][0]["pickups"][0]
        assert pickup["destination_partner"] == DEFAULT_DESTINATION
        assert pickup["estimated_volume"] == 54  # 45 lbs * Monday factor 1.2
        assert pickup["recommended_time"] == "14:00"
        assert pickup["priority_score"] == pytest.approx(97)

    def test_no_drivers_leaves_everything_unassigned(self, record_store):
        result = TrackerService(record_store).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=["Main Dining Hall"],
            available_drivers=[],
        ))
        assert result["optimized_routes"] == []
        assert len(result["unassigned_pickups"]) == 1
        assert result["efficiency_metrics"]["cost_per_pound"] == 0

    def test_time_window_clamps_peak(self, record_store):
        result = TrackerService(record_store).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=["North Cafe"],
            available_drivers=["Alex"],
            earliest_pickup="12:00",
            latest_pickup="16:00",
        ))
        assert result["optimized_routes"][0]["pickups"][0]["recommended_time"] == "12:00"

    def test_priority_destination(self):
        store = RecordStore(pickups=[
            factories.pickup("Main Dining Hall", "2024-03-04", destination_partner="City Food Bank"),
            factories.pickup("Main Dining Hall", "2024-03-05", destination_partner="City Food Bank"),
            factories.pickup("Main Dining Hall", "2024-03-06", destination_partner="Hope Shelter"),
        ])
        result = TrackerService(store).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=["Main Dining Hall"],
            available_drivers=["Alex"],
            priority_destinations=["shelter"],
        ))
        assert result["optimized_routes"][0]["pickups"][0]["destination_partner"] == "Hope Shelter"

    def test_recommendations(self):
        store = RecordStore(
            pickups=[
                factories.pickup("Far Hall", "2024-03-04", transport_cost=30.0, status="failed"),
                factories.pickup("Far Hall", "2024-03-05", transport_cost=20.0),
            ],
            external=[factories.external("2024-03-11", weather_condition="light rain")],
        )
        result = TrackerService(store).optimize_pickups(PickupRequest(
            date="2024-03-11",
            available_locations=["Far Hall"],
            available_drivers=["Alex"],
        ))
        advice = result["recommendations"]
        assert advice["optimal_timing"] == ["Best pickup window: 14:00 - 16:00"]
        assert advice["cost_saving_tips"] == ["Consider consolidating pickups from: Far Hall"]
        assert "Improve coordination with: Far Hall" in advice["efficiency_improvements"]
        assert "Allow extra time for rainy weather conditions" in advice["efficiency_improvements"]

    def test_deterministic(self, record_store):
        service = TrackerService(record_store)
        request = dict(
            date="2024-03-11",
            available_locations=["Main Dining Hall", "North Cafe"],
            available_drivers=["Alex"],
        )
        assert service.optimize_pickups(PickupRequest(**request)) == service.optimize_pickups(
            PickupRequest(**request)
        )


class TestLocationPatterns:

    def test_default_pattern(self):
        pattern = default_location_pattern()
        assert pattern.avg_volume == 45
        assert pattern.historical_count == 0

    def test_history_pattern(self, record_store):
        pattern = TrackerService(record_store)._location_pattern("North Cafe")
        assert pattern.avg_volume == 25
        assert pattern.peak_start == "11:00"
        assert pattern.peak_end == "13:00"
        assert pattern.destinations == ["Shelter One"]
        assert pattern.success_rate == 1.0


class TestReporting:

    def test_location_insights(self, record_store):
        insights = TrackerService(record_store).location_insights("Main Dining Hall")
        assert insights["total_pickups"] == 6
        assert insights["most_common_destination"] == "City Food Bank"
        assert insights["most_common_food_type"] == "Prepared Meals"
        assert insights["peak_pickup_time"] == "14:00"
        assert insights["volume_stats"]["mean"] == pytest.approx(45)

    def test_location_insights_unknown(self, record_store):
        assert TrackerService(record_store).location_insights("Nowhere") is None

    def test_system_performance(self, record_store):
        performance = TrackerService(record_store).system_performance()
        assert performance["total_operations"] == 10
        assert performance["overall_success_rate"] == 1.0
        assert performance["total_meals_rescued"] == pytest.approx((270 + 100) * 2.5)

    def test_system_performance_empty(self):
        performance = TrackerService(RecordStore()).system_performance()
        assert performance["total_operations"] == 0
        assert math.isnan(performance["overall_success_rate"])
