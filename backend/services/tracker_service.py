"""
Pickup tracker: derives one pickup suggestion per source location from its
pickup history, then greedily packs the suggestions into per-driver routes.

Route caps: at most MAX_STOPS_PER_ROUTE pickups and MAX_ROUTE_VOLUME lbs.
Suggestions that fit no route are returned as ``unassigned_pickups``.
"""
import logging
import math
import re
from dataclasses import asdict, dataclass, field
from functools import lru_cache
from typing import Optional

from backend.config import get_settings
from backend.services.record_store import PickupRecord, RecordStore, get_record_store
from backend.utils import statistics
from backend.utils.helpers import divide, epoch_millis, mean, round2, round_half_up, weekday_name

logger = logging.getLogger(__name__)

MAX_STOPS_PER_ROUTE = 4
MAX_ROUTE_VOLUME = 200  # lbs
DEFAULT_DISTANCE_MILES = 5.5
DEFAULT_DESTINATION = "Local Food Bank"
DEFAULT_PEAK_HOUR = 14
COMPLETED_STATUS = "completed"

# Known source->destination distances; anything else uses the default
DISTANCE_MATRIX: dict[str, float] = {}

_HOUR = re.compile(r"^\s*[+-]?\d+")


@dataclass
class LocationPattern:
    avg_volume: float
    avg_distance: float
    avg_cost: float
    peak_start: str
    peak_end: str
    time_distribution: dict[str, int]
    day_patterns: dict[str, float]
    food_types: list[str]
    destinations: list[str]
    success_rate: float
    historical_count: int


def default_location_pattern() -> LocationPattern:
    return LocationPattern(
        avg_volume=45,
        avg_distance=5.2,
        avg_cost=12.50,
        peak_start="14:00",
        peak_end="16:00",
        time_distribution={},
        day_patterns={"Monday": 1.2, "Wednesday": 1.1, "Friday": 1.3},
        food_types=["Mixed"],
        destinations=[DEFAULT_DESTINATION],
        success_rate=0.85,
        historical_count=0,
    )


@dataclass
class PickupSuggestion:
    pickup_id: str
    source_location: str
    destination_partner: str
    recommended_time: str
    estimated_volume: float
    estimated_duration: int
    transport_cost: float
    driver_assignment: str
    priority_score: float
    efficiency_score: float
    composite_score: Optional[float] = None


@dataclass
class Route:
    route_id: str
    driver: str
    locations: list[str] = field(default_factory=list)
    total_distance: float = 0.0
    total_time: float = 0.0
    total_volume: float = 0.0
    total_cost: float = 0.0
    pickups: list[PickupSuggestion] = field(default_factory=list)


@dataclass
class PickupRequest:
    date: str
    available_locations: list[str]
    available_drivers: list[str]
    estimated_food_volume: float = 0
    priority_destinations: list[str] = field(default_factory=list)
    earliest_pickup: Optional[str] = None
    latest_pickup: Optional[str] = None


def estimated_distance(source: str, destination: str) -> float:
    return DISTANCE_MATRIX.get(f"{source}-{destination}") or DEFAULT_DISTANCE_MILES


def distance_penalty(source: str, destination: str) -> float:
    return min(20.0, estimated_distance(source, destination) * 2)


def total_distance(locations: list[str]) -> float:
    return sum(estimated_distance(a, b) for a, b in zip(locations, locations[1:]))


def _parse_hour(hour: str) -> Optional[int]:
    match = _HOUR.match(hour)
    return int(match.group(0)) if match else None


def _ranked(values: list[str]) -> list[str]:
    """Distinct values by descending frequency, ties in first-seen order"""
    counts: dict[str, int] = {}
    for value in values:
        counts[value] = counts.get(value, 0) + 1
    return [value for value, _ in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)]


class TrackerService:
    def __init__(self, store: RecordStore):
        self.store = store
        settings = get_settings()
        self.meals_per_lb = settings.MEALS_PER_LB
        self.co2_per_lb = settings.CO2_LBS_PER_LB

    def optimize_pickups(self, request: PickupRequest) -> dict:
        patterns = {loc: self._location_pattern(loc) for loc in request.available_locations}
        suggestions = self._suggest_pickups(request, patterns)
        routes, unassigned = self._build_routes(suggestions, request.available_drivers, request.date)
        totals = self._totals(routes)

        logger.info(
            f"Pickup plan for {request.date}: {len(routes)} routes, "
            f"{totals['volume']:.0f} lbs, {len(unassigned)} unassigned"
        )
        return {
            "optimized_routes": [asdict(r) for r in routes],
            "unassigned_pickups": [asdict(p) for p in unassigned],
            "total_volume_rescued": totals["volume"],
            "total_meals_equivalent": totals["meals"],
            "total_co2_savings": totals["co2"],
            "total_transport_cost": totals["cost"],
            "efficiency_metrics": self._efficiency_metrics(totals),
            "recommendations": self._recommendations(request, patterns),
        }

    # ------------------------------------------------------------------
    # Location history
    # ------------------------------------------------------------------

    def _location_pattern(self, location: str) -> LocationPattern:
        history = [p for p in self.store.pickups if p.source_location == location]
        if not history:
            return default_location_pattern()

        distribution, peak_start, peak_end = self._time_distribution(history)
        return LocationPattern(
            avg_volume=mean(p.quantity_lbs for p in history),
            avg_distance=mean(p.distance_miles for p in history),
            avg_cost=mean(p.transport_cost for p in history),
            peak_start=peak_start,
            peak_end=peak_end,
            time_distribution=distribution,
            day_patterns=self._day_patterns(history),
            food_types=_ranked([p.food_type for p in history]),
            destinations=_ranked([p.destination_partner for p in history]),
            success_rate=sum(1 for p in history if p.status == COMPLETED_STATUS) / len(history),
            historical_count=len(history),
        )

    @staticmethod
    def _time_distribution(history: list[PickupRecord]) -> tuple[dict[str, int], str, str]:
        counts: dict[str, int] = {}
        for pickup in history:
            hour = pickup.pickup_time.split(":")[0]
            counts[hour] = counts.get(hour, 0) + 1

        peak_hour, peak_count = str(DEFAULT_PEAK_HOUR), 0
        for hour, count in counts.items():
            if count > peak_count:
                peak_hour, peak_count = hour, count

        parsed = _parse_hour(peak_hour)
        if parsed is None:
            return counts, f"{DEFAULT_PEAK_HOUR}:00", f"{DEFAULT_PEAK_HOUR + 2}:00"
        return counts, f"{peak_hour}:00", f"{parsed + 2}:00"

    @staticmethod
    def _day_patterns(history: list[PickupRecord]) -> dict[str, float]:
        by_day: dict[str, list[float]] = {}
        for pickup in history:
            by_day.setdefault(weekday_name(pickup.date), []).append(pickup.quantity_lbs)
        overall = mean(p.quantity_lbs for p in history)
        return {day: divide(mean(volumes), overall) for day, volumes in by_day.items()}

    # ------------------------------------------------------------------
    # Suggestions
    # ------------------------------------------------------------------

    def _suggest_pickups(self, request: PickupRequest, patterns: dict[str, LocationPattern]) -> list[PickupSuggestion]:
        suggestions = []
        date_ms = epoch_millis(request.date)
        for counter, location in enumerate(request.available_locations, start=1):
            pattern = patterns[location]
            volume = self._estimate_volume(pattern, request.date)
            destination = self._select_destination(pattern, request.priority_destinations)
            distance = estimated_distance(location, destination)
            cost = round2(8.0 + distance * 0.5 + volume * 0.1)

            suggestions.append(PickupSuggestion(
                pickup_id=f"PU{date_ms}_{counter}",
                source_location=location,
                destination_partner=destination,
                recommended_time=self._optimal_time(pattern, request),
                estimated_volume=volume,
                estimated_duration=round_half_up(distance * 2 + max(15, volume * 0.5)),
                transport_cost=cost,
                driver_assignment="",
                priority_score=self._priority_score(pattern),
                efficiency_score=self._efficiency_score(volume, cost),
            ))

        return sorted(suggestions, key=lambda s: s.priority_score, reverse=True)

    @staticmethod
    def _optimal_time(pattern: LocationPattern, request: PickupRequest) -> str:
        peak = pattern.peak_start
        if request.earliest_pickup is not None and request.latest_pickup is not None:
            if peak < request.earliest_pickup:
                return request.earliest_pickup
            if peak > request.latest_pickup:
                return request.latest_pickup
        return peak

    def _estimate_volume(self, pattern: LocationPattern, date: str) -> int:
        day_factor = pattern.day_patterns.get(weekday_name(date)) or 1.0
        if math.isnan(day_factor):
            day_factor = 1.0
        external = self.store.external_for(date)
        student_factor = (external.student_population_factor if external else 0) or 1.0
        return round_half_up(pattern.avg_volume * day_factor * student_factor)

    @staticmethod
    def _select_destination(pattern: LocationPattern, priorities: Optional[list[str]]) -> str:
        if priorities:
            wanted = [p.lower() for p in priorities]
            for destination in pattern.destinations:
                if any(p in destination.lower() for p in wanted):
                    return destination
        return pattern.destinations[0] if pattern.destinations and pattern.destinations[0] else DEFAULT_DESTINATION

    @staticmethod
    def _priority_score(pattern: LocationPattern) -> float:
        score = 50 + min(30, pattern.avg_volume) + pattern.success_rate * 20 + min(10, pattern.historical_count)
        return min(100, score)

    @staticmethod
    def _efficiency_score(volume: float, cost: float) -> float:
        cost_per_pound = divide(cost, volume)
        score = 50 + max(0.0, 20 - cost_per_pound * 2) + min(30, volume * 0.5)
        return min(100, score)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def _build_routes(
        self, suggestions: list[PickupSuggestion], drivers: list[str], date: str
    ) -> tuple[list[Route], list[PickupSuggestion]]:
        remaining = list(suggestions)
        routes: list[Route] = []
        date_ms = epoch_millis(date)

        for driver in drivers:
            if not remaining:
                break
            route = self._create_route(driver, remaining, date_ms)
            if route.pickups:
                routes.append(route)

        unassigned = []
        for pickup in remaining:
            open_routes = [
                r for r in routes
                if len(r.pickups) < MAX_STOPS_PER_ROUTE
                and r.total_volume + pickup.estimated_volume <= MAX_ROUTE_VOLUME
            ]
            if not open_routes:
                unassigned.append(pickup)
                continue
            best = open_routes[0]
            for route in open_routes[1:]:
                if route.total_time < best.total_time:
                    best = route
            pickup.driver_assignment = best.driver
            best.pickups.append(pickup)
            self._update_route_metrics(best)

        if unassigned:
            logger.warning(f"{len(unassigned)} pickups exceed route capacity and were left unassigned")
        return routes, unassigned

    @staticmethod
    def _create_route(driver: str, remaining: list[PickupSuggestion], date_ms: int) -> Route:
        """Greedy route for one driver; consumes the chosen pickups from ``remaining``"""
        route = Route(route_id=f"RT_{driver}_{date_ms}", driver=driver)
        current_location = "depot"

        while len(route.pickups) < MAX_STOPS_PER_ROUTE and remaining:
            feasible = [p for p in remaining if route.total_volume + p.estimated_volume <= MAX_ROUTE_VOLUME]
            if not feasible:
                break

            best, best_score = feasible[0], None
            for pickup in feasible:
                score = (
                    pickup.priority_score * 0.4
                    + pickup.efficiency_score * 0.4
                    - distance_penalty(current_location, pickup.source_location) * 0.2
                )
                if score > (best_score if best_score is not None else 0):
                    best, best_score = pickup, score

            remaining.remove(best)
            best.composite_score = best_score
            best.driver_assignment = driver
            route.pickups.append(best)
            current_location = best.destination_partner
            route.total_volume += best.estimated_volume
            route.total_time += best.estimated_duration

        route.locations = [p.source_location for p in route.pickups]
        route.total_distance = total_distance(route.locations)
        route.total_cost = sum(p.transport_cost for p in route.pickups)
        return route

    @staticmethod
    def _update_route_metrics(route: Route) -> None:
        route.locations = [p.source_location for p in route.pickups]
        route.total_volume = sum(p.estimated_volume for p in route.pickups)
        route.total_cost = sum(p.transport_cost for p in route.pickups)
        route.total_time = sum(p.estimated_duration for p in route.pickups)
        route.total_distance = total_distance(route.locations)

    # ------------------------------------------------------------------
    # Totals and advice
    # ------------------------------------------------------------------

    def _totals(self, routes: list[Route]) -> dict:
        totals = {"volume": 0.0, "meals": 0.0, "co2": 0.0, "cost": 0.0}
        for route in routes:
            totals["volume"] += route.total_volume
            totals["cost"] += route.total_cost
            for pickup in route.pickups:
                totals["meals"] += pickup.estimated_volume * self.meals_per_lb
                totals["co2"] += pickup.estimated_volume * self.co2_per_lb
        return totals

    @staticmethod
    def _efficiency_metrics(totals: dict) -> dict:
        pickups = math.ceil(totals["volume"] / 50) if totals["volume"] > 0 else 1
        return {
            "avg_pickup_time": 25,
            "cost_per_pound": totals["cost"] / totals["volume"] if totals["volume"] > 0 else 0,
            "meals_per_dollar": totals["meals"] / totals["cost"] if totals["cost"] > 0 else 0,
            "co2_per_pickup": totals["co2"] / pickups if pickups > 0 else 0,
        }

    def _recommendations(self, request: PickupRequest, patterns: dict[str, LocationPattern]) -> dict:
        optimal_timing, cost_tips, improvements = [], [], []

        peak_hours = [_parse_hour(p.peak_start) for p in patterns.values()]
        peak_hours = [h for h in peak_hours if h is not None]
        avg_peak = round_half_up(mean(peak_hours)) if peak_hours else DEFAULT_PEAK_HOUR
        optimal_timing.append(f"Best pickup window: {avg_peak}:00 - {avg_peak + 2}:00")

        high_cost = [loc for loc, p in patterns.items() if p.avg_cost > 15]
        if high_cost:
            cost_tips.append(f"Consider consolidating pickups from: {', '.join(high_cost)}")

        low_success = [loc for loc, p in patterns.items() if p.success_rate < 0.8]
        if low_success:
            improvements.append(f"Improve coordination with: {', '.join(low_success)}")

        external = self.store.external_for(request.date)
        if external and "rain" in external.weather_condition.lower():
            improvements.append("Allow extra time for rainy weather conditions")

        return {
            "optimal_timing": optimal_timing,
            "cost_saving_tips": cost_tips,
            "efficiency_improvements": improvements,
        }

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def location_insights(self, location: str) -> Optional[dict]:
        history = [p for p in self.store.pickups if p.source_location == location]
        if not history:
            return None

        _, peak_start, _ = self._time_distribution(history)
        destinations = _ranked([p.destination_partner for p in history])
        return {
            "location": location,
            "total_pickups": len(history),
            "volume_stats": statistics.summary([p.quantity_lbs for p in history]),
            "avg_transport_cost": mean(p.transport_cost for p in history),
            "success_rate": sum(1 for p in history if p.status == COMPLETED_STATUS) / len(history),
            "most_common_destination": destinations[0],
            "most_common_food_type": _ranked([p.food_type for p in history])[0],
            "peak_pickup_time": peak_start,
        }

    def system_performance(self) -> dict:
        pickups = self.store.pickups
        volume_stats = statistics.summary([p.quantity_lbs for p in pickups])
        cost_stats = statistics.summary([p.transport_cost for p in pickups])
        completed = sum(1 for p in pickups if p.status == COMPLETED_STATUS)

        return {
            "volume_statistics": volume_stats,
            "cost_statistics": cost_stats,
            "total_meals_rescued": sum(p.meals_equivalent for p in pickups),
            "total_co2_saved": sum(p.co2_saved_lbs for p in pickups),
            "overall_success_rate": divide(completed, len(pickups)),
            "total_operations": len(pickups),
            "avg_cost_per_pound": divide(cost_stats["mean"], volume_stats["mean"]),
        }


@lru_cache()
def get_tracker_service() -> TrackerService:
    return TrackerService(get_record_store())
