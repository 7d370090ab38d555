"""
Dashboard aggregation across the forecast, planner, tracker and impact services
"""
import logging
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Optional

from backend.config import get_settings
from backend.services.forecast_service import ForecastService, get_forecast_service
from backend.services.impact_service import ImpactService, get_impact_service
from backend.services.planner_service import PlannerService, get_planner_service
from backend.services.record_store import RecordStore, get_record_store
from backend.services.tracker_service import COMPLETED_STATUS, TrackerService, get_tracker_service
from backend.utils.helpers import mean, parse_date, round2, round_half_up

logger = logging.getLogger(__name__)

TREND_WINDOW = 14
TREND_THRESHOLD = 5  # percent
HIGH_WASTE_PERCENTAGE = 25
MIN_ITEM_OCCURRENCES = 3
MAX_COST_PER_POUND = 5.0
EXCEPTIONAL_WEEK_MEALS = 500

WASTE_TARGET = 12  # % waste
SAVINGS_TARGET = 15000  # $ per month
PICKUP_TARGET = 0.90  # success rate
CO2_TARGET = 5000  # lbs per month

PRIORITY_ORDER = {"high": 3, "medium": 2, "low": 1}


def trend_direction(recent: float, previous: float, higher_better: bool = True) -> str:
    """improving / stable / worsening with a 5% dead band"""
    if previous == 0:
        return "stable"
    change = (recent - previous) / previous * 100
    if abs(change) < TREND_THRESHOLD:
        return "stable"
    if higher_better:
        return "improving" if change > 0 else "worsening"
    return "improving" if change < 0 else "worsening"


def performance_level(current: float, target: float, higher_better: bool = True) -> str:
    ratio = current / target
    if higher_better:
        if ratio >= 1.1:
            return "ahead"
        if ratio >= 0.9:
            return "on_track"
        return "behind"
    if ratio <= 0.9:
        return "ahead"
    if ratio <= 1.1:
        return "on_track"
    return "behind"


def month_prefix(day: date) -> str:
    return f"{day.year}-{day.month:02d}"


class DashboardService:
    def __init__(
        self,
        store: RecordStore,
        forecast: ForecastService,
        planner: PlannerService,
        tracker: TrackerService,
        impact: ImpactService,
        today: Callable[[], date] = date.today,
    ):
        self.store = store
        self.forecast = forecast
        self.planner = planner
        self.tracker = tracker
        self.impact = impact
        self.today = today

    def overview(self) -> dict:
        return {
            "summary_stats": self.summary_stats(),
            "recent_trends": self.recent_trends(),
            "alerts": self.alerts(),
            "quick_insights": self.quick_insights(),
        }

    def summary_stats(self) -> dict:
        production = self.store.production
        return {
            "total_menu_items_tracked": len({r.menu_item for r in production}),
            "total_pickups_completed": sum(1 for p in self.store.pickups if p.status == COMPLETED_STATUS),
            "avg_waste_percentage": round2(mean(r.waste_percentage for r in production)),
            "total_impact_score": round2(mean(r.community_impact_score for r in self.store.impact)),
        }

    def recent_trends(self) -> dict:
        """Last two weeks of records against the two weeks before"""
        production, pickups, impact = self.store.production, self.store.pickups, self.store.impact
        recent_waste = mean(r.waste_percentage for r in production[-TREND_WINDOW:])
        previous_waste = mean(r.waste_percentage for r in production[-2 * TREND_WINDOW:-TREND_WINDOW])

        recent_savings = mean(r.money_saved for r in impact[-TREND_WINDOW:])
        previous_savings = mean(r.money_saved for r in impact[-2 * TREND_WINDOW:-TREND_WINDOW])

        return {
            "waste_trend": trend_direction(recent_waste, previous_waste, higher_better=False),
            "pickup_efficiency_trend": trend_direction(
                self._success_rate(pickups[-TREND_WINDOW:]),
                self._success_rate(pickups[-2 * TREND_WINDOW:-TREND_WINDOW]),
            ),
            "cost_savings_trend": trend_direction(recent_savings, previous_savings),
        }

    def alerts(self) -> list[dict]:
        alerts = []

        high_waste = self._high_waste_items()
        if high_waste:
            alerts.append({
                "type": "warning",
                "title": "High Waste Items Detected",
                "message": (
                    f"{len(high_waste)} menu items showing waste >{HIGH_WASTE_PERCENTAGE}%: "
                    f"{', '.join(high_waste[:3])}"
                ),
                "priority": "high",
                "action_required": "Review forecast settings and consider menu adjustments",
            })

        failed = [p for p in self.store.pickups[-7:] if p.status == "failed"]
        if len(failed) > 2:
            alerts.append({
                "type": "error",
                "title": "Multiple Failed Pickups",
                "message": f"{len(failed)} failed pickups in the last week",
                "priority": "high",
                "action_required": "Check pickup logistics and partner availability",
            })

        cost_per_pound = self._cost_per_pound()
        if cost_per_pound > MAX_COST_PER_POUND:
            alerts.append({
                "type": "warning",
                "title": "High Operating Costs",
                "message": f"Average cost per pound rescued is ${cost_per_pound:.2f}",
                "priority": "medium",
                "action_required": "Review route optimization and operational efficiency",
            })

        meals_this_week = sum(r.meals_provided for r in self.store.impact[-7:])
        if meals_this_week > EXCEPTIONAL_WEEK_MEALS:
            alerts.append({
                "type": "success",
                "title": "Exceptional Week!",
                "message": f"{round_half_up(meals_this_week)} meals provided to community this week",
                "priority": "low",
            })

        return sorted(alerts, key=lambda a: PRIORITY_ORDER[a["priority"]], reverse=True)

    def quick_insights(self) -> list[dict]:
        insights = []

        categories = self.forecast.system_insights()["category_performance"]
        if categories:
            worst = categories[0]
            insights.append({
                "category": "forecast",
                "title": "Highest Waste Category",
                "value": f"{worst['category']} ({worst['avg_waste']:.1f}%)",
                "trend": "down",
            })

        planner_categories = self.planner.category_insights()
        if planner_categories:
            best = min(planner_categories, key=lambda c: c["avg_waste_percentage"])
            insights.append({
                "category": "planner",
                "title": "Most Efficient Category",
                "value": best["category"],
                "trend": "up",
            })

        success_rate = self.tracker.system_performance()["overall_success_rate"]
        if success_rate == success_rate:  # NaN when there are no pickups
            insights.append({
                "category": "tracker",
                "title": "Pickup Success Rate",
                "value": f"{success_rate * 100:.1f}%",
                "trend": "up" if success_rate > 0.85 else "down",
            })

        top_impact = self.impact.top_impact_metrics()
        if top_impact:
            insights.append({
                "category": "impact",
                "title": "Daily Meals Provided",
                "value": str(top_impact["daily_averages"]["meals_per_day"]),
                "trend": "up",
            })

        return insights

    def _high_waste_items(self) -> list[str]:
        by_item: dict[str, list[float]] = {}
        for record in self.store.production:
            by_item.setdefault(record.menu_item, []).append(record.waste_percentage)
        return [
            item for item, waste in by_item.items()
            if mean(waste) > HIGH_WASTE_PERCENTAGE and len(waste) >= MIN_ITEM_OCCURRENCES
        ]

    def _cost_per_pound(self) -> float:
        total_cost = sum(p.transport_cost for p in self.store.pickups)
        total_volume = sum(p.quantity_lbs for p in self.store.pickups)
        return total_cost / total_volume if total_volume > 0 else 0

    @staticmethod
    def _success_rate(pickups) -> float:
        if not pickups:
            return 0
        return sum(1 for p in pickups if p.status == COMPLETED_STATUS) / len(pickups)

    # ------------------------------------------------------------------
    # Performance
    # ------------------------------------------------------------------

    def performance_metrics(self) -> dict:
        """Calendar month to date against the previous calendar month"""
        today = self.today()
        current = self._month_records(month_prefix(today))
        previous = self._month_records(month_prefix(today.replace(day=1) - timedelta(days=1)))

        current_waste = mean(r.waste_percentage for r in current["production"])
        current_savings = self._total_savings(current["impact"])
        current_rate = self._success_rate(current["pickups"])
        current_co2 = sum(r.co2_avoided for r in current["impact"])

        return {
            "waste_reduction": {
                "current_month": current_waste,
                "previous_month": mean(r.waste_percentage for r in previous["production"]),
                "target": WASTE_TARGET,
                "performance": performance_level(current_waste, WASTE_TARGET, higher_better=False),
            },
            "cost_savings": {
                "current_month": current_savings,
                "previous_month": self._total_savings(previous["impact"]),
                "target": SAVINGS_TARGET,
                "performance": performance_level(current_savings, SAVINGS_TARGET),
            },
            "pickup_efficiency": {
                "current_success_rate": current_rate,
                "previous_success_rate": self._success_rate(previous["pickups"]),
                "target": PICKUP_TARGET,
                "performance": performance_level(current_rate, PICKUP_TARGET),
            },
            "environmental_impact": {
                "co2_saved_current": current_co2,
                "co2_saved_previous": sum(r.co2_avoided for r in previous["impact"]),
                "target": CO2_TARGET,
                "performance": performance_level(current_co2, CO2_TARGET),
            },
        }

    def _month_records(self, prefix: str) -> dict:
        return {
            "production": [r for r in self.store.production if r.date.startswith(prefix)],
            "pickups": [p for p in self.store.pickups if p.date.startswith(prefix)],
            "impact": [r for r in self.store.impact if r.date.startswith(prefix)],
        }

    @staticmethod
    def _total_savings(impact) -> float:
        return sum(r.money_saved + r.operational_savings for r in impact)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    def top_items_analysis(self) -> dict:
        cost_per_lb = get_settings().WASTE_COST_PER_LB
        stats: dict[str, dict] = {}
        for record in self.store.production:
            item = stats.setdefault(record.menu_item, {"wastes": [], "waste_cost": 0.0})
            item["wastes"].append(record.waste_percentage)
            item["waste_cost"] += record.quantity_wasted * cost_per_lb

        frequent = [
            (name, mean(item["wastes"]), len(item["wastes"]), item["waste_cost"])
            for name, item in stats.items()
            if len(item["wastes"]) >= MIN_ITEM_OCCURRENCES
        ]

        most_problematic = [
            {
                "menu_item": name,
                "avg_waste_percentage": avg,
                "frequency": frequency,
                "estimated_annual_cost": cost * (365 / frequency),
            }
            for name, avg, frequency, cost in sorted(frequent, key=lambda i: i[1], reverse=True)[:10]
        ]
        best_performing = [
            {
                "menu_item": name,
                "avg_waste_percentage": avg,
                "frequency": frequency,
                "efficiency_score": 100 - avg,
            }
            for name, avg, frequency, _ in sorted(frequent, key=lambda i: i[1])[:10]
        ]

        # Placeholder schedule: the worst items over the coming week
        today = self.today()
        upcoming = []
        for offset, item in enumerate(most_problematic[:5]):
            avg = item["avg_waste_percentage"]
            upcoming.append({
                "menu_item": item["menu_item"],
                "scheduled_date": (today + timedelta(days=7 + offset)).isoformat(),
                "risk_level": "high" if avg > 25 else "medium" if avg > 15 else "low",
                "predicted_waste": round_half_up(avg * 0.8),
            })

        return {
            "most_problematic_items": most_problematic,
            "best_performing_items": best_performing,
            "upcoming_high_risk": upcoming,
        }

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def system_status(self) -> dict:
        return {
            "overview": self.overview(),
            "performance": self.performance_metrics(),
            "top_items": self.top_items_analysis(),
            "system_health": {
                "data_freshness": self.data_freshness(),
                "api_status": "operational",
                "last_updated": datetime.now(timezone.utc).isoformat(),
            },
        }

    def data_freshness(self) -> str:
        """fresh (<= 1 day), stale (<= 7 days) or outdated, judged by the stalest data set"""
        latest = [
            self._latest_date(r.date for r in self.store.production),
            self._latest_date(p.date for p in self.store.pickups),
            self._latest_date(r.date for r in self.store.impact),
        ]
        if any(d is None for d in latest):
            return "outdated"

        days_old = (self.today() - min(latest)).days
        if days_old <= 1:
            return "fresh"
        if days_old <= 7:
            return "stale"
        return "outdated"

    @staticmethod
    def _latest_date(values) -> Optional[date]:
        dates = [d for d in (parse_date(v) for v in values) if d is not None]
        return max(dates) if dates else None


@lru_cache()
def get_dashboard_service() -> DashboardService:
    return DashboardService(
        get_record_store(),
        get_forecast_service(),
        get_planner_service(),
        get_tracker_service(),
        get_impact_service(),
    )
