"""
Waste forecasting service.

Two forecasting strategies are exposed through ``ForecastService.predict_waste``:

  * ``factor``     - historical item average scaled by weather, weekday,
                     event and population multipliers (default, cheap)
  * ``regression`` - per-item multiple regression, see forecast_model

They intentionally produce different numbers for the same request.
"""
import logging
from functools import lru_cache
from typing import Optional

from backend.services.forecast_model import (
    ForecastRequest,
    ModelCache,
    PLACEHOLDER_INFLUENCE,
    RegressionForecaster,
    day_averages,
    category_fallback,
    encode_weather,
)
from backend.services.record_store import ProductionRecord, RecordStore, get_record_store
from backend.utils import statistics
from backend.utils.helpers import (
    MONTH_NAMES,
    divide,
    mean,
    month_index,
    round_half_up,
    weekday_name,
)

logger = logging.getLogger(__name__)

STRATEGIES = ("factor", "regression")

MIN_FACTOR_RECORDS = 3
MIN_INFLUENCE_RECORDS = 5
FACTOR_MODEL_ACCURACY = 0.85

WEATHER_FACTORS = {"sunny": 1.0, "cloudy": 1.1, "rainy": 1.3, "stormy": 1.5}
EVENT_FACTORS = {
    "none": 1.0,
    "holiday": 0.7,
    "orientation": 1.2,
    "exam_week": 0.8,
    "sports_game": 1.3,
    "graduation": 0.9,
}
# Weekday / event encodings used only by the factor strategy's influence scores
DAY_CODES = {
    "Monday": 1, "Tuesday": 2, "Wednesday": 3, "Thursday": 4,
    "Friday": 5, "Saturday": 6, "Sunday": 7,
}
FACTOR_EVENT_CODES = {
    "none": 0, "holiday": 1, "orientation": 2, "exam_week": 3,
    "sports_game": 4, "graduation": 5,
}


class FactorForecaster:
    """Multiplicative-factor forecaster"""

    def __init__(self, store: RecordStore):
        self.store = store

    def predict(self, request: ForecastRequest) -> dict:
        history = self.store.production_for(request.menu_item)
        if len(history) < MIN_FACTOR_RECORDS:
            return category_fallback(self.store, request)

        historical_avg = mean(r.waste_percentage for r in history)

        adjusted = historical_avg
        adjusted *= WEATHER_FACTORS.get((request.weather or "sunny").lower(), 1.0)
        adjusted *= self._day_factor(history, request.date)
        adjusted *= EVENT_FACTORS.get((request.special_event or "none").lower(), 1.0)
        adjusted *= self._student_factor(request.estimated_students or 1000)
        adjusted = max(1.0, min(50.0, adjusted))

        quantity = request.quantity_to_prepare
        predicted_waste = adjusted / 100 * quantity

        return {
            "predicted_waste": predicted_waste,
            "predicted_waste_percentage": adjusted,
            "confidence_interval": {
                "lower": predicted_waste * 0.8,
                "upper": predicted_waste * 1.2,
            },
            "recommended_quantity": round_half_up(quantity * 95 / (100 - adjusted)),
            "potential_savings": max(0.0, (historical_avg - adjusted) / 100 * quantity),
            "model_accuracy": FACTOR_MODEL_ACCURACY,
            "factors_influence": self._factor_influence(history),
        }

    @staticmethod
    def _day_factor(history: list[ProductionRecord], date: str) -> float:
        day_rows = [r.waste_percentage for r in history if r.day_of_week == weekday_name(date)]
        if not day_rows:
            return 1.0
        return divide(mean(day_rows), mean(r.waste_percentage for r in history))

    @staticmethod
    def _student_factor(estimated_students: float) -> float:
        ratio = estimated_students / 1000
        return max(0.5, min(1.5, 1.2 - ratio * 0.2))

    @staticmethod
    def _factor_influence(history: list[ProductionRecord]) -> dict:
        if len(history) < MIN_INFLUENCE_RECORDS:
            return dict(PLACEHOLDER_INFLUENCE)

        waste = [r.waste_percentage for r in history]
        weather = [encode_weather(r.weather) for r in history]
        days = [DAY_CODES.get(r.day_of_week, 1) for r in history]
        months = [month_index(r.date) for r in history]
        events = [FACTOR_EVENT_CODES.get(r.special_event.lower(), 0) for r in history]
        return {
            "weather_impact": abs(statistics.correlation(weather, waste)) * 100,
            "day_of_week_impact": abs(statistics.correlation(days, waste)) * 100,
            "seasonal_impact": abs(statistics.correlation(months, waste)) * 100,
            "event_impact": abs(statistics.correlation(events, waste)) * 100,
        }


class ForecastService:
    """Single entry point for waste forecasts and forecast insights"""

    def __init__(self, store: RecordStore, cache: Optional[ModelCache] = None):
        self.store = store
        self.factor = FactorForecaster(store)
        self.regression = RegressionForecaster(store, cache)

    def predict_waste(self, request: ForecastRequest, strategy: str = "factor") -> dict:
        if strategy == "factor":
            result = self.factor.predict(request)
        elif strategy == "regression":
            result = self.regression.predict(request)
        else:
            raise ValueError(f"Unknown forecast strategy '{strategy}'. Must be one of: {STRATEGIES}")

        logger.info(
            f"Forecast [{strategy}] {request.menu_item} on {request.date}: "
            f"{result['predicted_waste_percentage']:.2f}% of {request.quantity_to_prepare}"
        )
        return result

    def refresh(self, store: Optional[RecordStore] = None) -> None:
        """Rebind both strategies to a new record store and clear trained models"""
        if store is not None:
            self.store = store
            self.factor.store = store
        self.regression.refresh(store)

    def invalidate_models(self, menu_item: Optional[str] = None) -> int:
        return self.regression.invalidate(menu_item)

    def model_insights(self, menu_item: str) -> Optional[dict]:
        return self.regression.model_insights(menu_item)

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def menu_item_insights(self, menu_item: str) -> Optional[dict]:
        history = self.store.production_for(menu_item)
        if not history:
            return None

        best_day, lowest = "", float("inf")
        worst_day, highest = "", -1.0
        for day, avg in day_averages(history).items():
            if avg < lowest:
                best_day, lowest = day, avg
            if avg > highest:
                worst_day, highest = day, avg

        return {
            "statistics": statistics.summary([r.waste_percentage for r in history]),
            "total_occurrences": len(history),
            "best_day": {"day": best_day, "avg_waste": lowest},
            "worst_day": {"day": worst_day, "avg_waste": highest},
            "recent_trend": self._recent_trend(history),
            "seasonal_pattern": self._seasonal_pattern(history),
        }

    @staticmethod
    def _recent_trend(history: list[ProductionRecord]) -> str:
        if len(history) < 4:
            return "insufficient_data"
        recent = [r.waste_percentage for r in history[-4:]]
        older = [r.waste_percentage for r in history[-8:-4]]
        if not older:
            return "stable"

        recent_avg, older_avg = mean(recent), mean(older)
        if recent_avg < older_avg * 0.9:
            return "improving"
        if recent_avg > older_avg * 1.1:
            return "worsening"
        return "stable"

    @staticmethod
    def _seasonal_pattern(history: list[ProductionRecord]) -> list[dict]:
        by_month: dict[int, list[float]] = {}
        for record in history:
            by_month.setdefault(month_index(record.date), []).append(record.waste_percentage)
        pattern = [
            {"month": MONTH_NAMES[month][:3], "avg_waste": mean(values)}
            for month, values in by_month.items()
        ]
        return sorted(pattern, key=lambda p: p["avg_waste"])

    def system_insights(self) -> dict:
        production = self.store.production
        waste = [r.waste_percentage for r in production]

        by_category: dict[str, list[float]] = {}
        by_item: dict[str, list[float]] = {}
        for record in production:
            by_category.setdefault(record.category, []).append(record.waste_percentage)
            by_item.setdefault(record.menu_item, []).append(record.waste_percentage)

        category_performance = sorted(
            (
                {"category": category, "avg_waste": mean(values), "count": len(values)}
                for category, values in by_category.items()
            ),
            key=lambda c: c["avg_waste"],
            reverse=True,
        )
        problematic = sorted(
            (
                {"menu_item": item, "avg_waste": mean(values), "occurrences": len(values)}
                for item, values in by_item.items()
                if len(values) >= 3
            ),
            key=lambda i: i["avg_waste"],
            reverse=True,
        )[:10]

        return {
            "overall_stats": statistics.summary(waste) if waste else _empty_summary(),
            "category_performance": category_performance,
            "most_problematic_items": problematic,
            "total_menu_items": len(by_item),
        }


def _empty_summary() -> dict:
    return {"mean": 0, "median": 0, "std": 0, "min": 0, "max": 0, "q1": 0, "q3": 0}


@lru_cache()
def get_forecast_service() -> ForecastService:
    return ForecastService(get_record_store())
