"""
Regression waste forecaster.

For menu items with enough history a multiple linear regression of waste
percentage on ten calendar/weather/population features is trained per item
and kept in a ModelCache. Items with too little history fall back to the
category (or production-wide) average, see ``category_fallback``.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from backend.services.record_store import ProductionRecord, RecordStore
from backend.utils import statistics
from backend.utils.helpers import day_index, divide, mean, month_index, round_half_up

logger = logging.getLogger(__name__)

MIN_REGRESSION_RECORDS = 5
DEFAULT_WASTE_PERCENTAGE = 15.0
TARGET_WASTE_PERCENTAGE = 5
TRAILING_WINDOW = 10
CV_FOLDS = 5

WEATHER_CODES = {"sunny": 1, "cloudy": 2, "rainy": 3, "stormy": 4}
EVENT_CODES = {
    "none": 0,
    "holiday": 1,
    "orientation": 2,
    "exam_week": 3,
    "spring_break": 4,
    "sports_game": 5,
    "graduation": 6,
}

PLACEHOLDER_INFLUENCE = {
    "weather_impact": 20,
    "day_of_week_impact": 15,
    "seasonal_impact": 10,
    "event_impact": 25,
}


@dataclass
class ForecastRequest:
    menu_item: str
    date: str
    quantity_to_prepare: float
    weather: Optional[str] = None
    temperature: Optional[float] = None
    special_event: Optional[str] = None
    estimated_students: Optional[float] = None


@dataclass
class TrainedModel:
    coefficients: list[float]
    r2: float
    residuals: list[float]
    accuracy: float
    feature_importance: list[float] = field(default_factory=list)


class ModelCache:
    """Trained models keyed by ``model_<menu item>``.

    Populated lazily. Two requests missing the same key may both train;
    the second write replaces the first with an identical model.
    """

    def __init__(self):
        self._models: dict[str, TrainedModel] = {}

    @staticmethod
    def key_for(menu_item: str) -> str:
        return f"model_{menu_item}"

    def get(self, key: str) -> Optional[TrainedModel]:
        return self._models.get(key)

    def set(self, key: str, model: TrainedModel) -> None:
        self._models[key] = model

    def invalidate(self, key: Optional[str] = None) -> int:
        """Drop one model, or every model when no key is given. Returns the number removed."""
        if key is None:
            removed = len(self._models)
            self._models.clear()
            return removed
        return 1 if self._models.pop(key, None) is not None else 0

    def keys(self) -> list[str]:
        return list(self._models)

    def __contains__(self, key: str) -> bool:
        return key in self._models

    def __len__(self) -> int:
        return len(self._models)


def encode_weather(weather: Optional[str]) -> int:
    return WEATHER_CODES.get((weather or "").lower(), 1)


def encode_event(event: Optional[str]) -> int:
    return EVENT_CODES.get((event or "").lower(), 0)


def category_fallback(store: RecordStore, request: ForecastRequest) -> dict:
    """Average-based forecast for items without enough history.

    Uses the item's category average (accuracy 0.7), or the production-wide
    average when the category has no rows (accuracy 0.65).
    """
    item_record = next((r for r in store.production if r.menu_item == request.menu_item), None)
    category = item_record.category if item_record and item_record.category else "Protein"
    category_rows = [r.waste_percentage for r in store.production if r.category == category]

    if category_rows:
        percentage = mean(category_rows)
        accuracy = 0.7
    else:
        all_rows = [r.waste_percentage for r in store.production]
        percentage = mean(all_rows) if all_rows else DEFAULT_WASTE_PERCENTAGE
        accuracy = 0.65

    quantity = request.quantity_to_prepare
    predicted_waste = percentage / 100 * quantity
    return {
        "predicted_waste": predicted_waste,
        "predicted_waste_percentage": percentage,
        "confidence_interval": {
            "lower": predicted_waste * 0.7,
            "upper": predicted_waste * 1.3,
        },
        "recommended_quantity": round_half_up(quantity * 0.95),
        "potential_savings": 0,
        "model_accuracy": accuracy,
        "factors_influence": dict(PLACEHOLDER_INFLUENCE),
    }


class RegressionForecaster:
    """Per-item multiple regression forecaster with an explicit model cache"""

    def __init__(self, store: RecordStore, cache: Optional[ModelCache] = None):
        self.store = store
        self.cache = cache if cache is not None else ModelCache()

    # ------------------------------------------------------------------
    # Cache management
    # ------------------------------------------------------------------

    def invalidate(self, menu_item: Optional[str] = None) -> int:
        key = ModelCache.key_for(menu_item) if menu_item is not None else None
        return self.cache.invalidate(key)

    def refresh(self, store: Optional[RecordStore] = None) -> None:
        """Swap in a new record store (if given) and drop every trained model"""
        if store is not None:
            self.store = store
        removed = self.cache.invalidate()
        logger.info(f"Regression model cache refreshed ({removed} models dropped)")

    def get_or_train_model(self, menu_item: str) -> TrainedModel:
        key = ModelCache.key_for(menu_item)
        model = self.cache.get(key)
        if model is None:
            model = self.train_model(menu_item)
            self.cache.set(key, model)
        return model

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, request: ForecastRequest) -> dict:
        history = self.store.production_for(request.menu_item)
        if len(history) < MIN_REGRESSION_RECORDS:
            return category_fallback(self.store, request)

        features = self._prediction_features(request)
        model = self.get_or_train_model(request.menu_item)

        raw = statistics.predict_with_coefficients([1.0, *features], model.coefficients)
        percentage = float(np.clip(raw, 0, 100))
        quantity = request.quantity_to_prepare
        predicted_waste = percentage / 100 * quantity

        with np.errstate(divide="ignore", invalid="ignore"):
            residuals = np.asarray(model.residuals, dtype=np.float64)
            margin = 1.96 * float(np.sqrt((residuals ** 2).sum() / len(residuals)))
        lower = float(np.maximum(0, predicted_waste - margin))

        average = self._average_waste(request.menu_item)
        savings = float(np.maximum(0, (average - percentage) / 100 * quantity))

        return {
            "predicted_waste": predicted_waste,
            "predicted_waste_percentage": percentage,
            "confidence_interval": {"lower": lower, "upper": predicted_waste + margin},
            "recommended_quantity": self._optimize_quantity(quantity, percentage),
            "potential_savings": savings,
            "model_accuracy": model.accuracy,
            "factors_influence": self._factor_influence(history),
        }

    @staticmethod
    def _optimize_quantity(quantity: float, percentage: float):
        if percentage > TARGET_WASTE_PERCENTAGE:
            adjustment = divide(100 - TARGET_WASTE_PERCENTAGE, 100 - percentage)
        else:
            adjustment = 1
        return round_half_up(quantity * adjustment)

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------

    def _prediction_features(self, request: ForecastRequest) -> list[float]:
        month = month_index(request.date)
        external = self.store.external_for(request.date)
        return [
            day_index(request.date),
            month,
            encode_weather(request.weather or "sunny"),
            request.temperature or 65,
            encode_event(request.special_event or "none"),
            (request.estimated_students or 1000) / 1000,
            self._average_waste(request.menu_item),
            self._seasonal_factor(request.menu_item, month),
            (external.student_population_factor if external else 0) or 1.0,
            (external.precipitation if external else 0) or 0,
        ]

    def _historical_features(self, record: ProductionRecord) -> list[float]:
        month = month_index(record.date)
        external = self.store.external_for(record.date)
        return [
            day_index(record.date),
            month,
            encode_weather(record.weather),
            record.temperature,
            encode_event(record.special_event),
            record.estimated_students / 1000,
            self._trailing_average(record.menu_item, record.date),
            self._seasonal_factor(record.menu_item, month),
            (external.student_population_factor if external else 0) or 1.0,
            (external.precipitation if external else 0) or 0,
        ]

    def _average_waste(self, menu_item: str) -> float:
        rows = self.store.production_for(menu_item)
        if not rows:
            return DEFAULT_WASTE_PERCENTAGE
        return mean(r.waste_percentage for r in rows)

    def _trailing_average(self, menu_item: str, before_date: str) -> float:
        earlier = [r for r in self.store.production_for(menu_item) if r.date < before_date]
        window = earlier[-TRAILING_WINDOW:]
        if not window:
            return DEFAULT_WASTE_PERCENTAGE
        return mean(r.waste_percentage for r in window)

    def _seasonal_factor(self, menu_item: str, month: int) -> float:
        rows = self.store.production_for(menu_item)
        same_month = [r.waste_percentage for r in rows if month_index(r.date) == month]
        if not same_month:
            return 1.0
        return divide(mean(same_month), mean(r.waste_percentage for r in rows))

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train_model(self, menu_item: str) -> TrainedModel:
        history = self.store.production_for(menu_item)
        x = [self._historical_features(r) for r in history]
        y = [r.waste_percentage for r in history]

        regression = statistics.multiple_regression(x, y)
        coefficients = regression["coefficients"]
        residuals = [
            actual - statistics.predict_with_coefficients([1.0, *row], coefficients)
            for row, actual in zip(x, y)
        ]

        model = TrainedModel(
            coefficients=coefficients,
            r2=regression["r2"],
            residuals=residuals,
            accuracy=self.cross_validate(x, y),
            feature_importance=[abs(c) for c in coefficients[1:]],
        )
        logger.debug(f"Trained regression model for {menu_item} on {len(history)} rows (r2={model.r2})")
        return model

    @staticmethod
    def cross_validate(x: list[list[float]], y: list[float]) -> float:
        """Contiguous k-fold score, each fold scored max(0, 1 - rmse/20)"""
        fold_size = len(x) // CV_FOLDS
        total = 0.0
        for i in range(CV_FOLDS):
            start, end = i * fold_size, (i + 1) * fold_size
            x_train = x[:start] + x[end:]
            y_train = y[:start] + y[end:]
            x_test, y_test = x[start:end], y[start:end]

            fold_model = statistics.multiple_regression(x_train, y_train)
            errors = [
                (statistics.predict_with_coefficients([1.0, *row], fold_model["coefficients"]) - actual) ** 2
                for row, actual in zip(x_test, y_test)
            ]
            mse = divide(math.fsum(errors), len(errors))
            total += float(np.maximum(0, 1 - np.sqrt(mse) / 20))
        return total / CV_FOLDS

    # ------------------------------------------------------------------
    # Insights
    # ------------------------------------------------------------------

    def _factor_influence(self, history: list[ProductionRecord]) -> dict:
        waste = [r.waste_percentage for r in history]
        weather = [encode_weather(r.weather) for r in history]
        days = [day_index(r.date) for r in history]
        months = [month_index(r.date) for r in history]
        events = [encode_event(r.special_event) for r in history]
        return {
            "weather_impact": abs(statistics.correlation(weather, waste)) * 100,
            "day_of_week_impact": abs(statistics.correlation(days, waste)) * 100,
            "seasonal_impact": abs(statistics.correlation(months, waste)) * 100,
            "event_impact": abs(statistics.correlation(events, waste)) * 100,
        }

    def model_insights(self, menu_item: str) -> Optional[dict]:
        history = self.store.production_for(menu_item)
        if not history:
            return None

        waste = [r.waste_percentage for r in history]
        trend = statistics.linear_regression(list(range(len(waste))), waste)
        per_day = day_averages(history)

        best_day, lowest = "", math.inf
        worst_day, highest = "", -1.0
        for day, avg in per_day.items():
            if avg < lowest:
                best_day, lowest = day, avg
            if avg > highest:
                worst_day, highest = day, avg

        return {
            "statistics": statistics.summary(waste),
            "trend": {
                "direction": "increasing" if trend["slope"] > 0 else "decreasing",
                "strength": abs(trend["slope"]),
                "r2": trend["r2"],
            },
            "seasonality": statistics.seasonal_decompose(waste, 7),
            "best_day": best_day,
            "worst_day": worst_day,
        }


def day_averages(history: list[ProductionRecord]) -> dict[str, float]:
    """Average waste % per weekday name, in first-seen order"""
    grouped: dict[str, list[float]] = {}
    for record in history:
        grouped.setdefault(record.day_of_week, []).append(record.waste_percentage)
    return {day: mean(values) for day, values in grouped.items()}
