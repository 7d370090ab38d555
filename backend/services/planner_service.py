"""
Menu planner: scores catalog dishes on six weighted criteria and greedily
assembles a category-balanced menu under an optional budget.
"""
import logging
import math
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional

from backend.config import get_settings
from backend.services.record_store import MenuItemRecord, ProductionRecord, RecordStore, get_record_store
from backend.utils.helpers import divide, mean, month_index, round_half_up, weekday_name

logger = logging.getLogger(__name__)

MENU_SIZE_TARGET = 8
MAX_MENU_ITEMS = 12
HIGH_RISK_WASTE_RATIO = 0.15

SCORE_WEIGHTS = {
    "waste_score": 0.30,
    "popularity_score": 0.25,
    "cost_score": 0.20,
    "prep_score": 0.10,
    "shelf_life_score": 0.10,
    "season_score": 0.05,
}
PREP_SCORES = {"easy": 10, "medium": 7, "hard": 4, "very hard": 2}
CATEGORY_DEMAND = {"breakfast": 0.7, "lunch": 0.8, "dinner": 0.9}
DEFAULT_CATEGORY_DEMAND = 0.7
CATEGORY_WASTE_DEFAULTS = {"Entree": 12, "Side": 15, "Dessert": 20, "Beverage": 8, "Salad": 18}
DEFAULT_CATEGORY_WASTE = 15
MEAL_CATEGORY_COUNT = 3

NUTRITION_KEYWORDS = {
    "protein_items": ["chicken", "beef", "fish", "salmon", "tofu", "eggs", "shrimp", "pork", "lamb"],
    "carb_items": ["pasta", "rice", "bread", "noodles", "pizza", "burrito", "sandwich", "pancakes", "toast"],
    "vegetable_items": ["salad", "veggie", "vegetable", "spinach", "kale", "broccoli", "avocado", "quinoa"],
    "dessert_items": ["cake", "chocolate", "dessert", "parfait", "pudding", "muffin", "tiramisu", "baklava"],
}


@dataclass
class PlannerRequest:
    date: str
    estimated_students: float
    target_categories: list[str]
    budget_constraint: Optional[float] = None
    dietary_requirements: list[str] = field(default_factory=list)
    avoid_items: list[str] = field(default_factory=list)


@dataclass(eq=False)
class ScoredItem:
    item: MenuItemRecord
    history: list[ProductionRecord]
    scores: dict

    @property
    def composite(self) -> float:
        return self.scores["composite_score"]

    @property
    def average_waste(self) -> Optional[float]:
        if not self.history:
            return None
        return mean(r.waste_percentage for r in self.history)


def season_for_month(month: int) -> str:
    """Season of a zero-based month"""
    if 2 <= month <= 4:
        return "spring"
    if 5 <= month <= 7:
        return "summer"
    if 8 <= month <= 10:
        return "fall"
    return "winter"


class PlannerService:
    def __init__(self, store: RecordStore):
        self.store = store
        self.waste_cost_per_lb = get_settings().WASTE_COST_PER_LB

    def optimize_menu(self, request: PlannerRequest) -> dict:
        candidates = [
            item for item in self.store.menu
            if item.menu_category in request.target_categories
            and item.dish_name not in (request.avoid_items or [])
        ]
        logger.debug(
            f"{len(candidates)} of {len(self.store.menu)} catalog items match {request.target_categories}"
        )

        scored = [self._score_item(item, request) for item in candidates]
        selected = self._select_items(scored, request)
        recommendations = [self._recommend(s, request) for s in selected]

        total_cost = sum(r["recommended_quantity"] * r["cost_per_serving"] for r in recommendations)
        total_waste = sum(r["expected_waste"] for r in recommendations)
        total_production = sum(r["recommended_quantity"] for r in recommendations)
        waste_percentage = total_waste / total_production * 100 if total_production else 0.0

        historical_cost = self._historical_waste_cost(request.target_categories)
        projected_cost = total_waste * self.waste_cost_per_lb

        logger.info(
            f"Menu for {request.date}: {len(recommendations)} items, "
            f"cost {total_cost:.2f}, expected waste {waste_percentage:.1f}%"
        )
        return {
            "recommended_menu": recommendations,
            "total_cost": total_cost,
            "total_expected_waste": total_waste,
            "waste_percentage": waste_percentage,
            "cost_savings": max(0.0, historical_cost - projected_cost),
            "nutritional_balance": self._nutritional_balance(recommendations),
            "risk_assessment": self._assess_risks(recommendations, request),
        }

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def _score_item(self, item: MenuItemRecord, request: PlannerRequest) -> ScoredItem:
        history = self.store.production_for(item.dish_name)

        waste_score = 5.0
        if history:
            waste_score = max(1.0, 10 - mean(r.waste_percentage for r in history) / 10)

        scores = {
            "waste_score": waste_score,
            "popularity_score": item.popularity_score,
            "cost_score": max(1.0, 10 - item.cost_per_serving * 2),
            "prep_score": PREP_SCORES.get(item.prep_difficulty.lower(), 7),
            "shelf_life_score": min(10.0, item.shelf_life_hours / 4),
            "season_score": self._season_score(item.season_appropriateness, request.date),
        }
        weighted = sum(scores[name] * weight for name, weight in SCORE_WEIGHTS.items())
        scores["composite_score"] = weighted * self._day_adjustment(history, request.date)
        return ScoredItem(item=item, history=history, scores=scores)

    @staticmethod
    def _day_adjustment(history: list[ProductionRecord], date: str) -> float:
        """Boost dishes that waste less than usual on this weekday"""
        day = weekday_name(date)
        day_rows = [r.waste_percentage for r in history if r.day_of_week == day]
        if not day_rows:
            return 1.0
        ratio = divide(mean(r.waste_percentage for r in history), mean(day_rows))
        if math.isnan(ratio):
            return ratio
        return max(0.5, min(1.5, ratio))

    @staticmethod
    def _season_score(season_appropriateness: str, date: str) -> int:
        appropriateness = season_appropriateness.lower()
        if season_for_month(month_index(date)) in appropriateness:
            return 10
        if appropriateness == "all_season":
            return 8
        return 5

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def _select_items(self, scored: list[ScoredItem], request: PlannerRequest) -> list[ScoredItem]:
        ordered = sorted(scored, key=lambda s: s.composite, reverse=True)
        budget = request.budget_constraint
        per_category = math.ceil(MENU_SIZE_TARGET / len(request.target_categories))

        selected: list[ScoredItem] = []
        counts: dict[str, int] = {}
        total_cost = 0.0

        def affordable(cost: float) -> bool:
            return not budget or total_cost + cost <= budget

        for candidate in ordered:
            category = candidate.item.menu_category
            cost = self._estimate_cost(candidate.item, request.estimated_students)
            if counts.get(category, 0) < per_category and len(selected) < MAX_MENU_ITEMS and affordable(cost):
                selected.append(candidate)
                counts[category] = counts.get(category, 0) + 1
                total_cost += cost

        # At least one dish per requested category, when one fits
        for category in request.target_categories:
            if category in counts:
                continue
            for candidate in ordered:
                if candidate.item.menu_category != category or candidate in selected:
                    continue
                cost = self._estimate_cost(candidate.item, request.estimated_students)
                if affordable(cost):
                    selected.append(candidate)
                    counts[category] = 1
                    total_cost += cost
                break

        return selected

    def _base_quantity(self, item: MenuItemRecord, estimated_students: float) -> int:
        demand = CATEGORY_DEMAND.get(item.menu_category, DEFAULT_CATEGORY_DEMAND)
        return round_half_up(estimated_students * (item.popularity_score / 10) * demand * 0.3)

    def _estimate_cost(self, item: MenuItemRecord, estimated_students: float) -> float:
        return self._base_quantity(item, estimated_students) * item.cost_per_serving

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def _recommend(self, scored: ScoredItem, request: PlannerRequest) -> dict:
        item = scored.item
        base = self._base_quantity(item, request.estimated_students)
        average_waste = scored.average_waste

        adjustment = 1.0
        if average_waste is not None:
            adjustment = max(0.7, 1 - average_waste / 100)

        quantity = round_half_up(base * adjustment)
        if average_waste is not None:
            expected_pct = average_waste
        else:
            expected_pct = CATEGORY_WASTE_DEFAULTS.get(item.menu_category, DEFAULT_CATEGORY_WASTE)

        return {
            "menu_item": item.dish_name,
            "category": item.menu_category,
            "recommended_quantity": quantity,
            "expected_waste": quantity * expected_pct / 100,
            "cost_per_serving": item.cost_per_serving,
            "popularity_score": item.popularity_score,
            "reasoning": self._reasoning(scored.scores, adjustment),
        }

    @staticmethod
    def _reasoning(scores: dict, adjustment: float) -> str:
        reasons = []
        if scores["popularity_score"] >= 8:
            reasons.append("high popularity score")
        if scores["waste_score"] >= 7:
            reasons.append("low historical waste")
        if adjustment < 0.9:
            reasons.append("adjusted for waste reduction")
        if scores["cost_score"] >= 7:
            reasons.append("cost-effective")
        if scores["season_score"] >= 8:
            reasons.append("seasonal appropriateness")
        return f"Selected due to: {', '.join(reasons) or 'balanced performance across metrics'}"

    def _historical_waste_cost(self, categories: list[str]) -> float:
        production = self.store.production
        if not production:
            return 0.0
        total = sum(r.quantity_wasted * self.waste_cost_per_lb for r in production)
        return total / len(production) * (len(categories) / MEAL_CATEGORY_COUNT)

    @staticmethod
    def _nutritional_balance(recommendations: list[dict]) -> dict:
        balance = {bucket: 0 for bucket in NUTRITION_KEYWORDS}
        for rec in recommendations:
            name = rec["menu_item"].lower()
            for bucket, keywords in NUTRITION_KEYWORDS.items():
                if any(k in name for k in keywords):
                    balance[bucket] += 1
        return balance

    def _assess_risks(self, recommendations: list[dict], request: PlannerRequest) -> dict:
        high_risk, safe, weather = [], [], []
        for rec in recommendations:
            ratio = divide(rec["expected_waste"], rec["recommended_quantity"])
            (high_risk if ratio > HIGH_RISK_WASTE_RATIO else safe).append(rec["menu_item"])

        external = self.store.external_for(request.date)
        if external:
            if "rain" in external.weather_condition.lower():
                weather.append("Rainy weather may reduce foot traffic")
            if external.temperature > 80:
                weather.append("Hot weather favors cold items and beverages")
            if external.temperature < 50:
                weather.append("Cold weather increases demand for hot items")

        return {
            "high_risk_items": high_risk,
            "safe_items": safe,
            "weather_considerations": weather,
        }

    # ------------------------------------------------------------------
    # Catalog views
    # ------------------------------------------------------------------

    def menu_suggestions(
        self,
        max_prep_time: Optional[float] = None,
        dietary_restrictions: Optional[list[str]] = None,
        cost_limit: Optional[float] = None,
    ) -> list[MenuItemRecord]:
        items = list(self.store.menu)
        if max_prep_time:
            items = [i for i in items if i.prep_time <= max_prep_time]
        if cost_limit:
            items = [i for i in items if i.cost_per_serving <= cost_limit]
        if dietary_restrictions:
            restrictions = [r.lower() for r in dietary_restrictions]
            items = [i for i in items if not any(r in i.allergens.lower() for r in restrictions)]
        return sorted(items, key=lambda i: i.popularity_score, reverse=True)

    def category_insights(self) -> list[dict]:
        by_category: dict[str, list[MenuItemRecord]] = {}
        for item in self.store.menu:
            by_category.setdefault(item.menu_category, []).append(item)

        insights = []
        for category, items in by_category.items():
            waste = [r.waste_percentage for r in self.store.production if r.category == category]
            insights.append({
                "category": category,
                "item_count": len(items),
                "avg_popularity": mean(i.popularity_score for i in items),
                "avg_cost": mean(i.cost_per_serving for i in items),
                "avg_prep_time": mean(i.prep_time for i in items),
                "avg_waste_percentage": mean(waste),
            })
        return sorted(insights, key=lambda c: c["avg_waste_percentage"])


@lru_cache()
def get_planner_service() -> PlannerService:
    return PlannerService(get_record_store())
