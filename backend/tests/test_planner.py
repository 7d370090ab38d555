"""
Tests for the menu planner
"""
import pytest

from backend.services.planner_service import PlannerRequest, PlannerService, season_for_month
from backend.services.record_store import RecordStore
from backend.tests import factories


def _catalog_store(production=None, external=None):
    return RecordStore(
        production=production,
        external=external,
        menu=[
            factories.menu_item("Chicken Burrito", "lunch", popularity_score=9.0, cost_per_serving=2.5),
            factories.menu_item("Veggie Wrap", "lunch", popularity_score=7.0, cost_per_serving=1.5),
            factories.menu_item("Salmon Plate", "dinner", popularity_score=8.0, cost_per_serving=4.0),
            factories.menu_item("Pancakes", "breakfast", popularity_score=6.0, cost_per_serving=1.0),
        ],
    )


class TestSingleItemScenario:

    def test_one_lunch_item_without_history(self):
        store = RecordStore(menu=[
            factories.menu_item(
                "X",
                "lunch",
                popularity_score=10,
                cost_per_serving=1,
                shelf_life_hours=48,
                prep_difficulty="easy",
                season_appropriateness="all_season",
            )
        ])
        result = PlannerService(store).optimize_menu(PlannerRequest(
            date="2024-06-01", estimated_students=1000, target_categories=["lunch"],
        ))

        assert len(result["recommended_menu"]) == 1
        item = result["recommended_menu"][0]
        assert item["menu_item"] == "X"
        # 1000 students * popularity 10/10 * lunch demand 0.8 * 0.3
        assert item["recommended_quantity"] == 240
        assert result["total_cost"] == 240
        # no history: lunch is not in the category defaults
        assert item["expected_waste"] == pytest.approx(240 * 0.15)


class TestOptimizeMenu:

    def test_only_target_categories(self):
        result = PlannerService(_catalog_store()).optimize_menu(PlannerRequest(
            date="2024-03-11", estimated_students=500, target_categories=["lunch"],
        ))
        categories = {r["category"] for r in result["recommended_menu"]}
        assert categories == {"lunch"}

    def test_avoid_items(self):
        result = PlannerService(_catalog_store()).optimize_menu(PlannerRequest(
            date="2024-03-11",
            estimated_students=500,
            target_categories=["lunch", "dinner"],
            avoid_items=["Veggie Wrap"],
        ))
        names = [r["menu_item"] for r in result["recommended_menu"]]
        assert "Veggie Wrap" not in names
        assert set(names) == {"Chicken Burrito", "Salmon Plate"}

    def test_budget_is_respected(self):
        service = PlannerService(_catalog_store())
        request = PlannerRequest(
            date="2024-03-11",
            estimated_students=1000,
            target_categories=["lunch", "dinner"],
            budget_constraint=600,
        )
        result = service.optimize_menu(request)
        assert result["recommended_menu"]
        assert result["total_cost"] <= 600

    def test_no_candidates(self):
        result = PlannerService(_catalog_store()).optimize_menu(PlannerRequest(
            date="2024-03-11", estimated_students=500, target_categories=["brunch"],
        ))
        assert result["recommended_menu"] == []
        assert result["total_cost"] == 0
        assert result["waste_percentage"] == 0

    def test_history_adjusts_quantity(self):
        history = [
            factories.production("Chicken Burrito", d, 20.0)
            for d in factories.daily_dates("2024-03-01", 5)
        ]
        result = PlannerService(_catalog_store(production=history)).optimize_menu(PlannerRequest(
            date="2024-03-11", estimated_students=1000, target_categories=["lunch"],
        ))
        burrito = next(r for r in result["recommended_menu"] if r["menu_item"] == "Chicken Burrito")
        # base 1000 * 0.9 * 0.8 * 0.3 = 216, waste adjustment 0.8
        assert burrito["recommended_quantity"] == 173
        assert burrito["expected_waste"] == pytest.approx(173 * 0.2)
        assert "adjusted for waste reduction" in burrito["reasoning"]

    def test_nutritional_balance_and_risks(self):
        result = PlannerService(_catalog_store()).optimize_menu(PlannerRequest(
            date="2024-03-11", estimated_students=500, target_categories=["lunch", "dinner"],
        ))
        balance = result["nutritional_balance"]
        assert balance["protein_items"] == 2  # chicken, salmon
        assert balance["carb_items"] == 1  # burrito
        assert balance["vegetable_items"] == 1  # veggie
        risks = result["risk_assessment"]
        assessed = risks["safe_items"] + risks["high_risk_items"]
        assert sorted(assessed) == ["Chicken Burrito", "Salmon Plate", "Veggie Wrap"]

    def test_weather_considerations(self):
        store = _catalog_store(external=[
            factories.external("2024-03-11", weather_condition="Rainy", temperature=45),
        ])
        result = PlannerService(store).optimize_menu(PlannerRequest(
            date="2024-03-11", estimated_students=500, target_categories=["lunch"],
        ))
        weather = result["risk_assessment"]["weather_considerations"]
        assert "Rainy weather may reduce foot traffic" in weather
        assert "Cold weather increases demand for hot items" in weather


class TestScoring:

    def test_season_for_month(self):
        assert season_for_month(0) == "winter"
        assert season_for_month(3) == "spring"
        assert season_for_month(6) == "summer"
        assert season_for_month(9) == "fall"
        assert season_for_month(11) == "winter"

    def test_season_score(self):
        assert PlannerService._season_score("summer", "2024-07-01") == 10
        assert PlannerService._season_score("all_season", "2024-07-01") == 8
        assert PlannerService._season_score("winter", "2024-07-01") == 5

    def test_day_adjustment_is_clamped(self):
        history = [
            factories.production("Soup", "2024-03-04", 40.0),  # Monday
            factories.production("Soup", "2024-03-05", 2.0),
            factories.production("Soup", "2024-03-06", 2.0),
        ]
        assert PlannerService._day_adjustment(history, "2024-03-11") == 0.5
        assert PlannerService._day_adjustment(history, "2024-03-10") == 1.0


class TestCatalogViews:

    def test_menu_suggestions_filters(self, record_store):
        service = PlannerService(record_store)
        names = [i.dish_name for i in service.menu_suggestions(dietary_restrictions=["Gluten"])]
        assert names == ["Grilled Chicken", "Beef Stew"]

        cheap = service.menu_suggestions(cost_limit=2.0)
        assert {i.dish_name for i in cheap} == {"Grilled Chicken", "Veggie Pasta"}

    def test_category_insights(self, record_store):
        insights = PlannerService(record_store).category_insights()
        assert [c["category"] for c in insights] == ["lunch", "dinner"]
        lunch = insights[0]
        assert lunch["item_count"] == 2
        assert lunch["avg_popularity"] == pytest.approx(7.5)
