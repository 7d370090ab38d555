"""
Generate a deterministic sample of the five CSV data sets.

    python -m scripts.generate_sample_data --days 90 --seed 42 --output ./data
"""
import argparse
import csv
import os
from datetime import date, timedelta

import numpy as np

from backend.config import get_settings
from backend.services.record_store import (
    EXTERNAL_FILE,
    IMPACT_FILE,
    MENU_FILE,
    PICKUPS_FILE,
    PRODUCTION_FILE,
)
from backend.utils.helpers import WEEKDAY_NAMES
from backend.utils.logger import get_logger

logger = get_logger(__name__)

MENU = [
    # dish, category, type, prep min, cost, price, shelf hours, popularity, nutrition, season, difficulty, equipment, allergens
    ("Grilled Chicken", "Protein", "Main", 35, 2.40, 6.50, 48, 8.5, "High Protein", "all_season", "Medium", "Grill", "none"),
    ("Beef Tacos", "Protein", "Main", 30, 2.10, 6.00, 24, 8.0, "High Protein", "all_season", "Easy", "Stove", "gluten"),
    ("Baked Salmon", "Protein", "Main", 25, 3.80, 8.50, 24, 7.0, "Omega-3", "spring", "Medium", "Oven", "fish"),
    ("Veggie Stir Fry", "Vegetarian", "Main", 20, 1.60, 5.50, 24, 6.5, "Vegetable", "summer", "Easy", "Wok", "soy"),
    ("Pasta Primavera", "Vegetarian", "Main", 25, 1.40, 5.00, 36, 7.5, "Carbohydrate", "spring", "Easy", "Stove", "gluten,dairy"),
    ("Lentil Soup", "Soup", "Side", 40, 0.80, 3.50, 72, 6.0, "Fiber", "winter", "Easy", "Stove", "none"),
    ("Tomato Bisque", "Soup", "Side", 30, 0.90, 3.50, 72, 6.5, "Vegetable", "fall", "Easy", "Stove", "dairy"),
    ("Caesar Salad", "Salad", "Side", 15, 1.20, 4.50, 12, 7.0, "Vegetable", "summer", "Easy", "None", "dairy,egg,fish"),
    ("Quinoa Bowl", "Salad", "Main", 20, 1.90, 6.00, 24, 6.8, "Whole Grain", "all_season", "Medium", "Stove", "none"),
    ("Chocolate Brownie", "Dessert", "Dessert", 45, 0.60, 2.50, 96, 8.8, "Sugar", "all_season", "Medium", "Oven", "gluten,dairy,egg"),
    ("Fruit Cup", "Dessert", "Dessert", 10, 0.90, 2.50, 24, 6.2, "Fruit", "summer", "Easy", "None", "none"),
]

WEATHER = ["sunny", "cloudy", "rainy", "stormy"]
WEATHER_WEIGHTS = [0.45, 0.30, 0.20, 0.05]
EVENTS = ["none", "exam_week", "sports_game", "orientation", "holiday", "graduation"]
EVENT_WEIGHTS = [0.80, 0.06, 0.06, 0.03, 0.03, 0.02]
WEATHER_WASTE = {"sunny": 1.0, "cloudy": 1.1, "rainy": 1.3, "stormy": 1.5}

LOCATIONS = ["Main Dining Hall", "North Campus Cafe", "Student Union", "Athletics Center"]
PARTNERS = ["Local Food Bank", "Community Shelter", "Youth Center", "Senior Center"]
DRIVERS = ["Alex", "Jordan", "Sam", "Taylor", "Riley"]
FOOD_TYPES = ["Prepared Meals", "Produce", "Bakery", "Mixed"]


def _write(path: str, header: list[str], rows: list[list]) -> None:
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    logger.info(f"Wrote {len(rows)} rows to {path}")


def generate(output_dir: str, days: int, seed: int, start: date) -> None:
    rng = np.random.default_rng(seed)
    settings = get_settings()
    os.makedirs(output_dir, exist_ok=True)
    dates = [start + timedelta(days=i) for i in range(days)]

    external, conditions = [], {}
    for d in dates:
        day_name = WEEKDAY_NAMES[(d.weekday() + 1) % 7]
        weather = str(rng.choice(WEATHER, p=WEATHER_WEIGHTS))
        event = str(rng.choice(EVENTS, p=EVENT_WEIGHTS))
        temperature = round(float(rng.normal(62, 12)), 1)
        conditions[d] = (weather, event, temperature)
        external.append([
            d.isoformat(), day_name, d.strftime("%B"),
            str(d.weekday() >= 5), str(event == "holiday"),
            "Campus Holiday" if event == "holiday" else "",
            weather, temperature, round(float(rng.uniform(0, 1)), 2) if weather in ("rainy", "stormy") else 0,
            event, round(float(rng.uniform(0.85, 1.1)), 2), "in_session", "",
        ])

    production = []
    for d in dates:
        weather, event, temperature = conditions[d]
        day_name = WEEKDAY_NAMES[(d.weekday() + 1) % 7]
        students = int(rng.integers(800, 1400))
        for dish in rng.choice(len(MENU), size=4, replace=False):
            name, category = MENU[dish][0], MENU[dish][1]
            prepared = int(rng.integers(60, 160))
            waste_pct = min(45.0, max(3.0, float(rng.normal(14, 5)) * WEATHER_WASTE[weather]))
            wasted = round(prepared * waste_pct / 100, 1)
            production.append([
                d.isoformat(), day_name, name, category, prepared,
                round(prepared - wasted, 1), wasted, round(waste_pct, 2),
                students, weather, event, temperature,
            ])

    pickups = []
    counter = 1
    for d in dates:
        for _ in range(int(rng.integers(1, 4))):
            lbs = round(float(rng.uniform(15, 90)), 1)
            miles = round(float(rng.uniform(2, 12)), 1)
            pickups.append([
                f"P{counter:05d}", d.isoformat(), f"{int(rng.integers(11, 19)):02d}:{int(rng.choice([0, 30])):02d}",
                str(rng.choice(LOCATIONS)), str(rng.choice(PARTNERS)), str(rng.choice(FOOD_TYPES)),
                lbs, miles, str(rng.choice(DRIVERS)), round(miles * 1.75, 2),
                round(lbs * settings.MEALS_PER_LB), round(lbs * settings.CO2_LBS_PER_LB, 1),
                str(rng.choice(["completed", "completed", "completed", "completed", "failed", "cancelled"])),
            ])
            counter += 1

    menu = [[start.isoformat(), row[1], row[0], *row[2:]] for row in MENU]

    impact = []
    for d in dates:
        day_pickups = [p for p in pickups if p[1] == d.isoformat() and p[12] == "completed"]
        rescued = sum(p[6] for p in day_pickups)
        transport = sum(p[9] for p in day_pickups)
        food_cost = round(float(rng.uniform(1800, 2600)), 2)
        impact.append([
            d.isoformat(), WEEKDAY_NAMES[(d.weekday() + 1) % 7], food_cost,
            round(food_cost * float(rng.uniform(0.08, 0.16)), 2), round(rescued, 1),
            round(rescued * settings.FOOD_VALUE_PER_LB, 2), round(rescued * settings.CO2_LBS_PER_LB, 1),
            round(rescued * settings.MEALS_PER_LB), round(float(rng.uniform(2, 8)), 1),
            round(transport, 2), round(float(rng.uniform(40, 120)), 2),
            round(rescued * 0.15, 2), len({p[4] for p in day_pickups}),
            round(float(rng.uniform(60, 90)), 1),
        ])

    _write(os.path.join(output_dir, PRODUCTION_FILE), [
        "date", "day_of_week", "menu_item", "category", "quantity_prepared", "quantity_served",
        "quantity_wasted", "waste_percentage", "estimated_students", "weather", "special_event",
        "temperature",
    ], production)
    _write(os.path.join(output_dir, PICKUPS_FILE), [
        "pickup_id", "date", "pickup_time", "source_location", "destination_partner", "food_type",
        "quantity_lbs", "distance_miles", "volunteer_driver", "transport_cost", "meals_equivalent",
        "co2_saved_lbs", "pickup_status",
    ], pickups)
    _write(os.path.join(output_dir, EXTERNAL_FILE), [
        "date", "day_of_week", "month", "is_weekend", "is_holiday", "holiday_name",
        "weather_condition", "temperature_f", "precipitation_inches", "campus_event",
        "student_population_factor", "semester_status", "local_event",
    ], external)
    _write(os.path.join(output_dir, MENU_FILE), [
        "week_start_date", "menu_category", "dish_name", "dish_type", "prep_time_minutes",
        "ingredient_cost_per_serving", "selling_price", "shelf_life_hours", "popularity_score",
        "nutritional_category", "season_appropriateness", "prep_difficulty", "equipment_needed",
        "allergens",
    ], menu)
    _write(os.path.join(output_dir, IMPACT_FILE), [
        "date", "day_of_week", "food_cost_daily", "food_waste_cost_daily", "food_rescued_lbs_daily",
        "money_saved_daily", "co2_emissions_avoided_lbs_daily", "meals_provided_to_community_daily",
        "volunteer_hours_daily", "transport_costs_daily", "operational_savings_daily",
        "waste_disposal_cost_avoided_daily", "active_partner_orgs", "community_impact_score_daily",
    ], impact)


def main():
    parser = argparse.ArgumentParser(description="Generate sample ReFood CSV data")
    parser.add_argument("--days", type=int, default=90)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--start", default="2024-01-01", help="first date, YYYY-MM-DD")
    parser.add_argument("--output", default=get_settings().DATA_DIR)
    args = parser.parse_args()

    generate(args.output, args.days, args.seed, date.fromisoformat(args.start))
    logger.info("Sample data generated")


if __name__ == "__main__":
    main()
