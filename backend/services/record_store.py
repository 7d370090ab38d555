"""
In-memory record store for the five CSV data sets.

Every file is read once, positionally (first line is the header), into
immutable records. Numeric cells are lenient: the leading number of the cell
is used and anything unparsable becomes 0, so a malformed row never aborts
a load. A missing or unreadable file is logged and yields no records.
"""
import csv
import io
import logging
import math
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Optional, TypeVar

from backend.config import get_settings

logger = logging.getLogger(__name__)

PRODUCTION_FILE = "daily_food_production.csv"
PICKUPS_FILE = "pickup_operations.csv"
EXTERNAL_FILE = "external_factors.csv"
MENU_FILE = "menu_planning.csv"
IMPACT_FILE = "impact_tracking.csv"

_NUMBER_PREFIX = re.compile(r"^[+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

T = TypeVar("T")


def leading_number(value: Optional[str]) -> Optional[float]:
    """Leading numeric prefix of a cell, None when the cell doesn't start with a number"""
    if value is None:
        return None
    match = _NUMBER_PREFIX.match(value.strip())
    if not match:
        return None
    return float(match.group(0).replace("Infinity", "inf"))


def parse_number(value: Optional[str]) -> float:
    """Leading numeric prefix of a cell, 0.0 when there is none"""
    number = leading_number(value)
    if number is None or math.isnan(number) or number == 0:
        return 0.0
    return number


def _cell(row: list[str], index: int) -> str:
    return row[index] if index < len(row) else ""


@dataclass(frozen=True)
class ProductionRecord:
    date: str
    day_of_week: str
    menu_item: str
    category: str
    quantity_prepared: float
    quantity_served: float
    quantity_wasted: float
    waste_percentage: float
    estimated_students: float
    weather: str
    special_event: str
    temperature: float

    @classmethod
    def from_row(cls, row: list[str]) -> "ProductionRecord":
        return cls(
            date=_cell(row, 0),
            day_of_week=_cell(row, 1),
            menu_item=_cell(row, 2),
            category=_cell(row, 3),
            quantity_prepared=parse_number(_cell(row, 4)),
            quantity_served=parse_number(_cell(row, 5)),
            quantity_wasted=parse_number(_cell(row, 6)),
            waste_percentage=parse_number(_cell(row, 7)),
            estimated_students=parse_number(_cell(row, 8)),
            weather=_cell(row, 9),
            special_event=_cell(row, 10),
            temperature=parse_number(_cell(row, 11)),
        )


@dataclass(frozen=True)
class PickupRecord:
    pickup_id: str
    date: str
    pickup_time: str
    source_location: str
    destination_partner: str
    food_type: str
    quantity_lbs: float
    distance_miles: float
    volunteer_driver: str
    transport_cost: float
    meals_equivalent: float
    co2_saved_lbs: float
    status: str

    @classmethod
    def from_row(cls, row: list[str]) -> "PickupRecord":
        return cls(
            pickup_id=_cell(row, 0),
            date=_cell(row, 1),
            pickup_time=_cell(row, 2),
            source_location=_cell(row, 3),
            destination_partner=_cell(row, 4),
            food_type=_cell(row, 5),
            quantity_lbs=parse_number(_cell(row, 6)),
            distance_miles=parse_number(_cell(row, 7)),
            volunteer_driver=_cell(row, 8),
            transport_cost=parse_number(_cell(row, 9)),
            meals_equivalent=parse_number(_cell(row, 10)),
            co2_saved_lbs=parse_number(_cell(row, 11)),
            status=_cell(row, 12),
        )


@dataclass(frozen=True)
class ExternalFactorRecord:
    date: str
    day_of_week: str
    month: str
    is_weekend: bool
    is_holiday: bool
    holiday_name: str
    weather_condition: str
    temperature: float
    precipitation: float
    campus_event: str
    student_population_factor: float
    semester_status: str
    local_event: str

    @classmethod
    def from_row(cls, row: list[str]) -> "ExternalFactorRecord":
        return cls(
            date=_cell(row, 0),
            day_of_week=_cell(row, 1),
            month=_cell(row, 2),
            is_weekend=_cell(row, 3) == "True",
            is_holiday=_cell(row, 4) == "True",
            holiday_name=_cell(row, 5),
            weather_condition=_cell(row, 6),
            temperature=parse_number(_cell(row, 7)),
            precipitation=parse_number(_cell(row, 8)),
            campus_event=_cell(row, 9),
            student_population_factor=parse_number(_cell(row, 10)),
            semester_status=_cell(row, 11),
            local_event=_cell(row, 12),
        )


@dataclass(frozen=True)
class MenuItemRecord:
    week_start_date: str
    menu_category: str
    dish_name: str
    dish_type: str
    prep_time: float
    cost_per_serving: float
    selling_price: float
    shelf_life_hours: float
    popularity_score: float
    nutritional_category: str
    season_appropriateness: str
    prep_difficulty: str
    equipment_needed: str
    allergens: str

    @classmethod
    def from_row(cls, row: list[str]) -> "MenuItemRecord":
        return cls(
            week_start_date=_cell(row, 0),
            menu_category=_cell(row, 1),
            dish_name=_cell(row, 2),
            dish_type=_cell(row, 3),
            prep_time=parse_number(_cell(row, 4)),
            cost_per_serving=parse_number(_cell(row, 5)),
            selling_price=parse_number(_cell(row, 6)),
            shelf_life_hours=parse_number(_cell(row, 7)),
            popularity_score=parse_number(_cell(row, 8)),
            nutritional_category=_cell(row, 9),
            season_appropriateness=_cell(row, 10),
            prep_difficulty=_cell(row, 11),
            equipment_needed=_cell(row, 12),
            allergens=_cell(row, 13),
        )


@dataclass(frozen=True)
class ImpactRecord:
    date: str
    day_of_week: str
    food_cost: float
    food_waste_cost: float
    food_rescued_lbs: float
    money_saved: float
    co2_avoided: float
    meals_provided: float
    volunteer_hours: float
    transport_costs: float
    operational_savings: float
    waste_disposal_cost_avoided: float
    active_partner_orgs: float
    community_impact_score: float

    @classmethod
    def from_row(cls, row: list[str]) -> "ImpactRecord":
        return cls(
            date=_cell(row, 0),
            day_of_week=_cell(row, 1),
            food_cost=parse_number(_cell(row, 2)),
            food_waste_cost=parse_number(_cell(row, 3)),
            food_rescued_lbs=parse_number(_cell(row, 4)),
            money_saved=parse_number(_cell(row, 5)),
            co2_avoided=parse_number(_cell(row, 6)),
            meals_provided=parse_number(_cell(row, 7)),
            volunteer_hours=parse_number(_cell(row, 8)),
            transport_costs=parse_number(_cell(row, 9)),
            operational_savings=parse_number(_cell(row, 10)),
            waste_disposal_cost_avoided=parse_number(_cell(row, 11)),
            active_partner_orgs=parse_number(_cell(row, 12)),
            community_impact_score=parse_number(_cell(row, 13)),
        )


def parse_csv_text(text: str) -> list[list[str]]:
    """Split CSV text into trimmed rows, dropping blank lines"""
    rows = []
    for row in csv.reader(io.StringIO(text.strip())):
        if not row or all(not cell.strip() for cell in row):
            continue
        rows.append([cell.strip() for cell in row])
    return rows


def _load(file_path: str, factory: Callable[[list[str]], T]) -> list[T]:
    try:
        with open(file_path, "r", encoding="utf-8-sig") as f:
            rows = parse_csv_text(f.read())
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        logger.error(f"Error loading {file_path}: {e}")
        return []

    records = [factory(row) for row in rows[1:]]
    logger.debug(f"Loaded {len(records)} records from {file_path}")
    return records


def load_production(file_path: str) -> list[ProductionRecord]:
    return _load(file_path, ProductionRecord.from_row)


def load_pickups(file_path: str) -> list[PickupRecord]:
    return _load(file_path, PickupRecord.from_row)


def load_external_factors(file_path: str) -> list[ExternalFactorRecord]:
    return _load(file_path, ExternalFactorRecord.from_row)


def load_menu(file_path: str) -> list[MenuItemRecord]:
    return _load(file_path, MenuItemRecord.from_row)


def load_impact(file_path: str) -> list[ImpactRecord]:
    return _load(file_path, ImpactRecord.from_row)


class RecordStore:
    """Read-only bundle of every loaded record set"""

    def __init__(
        self,
        production: Optional[list[ProductionRecord]] = None,
        pickups: Optional[list[PickupRecord]] = None,
        external: Optional[list[ExternalFactorRecord]] = None,
        menu: Optional[list[MenuItemRecord]] = None,
        impact: Optional[list[ImpactRecord]] = None,
    ):
        self.production = tuple(production or ())
        self.pickups = tuple(pickups or ())
        self.external = tuple(external or ())
        self.menu = tuple(menu or ())
        self.impact = tuple(impact or ())

    @classmethod
    def from_directory(cls, data_dir: str) -> "RecordStore":
        store = cls(
            production=load_production(os.path.join(data_dir, PRODUCTION_FILE)),
            pickups=load_pickups(os.path.join(data_dir, PICKUPS_FILE)),
            external=load_external_factors(os.path.join(data_dir, EXTERNAL_FILE)),
            menu=load_menu(os.path.join(data_dir, MENU_FILE)),
            impact=load_impact(os.path.join(data_dir, IMPACT_FILE)),
        )
        logger.info(
            f"Record store loaded from {data_dir}: "
            f"{len(store.production)} production, {len(store.pickups)} pickups, "
            f"{len(store.external)} external, {len(store.menu)} menu, {len(store.impact)} impact"
        )
        return store

    def production_for(self, menu_item: str) -> list[ProductionRecord]:
        return [r for r in self.production if r.menu_item == menu_item]

    def external_for(self, date: str) -> Optional[ExternalFactorRecord]:
        return next((e for e in self.external if e.date == date), None)

    def date_range(self) -> Optional[dict]:
        """Earliest and latest production date"""
        dates = sorted(r.date for r in self.production)
        if not dates:
            return None
        return {"start": dates[0], "end": dates[-1]}

    def menu_items(self) -> list[str]:
        return sorted({r.menu_item for r in self.production})

    def categories(self) -> list[str]:
        return sorted({r.category for r in self.production})


@lru_cache()
def get_record_store() -> RecordStore:
    return RecordStore.from_directory(get_settings().DATA_DIR)
