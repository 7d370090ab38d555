"""
CSV upload analysis: format detection, row validation and data quality insights.

Uploaded files are matched against the five known data sets by header
names alone; nothing here touches the record store.
"""
import json
import logging
import math
from functools import lru_cache
from typing import Optional

from rapidfuzz.distance import Levenshtein

from backend.config import get_settings
from backend.services.record_store import leading_number, parse_csv_text
from backend.utils.helpers import mean, parse_date, round2, round_half_up

logger = logging.getLogger(__name__)

UNKNOWN_FORMAT = "unknown"
LOW_CONFIDENCE = 0.7
SIMILARITY_THRESHOLD = 0.7
MIN_FILLED_RATIO = 0.5
PREVIEW_ROWS = 5

REQUIRED_WEIGHT, OPTIONAL_WEIGHT, KEYWORD_WEIGHT = 0.6, 0.3, 0.1

FORMAT_PATTERNS = {
    "daily_production": {
        "required": ["date", "menu_item", "quantity"],
        "optional": ["category", "waste", "served", "weather"],
        "keywords": ["production", "menu", "waste", "served", "quantity"],
    },
    "pickup_operations": {
        "required": ["date", "location", "quantity"],
        "optional": ["pickup", "destination", "partner", "driver", "cost"],
        "keywords": ["pickup", "destination", "partner", "transport", "collection"],
    },
    "external_factors": {
        "required": ["date"],
        "optional": ["weather", "temperature", "holiday", "event", "student"],
        "keywords": ["weather", "temperature", "holiday", "event", "external"],
    },
    "menu_planning": {
        "required": ["dish", "category"],
        "optional": ["cost", "prep", "popularity", "nutrition", "allergen"],
        "keywords": ["menu", "dish", "recipe", "ingredient", "allergen"],
    },
    "impact_tracking": {
        "required": ["date"],
        "optional": ["cost", "saved", "rescued", "co2", "meals", "community"],
        "keywords": ["impact", "saved", "rescued", "co2", "meals", "community"],
    },
}

REQUIRED_COLUMNS = {
    "daily_production": ["date", "menu_item", "quantity_prepared", "quantity_served", "quantity_wasted"],
    "pickup_operations": ["date", "pickup_time", "source_location", "destination_partner", "quantity_lbs"],
    "external_factors": ["date", "weather_condition", "temperature_f"],
    "menu_planning": ["dish_name", "menu_category", "ingredient_cost_per_serving"],
    "impact_tracking": ["date", "food_rescued_lbs_daily", "money_saved_daily"],
}


def parse_upload(text: str) -> tuple[list[str], list[list[str]]]:
    """Split CSV text into (headers, data rows)"""
    rows = parse_csv_text(text)
    if not rows:
        return [], []
    return rows[0], rows[1:]


def similarity(a: str, b: str) -> float:
    """Normalized Levenshtein similarity in [0, 1]"""
    return Levenshtein.normalized_similarity(a, b)


def _overlaps(header: str, expected: str) -> bool:
    return header in expected or expected in header


def _is_valid_number(value: str) -> bool:
    return bool(value and value.strip()) and leading_number(value) is not None


class UploadService:
    """Stateless analyzer for uploaded CSV files"""

    def categorize(self, headers: list[str]) -> dict:
        normalized = [h.lower().strip() for h in headers]

        best = {
            "suggested_category": UNKNOWN_FORMAT,
            "confidence": 0,
            "reasoning": "",
            "column_mapping": {},
            "required_columns_missing": [],
        }
        for category, pattern in FORMAT_PATTERNS.items():
            confidence, reasoning = self._pattern_score(normalized, pattern)
            if confidence > best["confidence"]:
                best = {
                    "suggested_category": category,
                    "confidence": confidence,
                    "reasoning": reasoning,
                    "column_mapping": self._map_columns(normalized, pattern),
                    "required_columns_missing": [
                        req for req in pattern["required"]
                        if not any(_overlaps(h, req) for h in normalized)
                    ],
                }

        logger.debug(
            f"Upload categorized as {best['suggested_category']} "
            f"({best['confidence']:.2f} confidence)"
        )
        return best

    @staticmethod
    def _pattern_score(headers: list[str], pattern: dict) -> tuple[float, str]:
        required = [r for r in pattern["required"] if any(_overlaps(h, r) for h in headers)]
        optional = [o for o in pattern["optional"] if any(_overlaps(h, o) for h in headers)]
        keywords = [k for k in pattern["keywords"] if any(k in h for h in headers)]

        score = (
            len(required) / len(pattern["required"]) * REQUIRED_WEIGHT
            + len(optional) / len(pattern["optional"]) * OPTIONAL_WEIGHT
            + len(keywords) / len(pattern["keywords"]) * KEYWORD_WEIGHT
        )
        matches = required + optional
        return min(score, 1.0), f"Matched {len(matches)} relevant columns: {', '.join(matches)}"

    @staticmethod
    def _map_columns(headers: list[str], pattern: dict) -> dict[str, str]:
        mapping = {}
        for expected in pattern["required"] + pattern["optional"]:
            match = next(
                (
                    h for h in headers
                    if _overlaps(h, expected) or similarity(h, expected) > SIMILARITY_THRESHOLD
                ),
                None,
            )
            if match is not None:
                mapping[expected] = match
        return mapping

    def validate(
        self,
        headers: list[str],
        rows: list[list[str]],
        expected_category: Optional[str] = None,
    ) -> dict:
        errors, warnings, suggestions = [], [], []

        detected = expected_category
        if not detected:
            categorization = self.categorize(headers)
            detected = categorization["suggested_category"]
            if categorization["confidence"] < LOW_CONFIDENCE:
                warnings.append(
                    f"Low confidence ({round_half_up(categorization['confidence'] * 100)}%) "
                    f"in format detection. Please verify the data type."
                )

        if not rows:
            errors.append("CSV must contain at least a header row and one data row")
        if not headers:
            errors.append("No headers detected in CSV")

        valid_rows = invalid_rows = 0
        for line_number, values in enumerate(rows, start=2):
            if len(values) != len(headers):
                warnings.append(
                    f"Line {line_number}: Expected {len(headers)} columns, found {len(values)}"
                )
                invalid_rows += 1
            elif self._row_is_valid(values, headers, detected):
                valid_rows += 1
            else:
                invalid_rows += 1

        if detected != UNKNOWN_FORMAT:
            suggestions.append(f"Consider mapping columns to standard format for {detected} data")
        if invalid_rows > 0:
            suggestions.append("Review data format and fix validation errors before uploading")
        if valid_rows > 0 and invalid_rows == 0:
            suggestions.append("Data looks good! Ready for processing.")

        return {
            "is_valid": not errors and invalid_rows == 0,
            "errors": errors,
            "warnings": warnings,
            "suggestions": suggestions,
            "detected_format": detected,
            "preview_data": [_as_record(headers, values) for values in rows[:PREVIEW_ROWS]],
            "statistics": {
                "total_rows": len(rows),
                "valid_rows": valid_rows,
                "invalid_rows": invalid_rows,
                "columns_detected": headers,
            },
        }

    @staticmethod
    def _row_is_valid(values: list[str], headers: list[str], category: str) -> bool:
        filled = sum(1 for v in values if v.strip())
        if filled < len(headers) * MIN_FILLED_RATIO:
            return False
        if category != "daily_production":
            return True

        for header, value in zip(headers, values):
            name = header.lower()
            if "date" in name and parse_date(value) is None:
                return False
            if ("quantity" in name or "lbs" in name) and value and not _is_valid_number(value):
                return False
        return True

    def insights(self, headers: list[str], rows: list[list[str]], category: str) -> dict:
        records = [_as_record(headers, values) for values in rows]

        total_cells = len(records) * len(headers)
        filled = sum(1 for r in records for h in headers if r[h].strip())
        serialized = [json.dumps(r, sort_keys=True) for r in records]
        date_range = self._date_range(headers, records)

        insights = {
            "data_summary": {
                "total_records": len(records),
                "columns": len(headers),
                "date_range": date_range,
                "completeness": round_half_up(filled / total_cells * 100) if total_cells else 0,
            },
            "quality_assessment": {
                "missing_values": total_cells - filled,
                "duplicate_rows": len(serialized) - len(set(serialized)),
                "outliers": [],
                "consistency_issues": [],
            },
            "recommendations": [],
        }

        if category == "daily_production":
            insights["production_insights"] = self._production_insights(headers, records)
        elif category == "pickup_operations":
            insights["pickup_insights"] = self._pickup_insights(headers, records)

        recommendations = insights["recommendations"]
        if insights["data_summary"]["completeness"] < 80:
            recommendations.append("Consider filling missing values to improve data quality")
        duplicates = insights["quality_assessment"]["duplicate_rows"]
        if duplicates > 0:
            recommendations.append(f"Remove {duplicates} duplicate rows")
        if date_range and date_range["span_days"] > 365:
            recommendations.append(
                "Large date range detected - consider breaking into smaller chunks for better performance"
            )
        return insights

    @staticmethod
    def _date_range(headers: list[str], records: list[dict]) -> Optional[dict]:
        date_columns = [h for h in headers if "date" in h.lower() or "time" in h.lower()]
        if not date_columns:
            return None
        dates = [d for d in (parse_date(r[date_columns[0]]) for r in records) if d is not None]
        if not dates:
            return None
        start, end = min(dates), max(dates)
        return {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "span_days": (end - start).days,
        }

    @staticmethod
    def _numeric_column(headers: list[str], records: list[dict], *needles: str) -> Optional[list[float]]:
        column = next((h for h in headers if any(n in h.lower() for n in needles)), None)
        if column is None:
            return None
        values = [leading_number(r[column]) for r in records]
        return [v for v in values if v is not None and not math.isnan(v)]

    def _production_insights(self, headers: list[str], records: list[dict]) -> dict:
        waste = self._numeric_column(headers, records, "waste")
        if not waste:
            return {"message": "No waste data detected for analysis"}
        avg = mean(waste)
        return {
            "avg_waste_percentage": round2(avg),
            "high_waste_items_count": sum(1 for w in waste if w > avg * 1.5),
            "total_items_analyzed": len(waste),
        }

    def _pickup_insights(self, headers: list[str], records: list[dict]) -> dict:
        quantities = self._numeric_column(headers, records, "quantity", "lbs")
        if not quantities:
            return {"message": "No pickup quantity data detected for analysis"}
        settings = get_settings()
        total = sum(quantities)
        return {
            "total_food_rescued_lbs": round_half_up(total),
            "avg_pickup_size_lbs": round_half_up(total / len(quantities)),
            "total_pickups": len(quantities),
            "estimated_meals": round_half_up(total * settings.MEALS_PER_LB),
            "estimated_money_saved": round2(total * settings.FOOD_VALUE_PER_LB),
        }

    @staticmethod
    def supported_formats() -> list[dict]:
        return [
            {"format": name, "required_columns": list(columns)}
            for name, columns in REQUIRED_COLUMNS.items()
        ]

    @staticmethod
    def required_columns(file_format: str) -> list[str]:
        return list(REQUIRED_COLUMNS.get(file_format, []))


def _as_record(headers: list[str], values: list[str]) -> dict:
    return {h: values[i] if i < len(values) else "" for i, h in enumerate(headers)}


@lru_cache()
def get_upload_service() -> UploadService:
    return UploadService()
