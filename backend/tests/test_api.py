"""
API endpoint tests for all routes.
Uses in-memory SQLite + dependency-overridden FastAPI test client and record store.
"""
from backend.models.pickup import Pickup
from backend.models.upload import Upload

PRODUCTION_CSV = (
    "date,menu_item,category,quantity_prepared,quantity_wasted,waste_percentage\n"
    "2024-03-01,Soup,Soup,100,10,10\n"
    "2024-03-02,Soup,Soup,120,18,15\n"
)

FORECAST_INPUT = {"menu_item": "Grilled Chicken", "date": "2024-03-11", "quantity_to_prepare": 200}


def _csv_file(content, filename="production.csv"):
    return {"file": (filename, content.encode("utf-8"), "text/csv")}


# ===================== HEALTH / ROOT =====================


async def test_root(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


# ===================== AUTH =====================


async def test_login_success(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        data={"username": "test@hp.com", "password": "testpass123"},
    )
    assert r.status_code == 200
    assert "access_token" in r.json()


async def test_login_wrong_password(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        data={"username": "test@hp.com", "password": "wrong"},
    )
    assert r.status_code == 401


async def test_register_new_user(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/register",
        json={"email": "new@hp.com", "full_name": "New User", "password": "pass123"},
    )
    assert r.status_code == 200
    assert r.json()["email"] == "new@hp.com"
    assert r.json()["is_admin"] is False


async def test_register_duplicate_email(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/register",
        json={"email": "test@hp.com", "full_name": "Dup", "password": "pass123"},
    )
    assert r.status_code == 400


async def test_get_me(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json()["email"] == "test@hp.com"


async def test_protected_route_no_token(unauth_client, seed_data):
    r = await unauth_client.get("/api/auth/me")
    assert r.status_code == 401


async def test_forecast_requires_auth(unauth_client, seed_data):
    r = await unauth_client.post("/api/forecast/", json=FORECAST_INPUT)
    assert r.status_code == 401


async def test_invalid_token(unauth_client, seed_data):
    r = await unauth_client.get("/api/dashboard/", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


# ===================== FORECAST =====================


async def test_create_forecast_factor(client):
    r = await client.post("/api/forecast/", json=FORECAST_INPUT)
    assert r.status_code == 200
    data = r.json()
    assert data["model_accuracy"] == 0.85
    assert set(data["confidence_interval"]) == {"lower", "upper"}


async def test_create_forecast_regression(client):
    r = await client.post("/api/forecast/?strategy=regression", json=FORECAST_INPUT)
    assert r.status_code == 200
    assert "factors_influence" in r.json()


async def test_forecast_fallback_for_unknown_item(client):
    r = await client.post("/api/forecast/", json={**FORECAST_INPUT, "menu_item": "Mystery Dish"})
    assert r.status_code == 200
    assert r.json()["model_accuracy"] == 0.7


async def test_forecast_missing_fields(client):
    r = await client.post("/api/forecast/", json={"menu_item": "Grilled Chicken"})
    assert r.status_code == 400
    assert "quantity_to_prepare" in r.json()["detail"]


async def test_forecast_bad_date(client):
    r = await client.post("/api/forecast/", json={**FORECAST_INPUT, "date": "11/03/2024"})
    assert r.status_code == 400


async def test_forecast_negative_quantity(client):
    r = await client.post("/api/forecast/", json={**FORECAST_INPUT, "quantity_to_prepare": -5})
    assert r.status_code == 400


async def test_forecast_unknown_strategy(client):
    r = await client.post("/api/forecast/?strategy=neural", json=FORECAST_INPUT)
    assert r.status_code == 400


async def test_forecast_history(client):
    await client.post("/api/forecast/", json=FORECAST_INPUT)
    r = await client.get("/api/forecast/")
    assert r.status_code == 200
    forecasts = r.json()["forecasts"]
    assert len(forecasts) == 1
    assert forecasts[0]["strategy"] == "factor"
    assert forecasts[0]["input"]["menu_item"] == "Grilled Chicken"


async def test_menu_item_insights(client):
    r = await client.get("/api/forecast/insights/Grilled Chicken")
    assert r.status_code == 200
    assert r.json()["insights"]["total_occurrences"] == 10


async def test_menu_item_insights_not_found(client):
    r = await client.get("/api/forecast/insights/Nothing")
    assert r.status_code == 404


async def test_model_insights(client):
    r = await client.get("/api/forecast/model-insights/Grilled Chicken")
    assert r.status_code == 200
    assert "seasonality" in r.json()["insights"]


async def test_system_insights(client):
    r = await client.get("/api/forecast/system-insights")
    assert r.status_code == 200
    assert r.json()["insights"]["total_menu_items"] == 2


async def test_invalidate_models(client):
    await client.post("/api/forecast/?strategy=regression", json=FORECAST_INPUT)
    r = await client.post("/api/forecast/models/invalidate")
    assert r.status_code == 200
    assert r.json() == {"invalidated": 1}


# ===================== PLANNER =====================


async def test_create_menu_plan(client):
    r = await client.post("/api/planner/", json={
        "date": "2024-03-11",
        "estimated_students": 800,
        "target_categories": ["lunch"],
        "budget_constraint": 2000,
    })
    assert r.status_code == 200
    result = r.json()["result"]
    assert result["recommended_menu"]
    assert all(item["category"] == "lunch" for item in result["recommended_menu"])
    assert result["total_cost"] <= 2000


async def test_menu_plan_missing_fields(client):
    r = await client.post("/api/planner/", json={"date": "2024-03-11"})
    assert r.status_code == 400


async def test_menu_plan_negative_students(client):
    r = await client.post("/api/planner/", json={
        "date": "2024-03-11", "estimated_students": -10, "target_categories": ["lunch"],
    })
    assert r.status_code == 400


async def test_list_menu_plans(client):
    await client.post("/api/planner/", json={
        "date": "2024-03-11", "estimated_students": 800, "target_categories": ["dinner"],
    })
    r = await client.get("/api/planner/")
    assert r.status_code == 200
    assert len(r.json()["plans"]) == 1


async def test_menu_suggestions(client):
    r = await client.get("/api/planner/suggestions", params={"dietary_restrictions": "gluten, "})
    assert r.status_code == 200
    names = [s["dish_name"] for s in r.json()["suggestions"]]
    assert names == ["Grilled Chicken", "Beef Stew"]


async def test_category_insights(client):
    r = await client.get("/api/planner/category-insights")
    assert r.status_code == 200
    assert {c["category"] for c in r.json()["insights"]} == {"lunch", "dinner"}


# ===================== PICKUPS =====================


async def test_create_and_list_pickups(client):
    r = await client.post("/api/pickups/", json={"details": {"location": "Main Dining Hall"}})
    assert r.status_code == 200
    assert r.json()["status"] == "Scheduled"

    r = await client.get("/api/pickups/")
    assert r.status_code == 200
    assert len(r.json()) == 1


async def test_update_pickup(client):
    r = await client.post("/api/pickups/", json={})
    pickup_id = r.json()["id"]

    r = await client.patch(f"/api/pickups/{pickup_id}", json={"status": "Completed"})
    assert r.status_code == 200
    assert r.json()["status"] == "Completed"
    assert r.json()["updated_at"] is not None


async def test_update_pickup_not_found(client):
    r = await client.patch("/api/pickups/9999", json={"status": "Completed"})
    assert r.status_code == 404


async def test_optimize_pickups(client, db_session):
    r = await client.post("/api/pickups/optimize", json={
        "date": "2024-03-11",
        "available_locations": ["Main Dining Hall", "North Cafe"],
        "available_drivers": ["Alex"],
        "time_constraints": {"earliest_pickup": "12:00", "latest_pickup": "16:00"},
    })
    assert r.status_code == 200
    result = r.json()["result"]
    assert len(result["optimized_routes"]) == 1
    assert result["total_volume_rescued"] == 71

    saved = (await db_session.execute(Pickup.__table__.select())).fetchall()
    assert len(saved) == 1
    assert saved[0].status == "Optimized"


async def test_optimize_pickups_missing_drivers(client):
    r = await client.post("/api/pickups/optimize", json={
        "date": "2024-03-11", "available_locations": ["Main Dining Hall"], "available_drivers": [],
    })
    assert r.status_code == 400


async def test_location_insights(client):
    r = await client.get("/api/pickups/location-insights/North Cafe")
    assert r.status_code == 200
    assert r.json()["insights"]["most_common_destination"] == "Shelter One"


async def test_location_insights_not_found(client):
    r = await client.get("/api/pickups/location-insights/Nowhere")
    assert r.status_code == 404


async def test_system_performance(client):
    r = await client.get("/api/pickups/system-performance")
    assert r.status_code == 200
    assert r.json()["performance"]["total_operations"] == 10


# ===================== IMPACT =====================


async def test_create_and_list_impact_entries(client):
    r = await client.post("/api/impact/", json={"data": {"lbs": 40, "co2": 128, "meals": 100}})
    assert r.status_code == 200
    assert r.json()["data"]["lbs"] == 40

    r = await client.get("/api/impact/")
    assert r.status_code == 200
    assert len(r.json()) == 1


async def test_calculate_impact(client):
    r = await client.post("/api/impact/calculate", json={
        "projection_period": "quarter",
        "intervention_scenarios": {"waste_reduction_target": 15},
    })
    assert r.status_code == 200
    result = r.json()["result"]
    assert set(result) == {
        "current_metrics",
        "projected_metrics",
        "improvement_potential",
        "financial_summary",
        "environmental_summary",
        "social_summary",
    }

    r = await client.get("/api/impact/")
    assert r.json()[0]["data"]["calculation_input"]["projection_period"] == "quarter"


async def test_calculate_impact_missing_period(client):
    r = await client.post("/api/impact/calculate", json={})
    assert r.status_code == 400


async def test_calculate_impact_invalid_period(client):
    r = await client.post("/api/impact/calculate", json={"projection_period": "decade"})
    assert r.status_code == 400


async def test_calculate_impact_bad_baseline(client):
    r = await client.post("/api/impact/calculate", json={
        "projection_period": "year", "baseline_date": "yesterday",
    })
    assert r.status_code == 400


async def test_impact_comparison(client):
    r = await client.get("/api/impact/comparison", params={"periods": "2024-02,2024-03"})
    assert r.status_code == 200
    comparison = r.json()["comparison"]
    assert [c["period"] for c in comparison] == ["2024-02", "2024-03"]
    assert all(-20 <= c["percentage_change"] <= 20 for c in comparison)


async def test_top_metrics(client):
    r = await client.get("/api/impact/top-metrics")
    assert r.status_code == 200
    assert r.json()["metrics"]["period"] == "Last 30 days"


async def test_benchmark(client):
    r = await client.get("/api/impact/benchmark")
    assert r.status_code == 200
    assert "food_efficiency" in r.json()["benchmark"]["performance_vs_benchmark"]


# ===================== DASHBOARD =====================


async def test_dashboard(client):
    await client.post("/api/impact/", json={"data": {"lbs": 40, "co2": 128, "meals": 100}})
    await client.post("/api/impact/", json={"data": {"lbs": 10, "note": "partial"}})
    await client.post("/api/pickups/", json={})

    r = await client.get("/api/dashboard/")
    assert r.status_code == 200
    data = r.json()
    assert data["user_stats"] == {
        "uploads": 0,
        "pickups": 1,
        "totalLbs": 50,
        "totalCO2": 128,
        "totalMeals": 100,
    }
    assert set(data["ai_overview"]) == {"summary_stats", "recent_trends", "alerts", "quick_insights"}


async def test_dashboard_performance(client):
    r = await client.get("/api/dashboard/performance")
    assert r.status_code == 200
    assert r.json()["performance"]["pickup_efficiency"]["performance"] == "ahead"


async def test_dashboard_top_items(client):
    r = await client.get("/api/dashboard/top-items")
    assert r.status_code == 200
    assert r.json()["topItems"]["most_problematic_items"][0]["menu_item"] == "Veggie Pasta"


async def test_dashboard_system_status(client):
    r = await client.get("/api/dashboard/system-status")
    assert r.status_code == 200
    assert r.json()["systemStatus"]["system_health"]["api_status"] == "operational"


# ===================== UPLOAD =====================


async def test_upload_csv(client):
    r = await client.post("/api/upload/", files=_csv_file(PRODUCTION_CSV))
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert data["rows"] == 2
    assert data["categorization"]["suggested_category"] == "daily_production"
    assert data["insights"]["production_insights"]["avg_waste_percentage"] == 12.5

    r = await client.get("/api/upload/")
    uploads = r.json()["uploads"]
    assert len(uploads) == 1
    assert uploads[0]["file_type"] == "daily_production"
    assert uploads[0]["record_count"] == 2


async def test_upload_timestamp_is_utc(client, db_session):
    r = await client.post("/api/upload/", files=_csv_file(PRODUCTION_CSV))
    upload = await db_session.get(Upload, r.json()["id"])
    assert upload.metadata_json["upload_timestamp"].endswith("+00:00")


async def test_upload_insights(client):
    r = await client.post("/api/upload/", files=_csv_file(PRODUCTION_CSV))
    upload_id = r.json()["id"]

    r = await client.get(f"/api/upload/{upload_id}/insights")
    assert r.status_code == 200
    assert r.json()["insights"]["data_summary"]["total_records"] == 2


async def test_upload_insights_legacy(client, db_session, seed_data):
    upload = Upload(
        user_id=seed_data["user"].id,
        filename="old.csv",
        records=[{"date": "2024-01-01", "lbs": "40"}],
    )
    db_session.add(upload)
    await db_session.commit()
    await db_session.refresh(upload)

    r = await client.get(f"/api/upload/{upload.id}/insights")
    assert r.status_code == 200
    insights = r.json()["insights"]
    assert insights["data_summary"]["columns"] == 2
    assert insights["message"].startswith("Legacy upload")


async def test_upload_insights_not_found(client):
    r = await client.get("/api/upload/9999/insights")
    assert r.status_code == 404


async def test_upload_rejects_non_csv(client):
    r = await client.post("/api/upload/", files=_csv_file(PRODUCTION_CSV, "production.xlsx"))
    assert r.status_code == 400


async def test_upload_rejects_empty_file(client):
    r = await client.post("/api/upload/", files=_csv_file(""))
    assert r.status_code == 400


async def test_upload_rejects_invalid_rows(client):
    content = PRODUCTION_CSV + "not-a-date,Soup,Soup,100,10,10\n"
    r = await client.post("/api/upload/", files=_csv_file(content))
    assert r.status_code == 400
    detail = r.json()["detail"]
    assert detail["error"] == "CSV validation failed"
    assert detail["validation_result"]["statistics"]["invalid_rows"] == 1

    r = await client.get("/api/upload/")
    assert r.json()["uploads"] == []


async def test_validate_csv(client):
    r = await client.post("/api/upload/validate", files=_csv_file(PRODUCTION_CSV))
    assert r.status_code == 200
    assert r.json()["validation"]["is_valid"] is True


async def test_supported_formats(client):
    r = await client.get("/api/upload/supported-formats")
    assert r.status_code == 200
    assert len(r.json()["supported_formats"]) == 5
