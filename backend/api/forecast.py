"""
Waste forecast API endpoints
"""
import logging
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from backend.database import get_db
from backend.models.user import User
from backend.models.forecast import Forecast
from backend.api.auth import get_current_user
from backend.services.forecast_model import ForecastRequest
from backend.services.forecast_service import STRATEGIES, ForecastService, get_forecast_service
from backend.utils.helpers import json_safe
from backend.utils.validators import missing_fields, validate_choice, validate_date, validate_positive

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("menu_item", "date", "quantity_to_prepare")


class ForecastInput(BaseModel):
    menu_item: Optional[str] = None
    date: Optional[str] = None
    quantity_to_prepare: Optional[float] = None
    weather: Optional[str] = None
    temperature: Optional[float] = None
    special_event: Optional[str] = None
    estimated_students: Optional[float] = None


class ForecastResponse(BaseModel):
    id: int
    strategy: str
    input: dict
    result: dict
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ForecastHistory(BaseModel):
    forecasts: List[ForecastResponse]


@router.post("/")
async def create_forecast(
    data: ForecastInput,
    strategy: str = Query("factor"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ForecastService = Depends(get_forecast_service),
):
    """Predict waste for one menu item on one date and store the result"""
    payload = data.model_dump()
    missing = missing_fields(payload, REQUIRED_FIELDS)
    if missing:
        raise HTTPException(400, f"Missing required fields: {', '.join(missing)}")
    try:
        validate_date(data.date)
        validate_positive(data.quantity_to_prepare, "quantity_to_prepare")
        validate_choice(strategy, STRATEGIES, "strategy")
    except ValueError as e:
        raise HTTPException(400, str(e))

    try:
        result = json_safe(service.predict_waste(ForecastRequest(**payload), strategy=strategy))
    except Exception as e:
        logger.error(f"Forecast prediction failed for {data.menu_item}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to generate forecast prediction")

    db.add(Forecast(
        user_id=current_user.id,
        strategy=strategy,
        input=payload,
        result=result,
    ))
    await db.commit()
    return result


@router.get("/", response_model=ForecastHistory)
async def list_forecasts(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Last 10 forecasts of the current user"""
    result = await db.execute(
        select(Forecast)
        .where(Forecast.user_id == current_user.id)
        .order_by(Forecast.created_at.desc(), Forecast.id.desc())
        .limit(10)
    )
    return {"forecasts": result.scalars().all()}


@router.get("/insights/{menu_item}")
async def menu_item_insights(
    menu_item: str,
    current_user: User = Depends(get_current_user),
    service: ForecastService = Depends(get_forecast_service),
):
    insights = service.menu_item_insights(menu_item)
    if insights is None:
        raise HTTPException(404, "No historical data found for this menu item")
    return {"insights": json_safe(insights)}


@router.get("/model-insights/{menu_item}")
async def model_insights(
    menu_item: str,
    current_user: User = Depends(get_current_user),
    service: ForecastService = Depends(get_forecast_service),
):
    """Statistical view of one item: trend, weekly seasonality, best and worst day"""
    insights = service.model_insights(menu_item)
    if insights is None:
        raise HTTPException(404, "No historical data found for this menu item")
    return {"insights": json_safe(insights)}


@router.get("/system-insights")
async def system_insights(
    current_user: User = Depends(get_current_user),
    service: ForecastService = Depends(get_forecast_service),
):
    return {"insights": json_safe(service.system_insights())}


@router.post("/models/invalidate")
async def invalidate_models(
    menu_item: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: ForecastService = Depends(get_forecast_service),
):
    """Drop trained regression models (all, or one menu item's)"""
    removed = service.invalidate_models(menu_item)
    logger.info(f"User {current_user.id} invalidated {removed} forecast model(s)")
    return {"invalidated": removed}
