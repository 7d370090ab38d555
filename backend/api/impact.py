"""
Impact tracking and projection API endpoints
"""
import logging
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from backend.database import get_db
from backend.models.user import User
from backend.models.impact_entry import ImpactEntry
from backend.api.auth import get_current_user
from backend.services.impact_service import (
    PERIOD_MULTIPLIERS,
    ImpactRequest,
    ImpactService,
    get_impact_service,
)
from backend.utils.helpers import json_safe
from backend.utils.validators import validate_choice, validate_date

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_COMPARISON_PERIODS = "2024-01,2024-02,2024-03"


class ImpactEntryResponse(BaseModel):
    id: int
    user_id: int
    data: dict
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ImpactEntryCreate(BaseModel):
    data: dict


class InterventionScenarios(BaseModel):
    waste_reduction_target: Optional[float] = None
    pickup_efficiency_improvement: Optional[float] = None
    cost_optimization_target: Optional[float] = None


class ImpactInput(BaseModel):
    projection_period: Optional[str] = None
    intervention_scenarios: Optional[InterventionScenarios] = None
    baseline_date: Optional[str] = None


@router.get("/", response_model=List[ImpactEntryResponse])
async def list_impact_entries(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(ImpactEntry)
        .where(ImpactEntry.user_id == current_user.id)
        .order_by(ImpactEntry.created_at.desc(), ImpactEntry.id.desc())
    )
    return result.scalars().all()


@router.post("/", response_model=ImpactEntryResponse)
async def create_impact_entry(
    data: ImpactEntryCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Record free-form impact data, e.g. {"lbs": 40, "co2": 128, "meals": 100}"""
    entry = ImpactEntry(user_id=current_user.id, data=data.data)
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry


@router.post("/calculate")
async def calculate_impact(
    data: ImpactInput,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: ImpactService = Depends(get_impact_service),
):
    """Project impact metrics over a week, month, quarter or year"""
    if not data.projection_period:
        raise HTTPException(
            400, "Missing required field: projection_period (week, month, quarter, or year)"
        )
    try:
        validate_choice(data.projection_period, PERIOD_MULTIPLIERS, "projection_period")
        if data.baseline_date:
            validate_date(data.baseline_date)
    except ValueError as e:
        raise HTTPException(400, str(e))

    payload = data.model_dump()
    request = ImpactRequest(
        projection_period=data.projection_period,
        intervention_scenarios=payload["intervention_scenarios"],
        baseline_date=data.baseline_date,
    )
    try:
        result = json_safe(service.calculate_impact(request))
    except Exception as e:
        logger.error(f"Impact calculation failed: {e}", exc_info=True)
        raise HTTPException(500, "Failed to calculate impact projections")

    db.add(ImpactEntry(
        user_id=current_user.id,
        data={"calculation_input": payload, "calculation_result": result},
    ))
    await db.commit()
    return {"result": result}


@router.get("/comparison")
async def impact_comparison(
    periods: str = DEFAULT_COMPARISON_PERIODS,
    current_user: User = Depends(get_current_user),
    service: ImpactService = Depends(get_impact_service),
):
    """Per-period totals for comma separated YYYY-MM prefixes"""
    period_list = [p.strip() for p in periods.split(",") if p.strip()]
    return {"comparison": json_safe(service.historical_comparison(period_list))}


@router.get("/top-metrics")
async def top_metrics(
    current_user: User = Depends(get_current_user),
    service: ImpactService = Depends(get_impact_service),
):
    return {"metrics": json_safe(service.top_impact_metrics())}


@router.get("/benchmark")
async def benchmark(
    current_user: User = Depends(get_current_user),
    service: ImpactService = Depends(get_impact_service),
):
    return {"benchmark": json_safe(service.benchmark_comparison())}
