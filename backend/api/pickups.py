"""
Pickup tracking and route optimization API endpoints
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
from backend.models.pickup import Pickup
from backend.api.auth import get_current_user
from backend.services.tracker_service import PickupRequest, TrackerService, get_tracker_service
from backend.utils.helpers import json_safe, utc_now
from backend.utils.validators import missing_fields, validate_date

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("date", "available_locations", "available_drivers")


class PickupResponse(BaseModel):
    id: int
    user_id: int
    status: str
    details: Optional[dict]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class PickupCreate(BaseModel):
    status: str = "Scheduled"
    details: dict = {}


class PickupUpdate(BaseModel):
    status: Optional[str] = None
    details: Optional[dict] = None


class TimeConstraints(BaseModel):
    earliest_pickup: Optional[str] = None
    latest_pickup: Optional[str] = None


class OptimizeInput(BaseModel):
    date: Optional[str] = None
    available_locations: Optional[List[str]] = None
    available_drivers: Optional[List[str]] = None
    estimated_food_volume: float = 0
    priority_destinations: List[str] = []
    time_constraints: Optional[TimeConstraints] = None


@router.get("/", response_model=List[PickupResponse])
async def list_pickups(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Pickup)
        .where(Pickup.user_id == current_user.id)
        .order_by(Pickup.updated_at.desc(), Pickup.id.desc())
    )
    return result.scalars().all()


@router.post("/", response_model=PickupResponse)
async def create_pickup(
    data: PickupCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    pickup = Pickup(user_id=current_user.id, status=data.status, details=data.details)
    db.add(pickup)
    await db.commit()
    await db.refresh(pickup)
    return pickup


@router.patch("/{pickup_id}", response_model=PickupResponse)
async def update_pickup(
    pickup_id: int,
    data: PickupUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update a pickup's status and/or details"""
    result = await db.execute(
        select(Pickup).where(
            Pickup.id == pickup_id,
            Pickup.user_id == current_user.id
        )
    )
    pickup = result.scalar_one_or_none()
    if not pickup:
        raise HTTPException(status_code=404, detail="Pickup not found")

    for key, value in data.model_dump(exclude_none=True).items():
        setattr(pickup, key, value)

    pickup.updated_at = utc_now()
    await db.commit()
    await db.refresh(pickup)
    return pickup


@router.post("/optimize")
async def optimize_pickups(
    data: OptimizeInput,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: TrackerService = Depends(get_tracker_service),
):
    """Plan per-driver pickup routes and store the plan as an Optimized pickup"""
    payload = data.model_dump()
    missing = missing_fields(payload, REQUIRED_FIELDS)
    if missing:
        raise HTTPException(400, f"Missing required fields: {', '.join(missing)}")
    try:
        validate_date(data.date)
    except ValueError as e:
        raise HTTPException(400, str(e))

    constraints = data.time_constraints or TimeConstraints()
    request = PickupRequest(
        date=data.date,
        available_locations=data.available_locations,
        available_drivers=data.available_drivers,
        estimated_food_volume=data.estimated_food_volume,
        priority_destinations=data.priority_destinations,
        earliest_pickup=constraints.earliest_pickup,
        latest_pickup=constraints.latest_pickup,
    )
    try:
        result = json_safe(service.optimize_pickups(request))
    except Exception as e:
        logger.error(f"Pickup optimization failed for {data.date}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to optimize pickups")

    db.add(Pickup(
        user_id=current_user.id,
        status="Optimized",
        details={"optimization_input": payload, "optimization_result": result},
    ))
    await db.commit()
    return {"result": result}


@router.get("/location-insights/{location}")
async def location_insights(
    location: str,
    current_user: User = Depends(get_current_user),
    service: TrackerService = Depends(get_tracker_service),
):
    insights = service.location_insights(location)
    if insights is None:
        raise HTTPException(404, "No historical data found for this location")
    return {"insights": json_safe(insights)}


@router.get("/system-performance")
async def system_performance(
    current_user: User = Depends(get_current_user),
    service: TrackerService = Depends(get_tracker_service),
):
    return {"performance": json_safe(service.system_performance())}
