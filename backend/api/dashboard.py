"""
Dashboard API - user activity plus aggregated waste, pickup and impact analytics
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from backend.database import get_db
from backend.models.user import User
from backend.models.upload import Upload
from backend.models.pickup import Pickup
from backend.models.impact_entry import ImpactEntry
from backend.api.auth import get_current_user
from backend.services.dashboard_service import DashboardService, get_dashboard_service
from backend.utils.helpers import json_safe

logger = logging.getLogger(__name__)

router = APIRouter()


def _number(value) -> float:
    """Numeric value of a free-form impact field, 0 when absent or not a number"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


async def _user_stats(db: AsyncSession, user_id: int) -> dict:
    uploads = await db.execute(select(func.count(Upload.id)).where(Upload.user_id == user_id))
    pickups = await db.execute(select(func.count(Pickup.id)).where(Pickup.user_id == user_id))
    entries = await db.execute(select(ImpactEntry.data).where(ImpactEntry.user_id == user_id))

    total_lbs = total_co2 = total_meals = 0
    for data in entries.scalars().all():
        if not isinstance(data, dict):
            continue
        total_lbs += _number(data.get("lbs"))
        total_co2 += _number(data.get("co2"))
        total_meals += _number(data.get("meals"))

    return {
        "uploads": uploads.scalar() or 0,
        "pickups": pickups.scalar() or 0,
        "totalLbs": total_lbs,
        "totalCO2": total_co2,
        "totalMeals": total_meals,
    }


@router.get("/")
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    """User activity counters plus the system-wide overview"""
    user_stats = await _user_stats(db, current_user.id)
    try:
        overview = json_safe(service.overview())
    except Exception as e:
        logger.error(f"Dashboard overview failed: {e}", exc_info=True)
        raise HTTPException(500, "Failed to load dashboard data")

    return {"user_stats": user_stats, "ai_overview": overview}


@router.get("/performance")
async def get_performance(
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return {"performance": json_safe(service.performance_metrics())}


@router.get("/top-items")
async def get_top_items(
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    return {"topItems": json_safe(service.top_items_analysis())}


@router.get("/system-status")
async def get_system_status(
    current_user: User = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service),
):
    try:
        status = json_safe(service.system_status())
    except Exception as e:
        logger.error(f"System status failed: {e}", exc_info=True)
        raise HTTPException(500, "Failed to get system status")
    return {"systemStatus": status}
