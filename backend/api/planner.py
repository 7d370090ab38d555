"""
Menu planner API endpoints
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
from backend.models.menu_plan import MenuPlan
from backend.api.auth import get_current_user
from backend.services.planner_service import PlannerRequest, PlannerService, get_planner_service
from backend.utils.helpers import json_safe
from backend.utils.validators import missing_fields, validate_date, validate_positive

logger = logging.getLogger(__name__)

router = APIRouter()

REQUIRED_FIELDS = ("date", "estimated_students", "target_categories")


class PlannerInput(BaseModel):
    date: Optional[str] = None
    estimated_students: Optional[float] = None
    target_categories: Optional[List[str]] = None
    budget_constraint: Optional[float] = None
    dietary_requirements: List[str] = []
    avoid_items: List[str] = []


class MenuPlanResponse(BaseModel):
    id: int
    input: dict
    result: dict
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class MenuPlanHistory(BaseModel):
    plans: List[MenuPlanResponse]


@router.post("/")
async def create_menu_plan(
    data: PlannerInput,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: PlannerService = Depends(get_planner_service),
):
    """Optimize a menu for one service date and store the plan"""
    payload = data.model_dump()
    missing = missing_fields(payload, REQUIRED_FIELDS)
    if missing:
        raise HTTPException(400, f"Missing required fields: {', '.join(missing)}")
    try:
        validate_date(data.date)
        validate_positive(data.estimated_students, "estimated_students")
    except ValueError as e:
        raise HTTPException(400, str(e))

    try:
        result = json_safe(service.optimize_menu(PlannerRequest(**payload)))
    except Exception as e:
        logger.error(f"Menu optimization failed for {data.date}: {e}", exc_info=True)
        raise HTTPException(500, "Failed to optimize menu")

    db.add(MenuPlan(user_id=current_user.id, input=payload, result=result))
    await db.commit()
    return {"result": result}


@router.get("/", response_model=MenuPlanHistory)
async def list_menu_plans(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(MenuPlan)
        .where(MenuPlan.user_id == current_user.id)
        .order_by(MenuPlan.created_at.desc(), MenuPlan.id.desc())
        .limit(10)
    )
    return {"plans": result.scalars().all()}


@router.get("/suggestions")
async def menu_suggestions(
    max_prep_time: Optional[float] = None,
    dietary_restrictions: Optional[str] = None,
    cost_limit: Optional[float] = None,
    current_user: User = Depends(get_current_user),
    service: PlannerService = Depends(get_planner_service),
):
    """Catalog items matching the constraints, most popular first.

    dietary_restrictions is a comma separated list of allergens to exclude.
    """
    restrictions = [r.strip() for r in (dietary_restrictions or "").split(",") if r.strip()]
    suggestions = service.menu_suggestions(
        max_prep_time=max_prep_time,
        dietary_restrictions=restrictions,
        cost_limit=cost_limit,
    )
    return {"suggestions": json_safe(suggestions)}


@router.get("/category-insights")
async def category_insights(
    current_user: User = Depends(get_current_user),
    service: PlannerService = Depends(get_planner_service),
):
    return {"insights": json_safe(service.category_insights())}
