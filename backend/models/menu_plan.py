"""
Saved menu plan
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON
from backend.utils.helpers import utc_now
from backend.database import Base


class MenuPlan(Base):
    __tablename__ = "menu_plans"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    input = Column(JSON, nullable=False)
    result = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=utc_now)
