"""
Impact entry - free-form impact data or a saved impact projection
"""
from sqlalchemy import Column, Integer, DateTime, ForeignKey, JSON
from backend.utils.helpers import utc_now
from backend.database import Base


class ImpactEntry(Base):
    __tablename__ = "impact_entries"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    data = Column(JSON, nullable=False)  # {"lbs", "co2", "meals"} or {"calculation_input", "calculation_result"}

    created_at = Column(DateTime, default=utc_now)
