"""
Pickup request / optimized route plan
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from backend.utils.helpers import utc_now
from backend.database import Base


class Pickup(Base):
    __tablename__ = "pickups"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(String, nullable=False, default="Scheduled")  # Scheduled, Optimized, In Progress, Completed, Cancelled
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)
