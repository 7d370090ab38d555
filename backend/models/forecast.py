"""
Saved waste forecast
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from backend.utils.helpers import utc_now
from backend.database import Base


class Forecast(Base):
    __tablename__ = "forecasts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    strategy = Column(String, nullable=False, default="factor")
    input = Column(JSON, nullable=False)
    result = Column(JSON, nullable=False)

    created_at = Column(DateTime, default=utc_now)
