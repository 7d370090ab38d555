"""
Uploaded CSV file - parsed records plus the analysis run at upload time
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from backend.utils.helpers import utc_now
from backend.database import Base


class Upload(Base):
    __tablename__ = "uploads"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    filename = Column(String, nullable=False)
    file_type = Column(String, nullable=False, default="unknown")  # detected data set format
    record_count = Column(Integer, default=0)
    records = Column(JSON, nullable=True)  # [{header: value}]
    metadata_json = Column("metadata", JSON, nullable=True)  # categorization, validation, insights

    created_at = Column(DateTime, default=utc_now)
