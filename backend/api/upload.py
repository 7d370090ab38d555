"""
CSV upload API - format detection, validation and data quality insights
"""
import logging
from typing import List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel

from backend.config import get_settings
from backend.database import get_db
from backend.models.user import User
from backend.models.upload import Upload
from backend.api.auth import get_current_user
from backend.services.upload_service import UploadService, get_upload_service, parse_upload
from backend.utils.helpers import json_safe, utc_now
from backend.utils.validators import validate_csv_filename

logger = logging.getLogger(__name__)

router = APIRouter()


class UploadSummary(BaseModel):
    id: int
    filename: str
    file_type: str
    record_count: int
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class UploadList(BaseModel):
    uploads: List[UploadSummary]


async def _read_csv(file: UploadFile) -> tuple[list[str], list[list[str]]]:
    """Read an uploaded CSV into (headers, rows), raising 400/413 on bad input"""
    try:
        validate_csv_filename(file.filename)
    except ValueError as e:
        raise HTTPException(400, str(e))

    content = await file.read()
    max_size = get_settings().MAX_UPLOAD_SIZE
    if len(content) > max_size:
        raise HTTPException(413, f"File too large. Maximum size: {max_size // (1024 * 1024)}MB")

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(400, "File must be UTF-8 encoded text")

    headers, rows = parse_upload(text)
    if not headers:
        raise HTTPException(400, "No file uploaded or file is empty")
    return headers, rows


@router.post("/")
async def upload_csv(
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: UploadService = Depends(get_upload_service),
):
    """Categorize, validate and store an uploaded CSV file"""
    headers, rows = await _read_csv(file)

    categorization = service.categorize(headers)
    file_type = categorization["suggested_category"]
    validation = service.validate(headers, rows, file_type)
    if not validation["is_valid"]:
        logger.info(f"Rejected upload '{file.filename}' from user {current_user.id}")
        raise HTTPException(400, {
            "error": "CSV validation failed",
            "validation_result": validation,
            "categorization_result": categorization,
        })

    insights = json_safe(service.insights(headers, rows, file_type))
    records = [dict(zip(headers, values)) for values in rows]

    upload = Upload(
        user_id=current_user.id,
        filename=file.filename,
        file_type=file_type,
        record_count=len(records),
        records=records,
        metadata_json={
            "categorization": categorization,
            "validation": validation,
            "insights": insights,
            "upload_timestamp": utc_now().isoformat(),
        },
    )
    db.add(upload)
    await db.commit()
    await db.refresh(upload)

    logger.info(
        f"User {current_user.id} uploaded '{file.filename}' "
        f"({len(records)} {file_type} rows)"
    )
    return {
        "success": True,
        "id": upload.id,
        "filename": file.filename,
        "rows": len(records),
        "categorization": categorization,
        "validation": validation,
        "insights": insights,
    }


@router.get("/", response_model=UploadList)
async def list_uploads(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Upload)
        .where(Upload.user_id == current_user.id)
        .order_by(Upload.created_at.desc(), Upload.id.desc())
    )
    return {"uploads": result.scalars().all()}


@router.post("/validate")
async def validate_csv(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    service: UploadService = Depends(get_upload_service),
):
    """Dry run: categorize and validate without storing anything"""
    headers, rows = await _read_csv(file)
    categorization = service.categorize(headers)
    validation = service.validate(headers, rows, categorization["suggested_category"])
    return {"categorization": categorization, "validation": validation}


@router.get("/supported-formats")
async def supported_formats(
    current_user: User = Depends(get_current_user),
    service: UploadService = Depends(get_upload_service),
):
    return {"supported_formats": service.supported_formats()}


@router.get("/{upload_id}/insights")
async def upload_insights(
    upload_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    result = await db.execute(
        select(Upload).where(
            Upload.id == upload_id,
            Upload.user_id == current_user.id
        )
    )
    upload = result.scalar_one_or_none()
    if not upload:
        raise HTTPException(status_code=404, detail="Upload not found")

    metadata = upload.metadata_json or {}
    if metadata.get("insights"):
        return {"insights": metadata["insights"]}

    # Uploads stored without analysis metadata
    records = upload.records or []
    return {
        "insights": {
            "data_summary": {
                "total_records": len(records),
                "columns": len(records[0]) if records else 0,
                "completeness": 100,
            },
            "message": "Legacy upload - detailed insights not available",
        }
    }
