"""
Main FastAPI application
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select

from backend.config import get_settings
from backend.database import engine, AsyncSessionLocal, create_tables
from backend.models import User
from backend.api.auth import get_password_hash
from backend.api import auth, forecast, planner, pickups, impact, dashboard, upload
from backend.services.record_store import get_record_store
from backend.utils.logger import configure_logging

settings = get_settings()
configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await create_tables()
    logger.info("Database tables created")

    # Seed default admin user
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == settings.ADMIN_EMAIL))
        if not result.scalar_one_or_none():
            session.add(User(
                email=settings.ADMIN_EMAIL,
                full_name="ReFood Admin",
                hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
                is_admin=True,
            ))
            await session.commit()
            logger.info("Created default admin user")

    # Load the CSV data sets once up front instead of on the first request
    store = get_record_store()
    if not store.production:
        logger.warning(f"No production records found in {settings.DATA_DIR}")

    yield

    await engine.dispose()

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(forecast.router, prefix="/api/forecast", tags=["Forecast"])
app.include_router(planner.router, prefix="/api/planner", tags=["Planner"])
app.include_router(pickups.router, prefix="/api/pickups", tags=["Pickups"])
app.include_router(impact.router, prefix="/api/impact", tags=["Impact"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(upload.router, prefix="/api/upload", tags=["Upload"])


@app.get("/")
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
