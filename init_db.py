"""Initialize database tables and the default admin user"""
import asyncio

from sqlalchemy import select

from backend.config import get_settings
from backend.database import AsyncSessionLocal, create_tables
from backend.models import User
from backend.api.auth import get_password_hash


async def init():
    settings = get_settings()
    await create_tables()
    print("Database tables created successfully.")

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(User).where(User.email == settings.ADMIN_EMAIL))
        if result.scalar_one_or_none():
            print(f"Admin user {settings.ADMIN_EMAIL} already exists.")
            return
        session.add(User(
            email=settings.ADMIN_EMAIL,
            full_name="ReFood Admin",
            hashed_password=get_password_hash(settings.ADMIN_PASSWORD),
            is_admin=True,
        ))
        await session.commit()

    print("\nDefault login:")
    print(f"  Email: {settings.ADMIN_EMAIL}")
    print(f"  Password: {settings.ADMIN_PASSWORD}")


if __name__ == "__main__":
    asyncio.run(init())
