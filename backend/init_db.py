#!/usr/bin/env python3
"""
Database initialization script for the location risk engine.
Creates all tables in PostgreSQL and, when ADMIN_EMAIL / ADMIN_PASSWORD are
set, an admin account for the review endpoints.
"""
import asyncio
import os
from dotenv import load_dotenv
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession

# Load environment variables
load_dotenv()

from app.models import Base, User
from app.services.password_service import hash_password


async def create_admin_user(session: AsyncSession):
    """Create the admin account from ADMIN_EMAIL / ADMIN_PASSWORD if missing"""
    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if not email or not password:
        print("ℹ️  ADMIN_EMAIL / ADMIN_PASSWORD not set, skipping admin user")
        return

    result = await session.execute(select(User.id).where(User.email == email.lower()))
    existing = result.scalar_one_or_none()
    if existing:
        print(f"✅ Admin user already exists with ID: {existing}")
        return

    admin = User(
        name=os.getenv("ADMIN_NAME", "Administrator"),
        email=email.lower(),
        phone=None,
        country=os.getenv("ADMIN_COUNTRY", "KE").upper(),
        password_hash=hash_password(password),
        role="admin",
    )
    session.add(admin)
    try:
        await session.commit()
    except SQLAlchemyError as e:
        print(f"❌ Error creating admin user: {e}")
        await session.rollback()
        return
    await session.refresh(admin)
    print(f"✅ Created admin user with ID: {admin.id}")


async def create_tables():
    """Create all database tables"""

    postgres_uri = os.getenv("POSTGRES_URI")
    if not postgres_uri:
        print("❌ POSTGRES_URI not found in environment variables")
        return

    print("🔌 Connecting to database...")
    engine = create_async_engine(postgres_uri, echo=os.getenv("SQL_ECHO", "0") == "1")

    try:
        print("📝 Creating tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print(f"✅ Tables ready: {', '.join(sorted(Base.metadata.tables))}")

        async with AsyncSession(engine) as session:
            await create_admin_user(session)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    print("🚀 Initializing location risk database...")
    asyncio.run(create_tables())
    print("🎉 Database initialization complete!")
