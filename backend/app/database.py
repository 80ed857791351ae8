import os
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
import redis.asyncio as redis
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# PostgreSQL Database
POSTGRES_URI = os.getenv("POSTGRES_URI")
if POSTGRES_URI:
    engine = create_async_engine(POSTGRES_URI, echo=os.getenv("SQL_ECHO", "0") == "1")
    AsyncSessionLocal = async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False
    )
else:
    engine = None
    AsyncSessionLocal = None

# Redis (geolocation cache + session revocation)
REDIS_URI = os.getenv("REDIS_URI")
if REDIS_URI:
    redis_client = redis.from_url(REDIS_URI)
else:
    redis_client = None


# Database dependency
async def get_db():
    if AsyncSessionLocal is not None:
        async with AsyncSessionLocal() as session:
            yield session
    else:
        yield None


# Redis dependency; None when Redis is not configured
def get_redis():
    return redis_client


async def create_tables() -> None:
    """Create every table registered on the shared declarative Base."""
    if engine is None:
        return
    from app.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
