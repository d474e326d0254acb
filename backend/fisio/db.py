import logging
import os
from dotenv import load_dotenv

load_dotenv()

from fastapi import HTTPException, status
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)

ASYNC_DB_URL = os.getenv("ASYNC_DATABASE_URL")

class Base(DeclarativeBase):
    pass

engine = None
SessionLocal = None

if ASYNC_DB_URL:
    engine = create_async_engine(ASYNC_DB_URL, echo=False, pool_pre_ping=True)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
else:
    logger.error("ASYNC_DATABASE_URL is not set; record store is disabled.")

async def get_db():
    if SessionLocal is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="El almacén de datos no está configurado.",
        )
    async with SessionLocal() as session:
        yield session
