# /backend/fisio/main.py

from __future__ import annotations
import os
import logging
from dotenv import load_dotenv
load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from contextlib import asynccontextmanager

from fisio.config import CORS_ORIGINS, missing_settings
from fisio.db import get_db
from fisio.kafka import start_kafka, stop_kafka
from fisio.api.routers import auth, functions, usuarios, expedientes, sesiones, avances, galerias, cambios

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    missing = missing_settings()
    if missing:
        # 서비스는 비활성화되지만 프로세스는 계속 뜬다
        logger.error("Missing settings %s; identity and record services are disabled.", ", ".join(missing))
    await start_kafka()
    try:
        yield
    finally:
        await stop_kafka()

app = FastAPI(
    title="Fisio Tracking API",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(functions.router)
app.include_router(usuarios.router)
app.include_router(expedientes.router)
app.include_router(sesiones.router)
app.include_router(avances.router)
app.include_router(galerias.router)
app.include_router(cambios.router)


@app.get("/health")
async def health():
    missing = missing_settings()
    return {"ok": not missing, "missing": missing}

@app.get("/db-health")
async def db_health(db: AsyncSession = Depends(get_db)):
    # 간단한 ping
    result = await db.execute(text("SELECT 1"))
    return {"db": "ok", "result": result.scalar_one()}
