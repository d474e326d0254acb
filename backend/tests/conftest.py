import os
import asyncio
import tempfile

# fisio 모듈을 import 하기 전에 환경을 고정한다
_tmpdir = tempfile.mkdtemp(prefix="fisio-tests-")
os.environ["ASYNC_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ.pop("KAFKA_BOOTSTRAP", None)
os.environ.pop("SMTP_HOST", None)

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from fisio.db import Base, get_db
from fisio.models import Identity, UserProfile
from fisio.main import app

engine = create_async_engine(os.environ["ASYNC_DATABASE_URL"], poolclass=NullPool)
TestingSessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

PASSWORD = "secret123"
EMERGENCY_CONTACT = {"contactoEmergenciaNombre": "Luis", "contactoEmergenciaTelefono": "555-0101"}


async def override_get_db():
    async with TestingSessionLocal() as session:
        yield session


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def client():
    asyncio.run(_reset_schema())
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def fetch_identity(email):
    async def _fetch():
        async with TestingSessionLocal() as session:
            res = await session.execute(select(Identity).where(Identity.email == email))
            return res.scalar_one_or_none()
    return asyncio.run(_fetch())


def count_profiles():
    async def _count():
        async with TestingSessionLocal() as session:
            return len((await session.execute(select(UserProfile))).scalars().all())
    return asyncio.run(_count())


def login(client, email, password=PASSWORD):
    r = client.post("/auth/login", data={"username": email, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


def register(client, email, nombre, rol, informacion_medica=None, password=PASSWORD):
    body = {"email": email, "nombre": nombre, "rol": rol, "password": password}
    if informacion_medica is not None:
        body["informacionMedica"] = informacion_medica
    r = client.post("/functions/createUser", json=body)
    assert r.status_code == 200, r.text
    return r.json()["uid"]


@pytest.fixture
def therapist(client):
    uid = register(client, "terapeuta@example.com", "Dra. Ramos", "terapeuta")
    return uid, login(client, "terapeuta@example.com")


@pytest.fixture
def patient(client):
    uid = register(client, "paciente@example.com", "Pedro", "paciente", informacion_medica=EMERGENCY_CONTACT)
    return uid, login(client, "paciente@example.com")


@pytest.fixture
def expediente(client, therapist, patient):
    _, t_headers = therapist
    patient_uid, _ = patient
    r = client.post("/expedientes", json={"pacienteUid": patient_uid}, headers=t_headers)
    assert r.status_code == 201, r.text
    return r.json()
