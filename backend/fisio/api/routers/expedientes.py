from __future__ import annotations
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Expediente, UserProfile
from fisio.schemas import ExpedienteCreate, ExpedienteUpdate, ExpedientePublic
from fisio.services.auth_service import get_current_profile, require_therapist
from fisio.services import change_feed

router = APIRouter(prefix="/expedientes", tags=["expedientes"])


async def get_expediente_for(db: AsyncSession, expediente_id: str, profile: UserProfile) -> Expediente:
    """(헬퍼) 담당 치료사 또는 해당 환자만 기록에 접근할 수 있다."""
    expediente = await db.get(Expediente, expediente_id)
    if expediente is None:
        raise HTTPException(status_code=404, detail="Expediente no encontrado.")
    if profile.uid not in (expediente.terapeuta_uid, expediente.paciente_uid):
        raise HTTPException(status_code=403, detail="No tienes acceso a este expediente.")
    return expediente


def ensure_owner(expediente: Expediente, profile: UserProfile) -> None:
    if expediente.terapeuta_uid != profile.uid:
        raise HTTPException(status_code=403, detail="Solo el terapeuta a cargo puede modificar este expediente.")


@router.post("", response_model=ExpedientePublic, status_code=status.HTTP_201_CREATED)
async def create_expediente(
    req: ExpedienteCreate,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    paciente = await db.get(UserProfile, req.paciente_uid)
    if paciente is None or paciente.rol != "paciente":
        raise HTTPException(status_code=404, detail="Paciente no encontrado.")

    expediente = Expediente(
        paciente_uid=paciente.uid,
        terapeuta_uid=current.uid,
        descripcion=req.descripcion,
    )
    db.add(expediente)
    await db.commit()
    await db.refresh(expediente)
    await change_feed.publish("expedientes", expediente.id)
    return expediente


@router.get("", response_model=List[ExpedientePublic])
async def list_expedientes(
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    """치료사: 본인이 담당하는 기록 / 환자: 본인의 기록"""
    column = Expediente.terapeuta_uid if current.rol == "terapeuta" else Expediente.paciente_uid
    q = select(Expediente).where(column == current.uid).order_by(Expediente.fecha_creacion.desc())
    return (await db.execute(q)).scalars().all()


@router.get("/{expediente_id}", response_model=ExpedientePublic)
async def get_expediente(
    expediente_id: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    return await get_expediente_for(db, expediente_id, current)


@router.patch("/{expediente_id}", response_model=ExpedientePublic)
async def update_expediente(
    expediente_id: str,
    req: ExpedienteUpdate,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    expediente = await get_expediente_for(db, expediente_id, current)
    ensure_owner(expediente, current)

    update_data = req.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="No hay cambios para guardar.")
    # last-write-wins: 동시 수정은 덮어쓴다
    for field, value in update_data.items():
        setattr(expediente, field, value)
    await db.commit()
    await db.refresh(expediente)
    await change_feed.publish("expedientes", expediente.id)
    return expediente
