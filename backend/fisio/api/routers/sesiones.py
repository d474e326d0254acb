from __future__ import annotations
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Sesion, UserProfile
from fisio.schemas import SesionCreate, SesionCompletar, SesionPublic
from fisio.services.auth_service import get_current_profile, require_therapist
from fisio.services import change_feed
from fisio.services.session_lifecycle import (
    validate_schedule, complete_session, cancel_session, ScheduleValidationError, InvalidTransitionError
)
from fisio.api.routers.expedientes import get_expediente_for, ensure_owner

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sesiones", tags=["sesiones"])


async def _get_sesion_for(db: AsyncSession, sesion_id: str, profile: UserProfile) -> Sesion:
    sesion = await db.get(Sesion, sesion_id)
    if sesion is None:
        raise HTTPException(status_code=404, detail="Sesión no encontrada.")
    if profile.uid not in (sesion.terapeuta_uid, sesion.paciente_uid):
        raise HTTPException(status_code=403, detail="No tienes acceso a esta sesión.")
    return sesion


def _ensure_session_owner(sesion: Sesion, profile: UserProfile) -> None:
    # 환자는 조회만 가능하고 상태를 바꿀 수 없다
    if sesion.terapeuta_uid != profile.uid:
        raise HTTPException(status_code=403, detail="Solo el terapeuta a cargo puede modificar esta sesión.")


@router.post("", response_model=SesionPublic, status_code=status.HTTP_201_CREATED)
async def schedule_sesion(
    req: SesionCreate,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    expediente = await get_expediente_for(db, req.expediente_id, current)
    ensure_owner(expediente, current)

    try:
        validate_schedule(req.fecha, req.modalidad, req.ubicacion)
    except ScheduleValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    # 환자/치료사 uid 는 기록에서 복사 (같은 트랜잭션)
    sesion = Sesion(
        expediente_id=expediente.id,
        terapeuta_uid=expediente.terapeuta_uid,
        paciente_uid=expediente.paciente_uid,
        fecha=req.fecha,
        modalidad=req.modalidad,
        ubicacion=(req.ubicacion or "").strip() or None,
        nota=req.nota,
        estado="agendada",
    )
    db.add(sesion)
    await db.commit()
    await db.refresh(sesion)
    await change_feed.publish("sesiones", sesion.id)
    return sesion


@router.get("", response_model=List[SesionPublic])
async def list_sesiones(
    expediente_id: Optional[str] = Query(None, alias="expedienteId"),
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    column = Sesion.terapeuta_uid if current.rol == "terapeuta" else Sesion.paciente_uid
    q = select(Sesion).where(column == current.uid)
    if expediente_id is not None:
        q = q.where(Sesion.expediente_id == expediente_id)
    q = q.order_by(Sesion.fecha.desc())
    return (await db.execute(q)).scalars().all()


@router.get("/{sesion_id}", response_model=SesionPublic)
async def get_sesion(
    sesion_id: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    return await _get_sesion_for(db, sesion_id, current)


@router.post("/{sesion_id}/completar", response_model=SesionPublic)
async def complete_sesion(
    sesion_id: str,
    req: SesionCompletar,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    sesion = await _get_sesion_for(db, sesion_id, current)
    _ensure_session_owner(sesion, current)
    try:
        complete_session(sesion, req)
    except InvalidTransitionError as e:
        logger.info("Rejected transition: %s", e)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"La sesión ya está {e.estado}.")
    await db.commit()
    await db.refresh(sesion)
    await change_feed.publish("sesiones", sesion.id)
    return sesion


@router.post("/{sesion_id}/cancelar", response_model=SesionPublic)
async def cancel_sesion(
    sesion_id: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    sesion = await _get_sesion_for(db, sesion_id, current)
    _ensure_session_owner(sesion, current)
    try:
        cancel_session(sesion)
    except InvalidTransitionError as e:
        logger.info("Rejected transition: %s", e)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"La sesión ya está {e.estado}.")
    await db.commit()
    await db.refresh(sesion)
    await change_feed.publish("sesiones", sesion.id)
    return sesion
