from __future__ import annotations
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Avance, Expediente, UserProfile
from fisio.schemas import AvanceCreate, AvancePublic, ProgressSummary
from fisio.services.auth_service import get_current_profile, require_patient, require_therapist
from fisio.services import change_feed
from fisio.services.openai_client import generate_progress_summary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/avances", tags=["avances"])


async def _get_avance_for(db: AsyncSession, avance_id: str, profile: UserProfile) -> Avance:
    avance = await db.get(Avance, avance_id)
    if avance is None:
        raise HTTPException(status_code=404, detail="Avance no encontrado.")
    if profile.uid not in (avance.paciente_uid, avance.terapeuta_uid):
        raise HTTPException(status_code=403, detail="No tienes acceso a este avance.")
    return avance


@router.post("", response_model=AvancePublic, status_code=status.HTTP_201_CREATED)
async def create_avance(
    req: AvanceCreate,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_patient),
):
    """환자 자가 보고. 환자의 (가장 최근) 기록에서 치료사/기록 id 를 복사한다."""
    q = (
        select(Expediente)
        .where(Expediente.paciente_uid == current.uid)
        .order_by(Expediente.fecha_creacion.desc())
        .limit(1)
    )
    expediente = (await db.execute(q)).scalar_one_or_none()
    if expediente is None:
        raise HTTPException(status_code=404, detail="No tienes un expediente activo.")

    avance = Avance(
        **req.model_dump(),
        paciente_uid=current.uid,
        terapeuta_uid=expediente.terapeuta_uid,
        expediente_id=expediente.id,
        registrado_por=current.uid,
        tipo_registro="auto",
    )
    db.add(avance)
    await db.commit()
    await db.refresh(avance)
    await change_feed.publish("avances", avance.id)
    return avance


@router.get("", response_model=List[AvancePublic])
async def list_avances(
    expediente_id: Optional[str] = Query(None, alias="expedienteId"),
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    column = Avance.terapeuta_uid if current.rol == "terapeuta" else Avance.paciente_uid
    q = select(Avance).where(column == current.uid)
    if expediente_id is not None:
        q = q.where(Avance.expediente_id == expediente_id)
    q = q.order_by(Avance.fecha_registro.desc())
    return (await db.execute(q)).scalars().all()


@router.get("/{avance_id}", response_model=AvancePublic)
async def get_avance(
    avance_id: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    return await _get_avance_for(db, avance_id, current)


@router.post("/{avance_id}/resumen", response_model=ProgressSummary)
async def summarize_avance(
    avance_id: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    """치료사용 AI 요약 (단일 요청/응답, 재시도 없음)"""
    avance = await _get_avance_for(db, avance_id, current)
    payload = AvancePublic.model_validate(avance).model_dump(mode="json", by_alias=True)
    try:
        return await generate_progress_summary(payload)
    except RuntimeError as e:
        logger.error("Summary generation failed for avance %s: %s", avance_id, e)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="No se pudo generar el resumen.")
