from __future__ import annotations
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Galeria, GaleriaVideo, UserProfile, galeria_pacientes
from fisio.schemas import GaleriaCreate, GaleriaAsignacion, GaleriaPublic, GaleriaVideoSchema
from fisio.services.auth_service import get_current_profile, require_therapist
from fisio.services import change_feed

router = APIRouter(prefix="/galerias", tags=["galerias"])


def galeria_to_public(galeria: Galeria) -> GaleriaPublic:
    return GaleriaPublic(
        id=galeria.id,
        nombre=galeria.nombre,
        descripcion=galeria.descripcion,
        videos=[GaleriaVideoSchema(titulo=v.titulo, youtube_url=v.youtube_url) for v in galeria.videos],
        creada_por=galeria.creada_por,
        pacientes_asignados=[p.uid for p in galeria.pacientes],
        fecha_creacion=galeria.fecha_creacion,
    )


async def _load_patients(db: AsyncSession, uids: List[str]) -> List[UserProfile]:
    unique_uids = list(dict.fromkeys(uids))
    if not unique_uids:
        return []
    q = select(UserProfile).where(UserProfile.uid.in_(unique_uids), UserProfile.rol == "paciente")
    patients = (await db.execute(q)).scalars().all()
    if len(patients) != len(unique_uids):
        raise HTTPException(status_code=404, detail="Uno o más pacientes no existen.")
    return list(patients)


async def _get_galeria(db: AsyncSession, galeria_id: str) -> Galeria:
    galeria = await db.get(Galeria, galeria_id)
    if galeria is None:
        raise HTTPException(status_code=404, detail="Galería no encontrada.")
    return galeria


@router.post("", response_model=GaleriaPublic, status_code=status.HTTP_201_CREATED)
async def create_galeria(
    req: GaleriaCreate,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    pacientes = await _load_patients(db, req.pacientes_asignados)
    galeria = Galeria(
        nombre=req.nombre,
        descripcion=req.descripcion,
        creada_por=current.uid,
        videos=[
            GaleriaVideo(posicion=i, titulo=v.titulo, youtube_url=v.youtube_url)
            for i, v in enumerate(req.videos)
        ],
        pacientes=pacientes,
    )
    db.add(galeria)
    await db.commit()
    galeria = await db.get(Galeria, galeria.id, populate_existing=True)
    await change_feed.publish("galerias", galeria.id)
    return galeria_to_public(galeria)


@router.get("", response_model=List[GaleriaPublic])
async def list_galerias(
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    """치료사: 본인이 만든 갤러리 / 환자: 본인에게 배정된 갤러리"""
    if current.rol == "terapeuta":
        q = select(Galeria).where(Galeria.creada_por == current.uid)
    else:
        q = (
            select(Galeria)
            .join(galeria_pacientes, galeria_pacientes.c.galeria_id == Galeria.id)
            .where(galeria_pacientes.c.paciente_uid == current.uid)
        )
    q = q.order_by(Galeria.fecha_creacion.desc())
    galerias = (await db.execute(q)).scalars().unique().all()
    return [galeria_to_public(g) for g in galerias]


@router.get("/{galeria_id}", response_model=GaleriaPublic)
async def get_galeria(
    galeria_id: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    galeria = await _get_galeria(db, galeria_id)
    if galeria.creada_por != current.uid and current.uid not in {p.uid for p in galeria.pacientes}:
        raise HTTPException(status_code=403, detail="No tienes acceso a esta galería.")
    return galeria_to_public(galeria)


@router.put("/{galeria_id}/pacientes", response_model=GaleriaPublic)
async def assign_pacientes(
    galeria_id: str,
    req: GaleriaAsignacion,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    """배정 환자 집합만 교체한다. 영상은 생성 시에만 설정된다."""
    galeria = await _get_galeria(db, galeria_id)
    if galeria.creada_por != current.uid:
        raise HTTPException(status_code=403, detail="Solo quien creó la galería puede modificarla.")
    galeria.pacientes = await _load_patients(db, req.pacientes_asignados)
    await db.commit()
    galeria = await db.get(Galeria, galeria.id, populate_existing=True)
    await change_feed.publish("galerias", galeria.id)
    return galeria_to_public(galeria)
