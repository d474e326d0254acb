from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Identity, UserProfile, Rol
from fisio.schemas import UserProfilePublic, PasswordResetLink
from fisio.services.auth_service import (
    get_current_profile, require_therapist, create_password_reset_token, PASSWORD_RESET_EXPIRE_MINUTES,
)
from fisio.services import mailer
from fisio.services.user_service import profile_to_public

router = APIRouter(prefix="/usuarios", tags=["usuarios"])


@router.get("/me", response_model=UserProfilePublic)
async def get_my_profile(profile: UserProfile = Depends(get_current_profile)):
    """
    현재 identity 의 프로필. 프로필이 없으면 404 이며,
    클라이언트는 이를 "프로필 미완성" 상태로 해석한다.
    """
    return profile_to_public(profile)


@router.get("", response_model=List[UserProfilePublic])
async def list_profiles(
    rol: Rol = Query("paciente"),
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    """치료사 전용: 환자 선택 목록 (기록/갤러리 생성 화면)"""
    q = select(UserProfile).where(UserProfile.rol == rol).order_by(UserProfile.nombre.asc())
    profiles = (await db.execute(q)).scalars().all()
    return [profile_to_public(p) for p in profiles]


@router.get("/{uid}", response_model=UserProfilePublic)
async def get_profile(
    uid: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(get_current_profile),
):
    # 본인 또는 치료사만 조회 가능
    if current.uid != uid and current.rol != "terapeuta":
        raise HTTPException(status_code=403, detail="No tienes permiso para ver este perfil.")
    profile = await db.get(UserProfile, uid)
    if profile is None:
        raise HTTPException(status_code=404, detail="Usuario no encontrado.")
    return profile_to_public(profile)


@router.post("/{uid}/password-reset-link", response_model=PasswordResetLink)
async def issue_password_reset_link(
    uid: str,
    db: AsyncSession = Depends(get_db),
    current: UserProfile = Depends(require_therapist),
):
    """
    치료사 전용: 치료사가 만든 환자 계정(비밀번호 없음)에 접근 링크를 발급한다.
    메일 설정이 있으면 환자에게도 보내고, 링크는 항상 치료사에게 돌려준다.
    """
    profile = await db.get(UserProfile, uid)
    if profile is None:
        raise HTTPException(status_code=404, detail="Usuario no encontrado.")
    if profile.rol != "paciente":
        raise HTTPException(status_code=403, detail="Solo se pueden generar enlaces para pacientes.")
    identity = await db.get(Identity, uid)
    if identity is None:
        raise HTTPException(status_code=404, detail="Usuario no encontrado.")

    token = create_password_reset_token(identity)
    link = mailer.password_reset_link(token)
    sent = await mailer.send_password_reset_email(identity.email, link)
    return PasswordResetLink(
        reset_link=link, token=token, expires_in_minutes=PASSWORD_RESET_EXPIRE_MINUTES, email_sent=sent
    )
