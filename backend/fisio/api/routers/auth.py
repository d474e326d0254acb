import logging
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Identity
from fisio.services.auth_service import (
    create_access_token, verify_password, hash_password, get_current_identity,
    create_password_reset_token, verify_password_reset_token,
)
from fisio.services.user_service import get_identity_by_email
from fisio.services import mailer
from fisio.schemas import Token, IdentityPublic, PasswordResetRequest, PasswordResetConfirm

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


async def deliver_password_reset(identity: Identity, token: str) -> bool:
    """out-of-band 전달 지점: 재설정 링크를 본인 이메일로 보낸다."""
    logger.info("Password reset requested for %s", identity.uid)
    return await mailer.send_password_reset_email(identity.email, mailer.password_reset_link(token))


@router.post("/login", response_model=Token)
async def login_for_access_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    identity = await get_identity_by_email(db, form_data.username)

    # 치료사가 만든 계정은 비밀번호를 설정하기 전까지 로그인할 수 없다
    if not identity or not identity.password_hash or not verify_password(form_data.password, identity.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Token(access_token=create_access_token(identity))


@router.post("/refresh", response_model=Token)
async def refresh_claims(current: Identity = Depends(get_current_identity)):
    """
    현재 세션의 claim 을 강제로 갱신한다. 가입 직후처럼 서버에서 역할
    claim 이 기록된 뒤 클라이언트가 새 claim 이 담긴 토큰을 받을 때 사용.
    """
    return Token(access_token=create_access_token(current))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(
    current: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db)
):
    # 이전에 발급된 모든 토큰을 무효화
    current.token_version = (current.token_version or 0) + 1
    await db.commit()
    return None


@router.get("/me", response_model=IdentityPublic)
async def get_my_identity(current: Identity = Depends(get_current_identity)):
    return current


@router.post("/password-reset", status_code=status.HTTP_202_ACCEPTED)
async def request_password_reset(req: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    # 이메일 존재 여부는 응답으로 드러내지 않는다
    identity = await get_identity_by_email(db, req.email)
    if identity:
        await deliver_password_reset(identity, create_password_reset_token(identity))
    return {"message": "Si el correo está registrado, recibirás un enlace para restablecer tu contraseña."}


@router.post("/password-reset/confirm", status_code=status.HTTP_204_NO_CONTENT)
async def confirm_password_reset(req: PasswordResetConfirm, db: AsyncSession = Depends(get_db)):
    uid, version = verify_password_reset_token(req.token)
    identity = await db.get(Identity, uid)
    # 이미 사용된 토큰 (비밀번호 변경 뒤 token_version 이 바뀜)
    if identity is None or version != (identity.token_version or 0):
        raise HTTPException(status_code=400, detail="El enlace de restablecimiento no es válido o ha expirado.")
    identity.password_hash = hash_password(req.new_password)
    identity.token_version = (identity.token_version or 0) + 1
    await db.commit()
    return None
