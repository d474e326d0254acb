import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.db import get_db
from fisio.models import Identity, UserProfile

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
PASSWORD_RESET_EXPIRE_MINUTES = 30

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

def _secret() -> str:
    if not SECRET_KEY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="El servicio de identidad no está configurado.",
        )
    return SECRET_KEY

def verify_password(plain_password, password_hash):
    return pwd_context.verify(plain_password, password_hash)

def hash_password(password):
    if not isinstance(password, (str, bytes)):
        raise TypeError("Password must be a string or bytes.")
    return pwd_context.hash(password)

def create_access_token(identity: Identity, expires_delta: Optional[timedelta] = None):
    """uid 와 서버에 기록된 역할 claim 으로 bearer 토큰을 발급"""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": identity.uid,
        "rol": (identity.custom_claims or {}).get("rol"),
        "ver": identity.token_version or 0,
        "iat": now,
        "exp": expire,
    }
    return jwt.encode(to_encode, _secret(), algorithm=ALGORITHM)

def create_password_reset_token(identity: Identity) -> str:
    """치료사가 생성한(비밀번호 없는) 계정이 접근을 얻는 out-of-band 토큰"""
    expire = datetime.now(timezone.utc) + timedelta(minutes=PASSWORD_RESET_EXPIRE_MINUTES)
    # ver: 비밀번호가 바뀌면 (token_version 증가) 같은 토큰은 다시 쓸 수 없다
    to_encode = {
        "sub": identity.uid,
        "ver": identity.token_version or 0,
        "exp": expire,
        "scope": "password_reset",
    }
    return jwt.encode(to_encode, _secret(), algorithm=ALGORITHM)

def verify_password_reset_token(token: str) -> Tuple[str, int]:
    credentials_exception = HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="El enlace de restablecimiento no es válido o ha expirado.",
    )
    try:
        payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception
    if payload.get("scope") != "password_reset" or not payload.get("sub"):
        raise credentials_exception
    return payload["sub"], payload.get("ver", 0)

async def _identity_from_token(token: str, db: AsyncSession) -> Identity:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except JWTError:
        raise credentials_exception

    uid = payload.get("sub")
    if not uid or payload.get("scope"):
        raise credentials_exception

    identity = await db.get(Identity, uid)
    if identity is None:
        raise credentials_exception

    if payload.get("ver", 0) != (identity.token_version or 0):
        raise credentials_exception
    return identity

async def get_current_identity(
    token: str = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Identity:
    """Authorization 헤더의 bearer 토큰을 검증하고 identity 를 반환"""
    return await _identity_from_token(token, db)

async def get_optional_identity(
    token: Optional[str] = Depends(optional_oauth2_scheme), db: AsyncSession = Depends(get_db)
) -> Optional[Identity]:
    """토큰이 없으면 None (자가 등록 경로). 토큰이 있는데 무효하면 401."""
    if not token:
        return None
    return await _identity_from_token(token, db)

async def get_current_profile(
    identity: Identity = Depends(get_current_identity), db: AsyncSession = Depends(get_db)
) -> UserProfile:
    profile = await db.get(UserProfile, identity.uid)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Perfil no encontrado. Completa tu registro.",
        )
    return profile

def require_role(rol: str):
    """역할 전용 라우트 보호. 예: Depends(require_role("terapeuta"))"""
    async def _dependency(profile: UserProfile = Depends(get_current_profile)) -> UserProfile:
        if profile.rol != rol:
            logger.info("Role check failed for %s: required %s, has %s", profile.uid, rol, profile.rol)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permiso para realizar esta acción.",
            )
        return profile
    return _dependency

require_therapist = require_role("terapeuta")
require_patient = require_role("paciente")
