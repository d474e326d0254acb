"""
권한이 필요한 사용자 생성 (createUser).

identity 와 프로필을 한 번에 만들 수 있는 유일한 경로이며,
"비밀번호 없이 환자를 만들 수 있는 것은 치료사뿐" 규칙을 강제한다.
"""
from __future__ import annotations
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fisio.models import Identity, UserProfile, InformacionMedica
from fisio.schemas import (
    CreateUserRequest, UserProfilePublic, InformacionMedicaPublic, ContactoEmergencia
)
from fisio.services.auth_service import hash_password

logger = logging.getLogger(__name__)


class UserServiceError(Exception):
    pass

class UserValidationError(UserServiceError):
    pass

class PermissionDeniedError(UserServiceError):
    pass

class EmailExistsError(UserServiceError):
    code = "EMAIL_EXISTS"

class UserCreationError(UserServiceError):
    pass


async def get_identity_by_email(db: AsyncSession, email: str) -> Optional[Identity]:
    res = await db.execute(select(Identity).where(Identity.email == email))
    return res.scalar_one_or_none()


def _check_authorization(req: CreateUserRequest, caller: Optional[Identity]) -> None:
    """부작용이 생기기 전에 모든 거부 사유를 판정한다."""
    if caller is None:
        # 자가 등록: 본인 계정이므로 비밀번호 필수
        if not req.password:
            raise UserValidationError("Password is required for self-registration.")
        if req.rol == "paciente":
            info = req.informacion_medica
            if not info or not info.contacto_emergencia_nombre or not info.contacto_emergencia_telefono:
                raise UserValidationError("El contacto de emergencia es requerido para pacientes.")
        return

    # 호출자 claim 은 토큰이 아니라 서버 기록에서 읽는다
    if (caller.custom_claims or {}).get("rol") != "terapeuta":
        raise PermissionDeniedError(
            "Permission denied: only therapists can create users without a password."
        )


def _informacion_medica_for(req: CreateUserRequest) -> InformacionMedica:
    info = req.informacion_medica
    if info is None:
        return InformacionMedica()
    return InformacionMedica(
        contacto_emergencia_nombre=info.contacto_emergencia_nombre,
        contacto_emergencia_telefono=info.contacto_emergencia_telefono,
        historial_medico=info.historial_medico,
        alergias=info.alergias,
        medicamentos=info.medicamentos,
    )


async def create_user(
    db: AsyncSession, req: CreateUserRequest, caller: Optional[Identity]
) -> Identity:
    """
    identity 생성 → 역할 claim 기록 → 프로필 작성 순서로 진행한다.

    세 단계는 하나의 트랜잭션으로 커밋되므로 프로필 작성이 실패하면
    identity 도 롤백된다 (프로필 없는 고아 identity 가 남지 않음).
    치료사가 호출한 경우 비밀번호 없이 생성되며, 새 사용자는 비밀번호
    재설정으로 접근 권한을 얻는다.
    """
    _check_authorization(req, caller)

    if await get_identity_by_email(db, req.email):
        raise EmailExistsError(req.email)

    logger.info("Creating user: %s", req.email)
    password = req.password if caller is None else None

    try:
        identity = Identity(
            email=req.email,
            display_name=req.nombre,
            password_hash=hash_password(password) if password else None,
            custom_claims={},
        )
        db.add(identity)
        await db.flush()

        identity.custom_claims = {"rol": req.rol}
        logger.info("Set custom claim 'rol: %s' for user %s", req.rol, identity.uid)

        profile = UserProfile(uid=identity.uid, nombre=req.nombre, email=req.email, rol=req.rol)
        if req.rol == "paciente":
            profile.informacion_medica = _informacion_medica_for(req)
        db.add(profile)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        # 동시에 같은 이메일로 가입한 경우
        logger.warning("Integrity error creating %s: %s", req.email, e)
        raise EmailExistsError(req.email) from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Error creating new user %s: %s", req.email, e)
        raise UserCreationError("Failed to create user.") from e

    logger.info("Created user profile %s", identity.uid)
    return identity


def profile_to_public(profile: UserProfile) -> UserProfilePublic:
    info = profile.informacion_medica
    informacion = None
    if info is not None:
        informacion = InformacionMedicaPublic(
            contacto_emergencia=ContactoEmergencia(
                nombre=info.contacto_emergencia_nombre or "",
                telefono=info.contacto_emergencia_telefono or "",
            ),
            historial_medico=info.historial_medico or "",
            alergias=info.alergias or "",
            medicamentos=info.medicamentos or "",
        )
    return UserProfilePublic(
        uid=profile.uid,
        nombre=profile.nombre,
        email=profile.email,
        rol=profile.rol,
        fecha_registro=profile.fecha_registro,
        informacion_medica=informacion,
    )
