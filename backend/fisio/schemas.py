from __future__ import annotations
from typing import Optional, List, Literal
from pydantic import BaseModel, ConfigDict, Field, EmailStr, AliasChoices, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime

from fisio.models import Rol, EstadoSesion, Modalidad, TipoRegistro, EstadoAnimo, ProgresoPercibido


class CamelModel(BaseModel):
    """와이어 포맷은 camelCase 필드명을 사용한다."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- 인증 ---
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"

class IdentityPublic(CamelModel):
    uid: str
    email: EmailStr
    display_name: Optional[str] = None
    custom_claims: dict = {}

class PasswordResetRequest(BaseModel):
    email: EmailStr

class PasswordResetConfirm(BaseModel):
    token: str
    new_password: str = Field(..., min_length=6)

class PasswordResetLink(CamelModel):
    reset_link: str
    token: str
    expires_in_minutes: int
    email_sent: bool = False


# --- 사용자 프로필 ---
class InformacionMedicaInput(CamelModel):
    """createUser 입력 (가입 폼의 평탄화된 필드)"""
    contacto_emergencia_nombre: Optional[str] = None
    contacto_emergencia_telefono: Optional[str] = None
    historial_medico: Optional[str] = None
    alergias: Optional[str] = None
    medicamentos: Optional[str] = None

class ContactoEmergencia(CamelModel):
    nombre: Optional[str] = None
    telefono: Optional[str] = None

class InformacionMedicaPublic(CamelModel):
    contacto_emergencia: ContactoEmergencia
    historial_medico: Optional[str] = None
    alergias: Optional[str] = None
    medicamentos: Optional[str] = None

class UserProfilePublic(CamelModel):
    uid: str
    nombre: str
    email: EmailStr
    rol: Rol
    fecha_registro: Optional[datetime] = None
    informacion_medica: Optional[InformacionMedicaPublic] = None

class CreateUserRequest(CamelModel):
    """
    createUser 호출 입력. rol 은 두 값 외에는 거부된다.
    비밀번호 필요 여부는 호출자(인증 여부)에 따라 서비스에서 판정한다.
    """
    email: EmailStr
    nombre: str = Field(..., min_length=2)
    rol: Rol
    informacion_medica: Optional[InformacionMedicaInput] = None
    password: Optional[str] = Field(None, min_length=6)

class CreateUserResponse(BaseModel):
    uid: str


# --- 임상 기록 ---
class ExpedienteCreate(CamelModel):
    paciente_uid: str = Field(..., min_length=1)
    descripcion: str = Field("Expediente inicial", min_length=5)

class ExpedienteUpdate(CamelModel):
    descripcion: Optional[str] = Field(None, min_length=5)
    diagnostico: Optional[str] = None
    objetivos: Optional[str] = None
    plan_tratamiento: Optional[str] = None

class ExpedientePublic(CamelModel):
    id: str
    paciente_uid: str
    terapeuta_uid: str
    descripcion: str
    diagnostico: Optional[str] = None
    objetivos: Optional[str] = None
    plan_tratamiento: Optional[str] = None
    fecha_creacion: Optional[datetime] = None


# --- 세션 ---
class SesionCreate(CamelModel):
    expediente_id: str
    fecha: datetime
    modalidad: Modalidad
    ubicacion: Optional[str] = None
    nota: Optional[str] = None

class SesionCompletar(CamelModel):
    notas_terapeuta: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("notasTerapeuta", "notas", "notas_terapeuta")
    )
    dolor_inicial: int = Field(..., ge=0, le=10)
    dolor_final: int = Field(..., ge=0, le=10)
    progreso_percibido: Optional[ProgresoPercibido] = None
    estado_animo_observado: Optional[EstadoAnimo] = None
    observaciones_objetivas: Optional[str] = None
    tecnicas_aplicadas: Optional[str] = None
    plan_proxima_sesion: Optional[str] = None

class SesionPublic(CamelModel):
    id: str
    expediente_id: str
    terapeuta_uid: str
    paciente_uid: str
    fecha: datetime
    modalidad: Modalidad
    ubicacion: Optional[str] = None
    nota: Optional[str] = None
    estado: EstadoSesion
    creada_en: Optional[datetime] = None
    notas_terapeuta: Optional[str] = None
    dolor_inicial: Optional[int] = None
    dolor_final: Optional[int] = None
    progreso_percibido: Optional[ProgresoPercibido] = None
    estado_animo_observado: Optional[EstadoAnimo] = None
    observaciones_objetivas: Optional[str] = None
    tecnicas_aplicadas: Optional[str] = None
    plan_proxima_sesion: Optional[str] = None
    completada_en: Optional[datetime] = None


# --- 환자 자가 보고 ---
class AvanceCreate(CamelModel):
    dolor_inicial: int = Field(..., ge=0, le=10)
    dolor_final: int = Field(..., ge=0, le=10)
    ubicacion_dolor: str = Field(..., min_length=3)
    ejercicios_realizados: str = Field(..., min_length=3)
    dias_ejercicio: int = Field(..., ge=0, le=7)
    ejercicios_dificiles: Optional[str] = None
    movilidad_percibida: str = Field(..., min_length=3)
    fatiga: int = Field(..., ge=0, le=10)
    limitaciones_funcionales: Optional[str] = None
    estado_animo: EstadoAnimo
    motivacion: int = Field(..., ge=0, le=10)
    comentario_paciente: Optional[str] = None

class AvancePublic(AvanceCreate):
    id: str
    paciente_uid: str
    terapeuta_uid: str
    expediente_id: str
    fecha_registro: Optional[datetime] = None
    registrado_por: str
    tipo_registro: TipoRegistro

class ProgressSummary(CamelModel):
    resumen: str
    puntos_clave: List[str] = []
    sugerencia: str


# --- 갤러리 ---
class GaleriaVideoSchema(CamelModel):
    titulo: str = Field(..., min_length=1)
    youtube_url: str

    @field_validator("youtube_url")
    @classmethod
    def _url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Debe ser una URL válida de YouTube.")
        return v

class GaleriaCreate(CamelModel):
    nombre: str = Field(..., min_length=3)
    descripcion: str = Field(..., min_length=10)
    videos: List[GaleriaVideoSchema] = Field(..., min_length=1)
    pacientes_asignados: List[str] = Field(..., min_length=1)

class GaleriaAsignacion(CamelModel):
    pacientes_asignados: List[str]

class GaleriaPublic(CamelModel):
    id: str
    nombre: str
    descripcion: str
    videos: List[GaleriaVideoSchema]
    creada_por: str
    pacientes_asignados: List[str]
    fecha_creacion: Optional[datetime] = None


# --- 변경 피드 ---
class DocumentChangeEvent(BaseModel):
    collection: Literal["usuarios", "expedientes", "sesiones", "avances", "galerias"]
    id: str = Field(..., min_length=1)
