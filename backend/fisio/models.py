from __future__ import annotations
from typing import Optional, Literal
import uuid

from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    String, Text, Integer, DateTime, CheckConstraint, ForeignKey, Index, JSON, Column, Table
)
from sqlalchemy.sql import func

from fisio.db import Base
from datetime import datetime


def new_id() -> str:
    return uuid.uuid4().hex


Rol = Literal["terapeuta", "paciente"]

EstadoSesion = Literal["agendada", "completada", "cancelada"]
Modalidad = Literal["presencial", "virtual"]
TipoRegistro = Literal["auto", "sesion"]
EstadoAnimo = Literal["muy-bien", "bien", "regular", "mal", "muy-mal"]
ProgresoPercibido = Literal[
    "mejoria-significativa", "mejoria-leve", "sin-cambios", "retroceso-leve", "retroceso-significativo"
]


class Identity(Base):
    """
    인증 주체 (identity store). 비밀번호가 없는 계정은
    치료사가 생성한 환자 계정이며, 비밀번호 재설정으로만 로그인할 수 있다.
    """
    __tablename__ = "identities"

    uid: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    # 서버에서만 기록하는 역할 claim: {"rol": "terapeuta" | "paciente"}
    custom_claims: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    # 로그아웃할 때마다 증가. 토큰의 ver 가 다르면 무효
    token_version: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    profile: Mapped[Optional["UserProfile"]] = relationship(back_populates="identity", uselist=False)


class UserProfile(Base):
    __tablename__ = "usuarios"
    __table_args__ = (
        CheckConstraint("rol in ('terapeuta','paciente')", name="ck_usuarios_rol"),
        Index("idx_usuarios_rol", "rol"),
    )

    uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("identities.uid", ondelete="CASCADE"), primary_key=True
    )
    nombre: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    rol: Mapped[str] = mapped_column(String, nullable=False)
    fecha_registro: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    identity: Mapped["Identity"] = relationship(back_populates="profile")
    informacion_medica: Mapped[Optional["InformacionMedica"]] = relationship(
        back_populates="usuario", uselist=False, cascade="all, delete-orphan", lazy="selectin"
    )


class InformacionMedica(Base):
    """환자 프로필의 의료 정보 블록. 행이 있으면 블록이 존재, 각 필드는 개별적으로 NULL 가능."""
    __tablename__ = "informacion_medica"

    uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), primary_key=True
    )
    contacto_emergencia_nombre: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    contacto_emergencia_telefono: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    historial_medico: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    alergias: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    medicamentos: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    usuario: Mapped["UserProfile"] = relationship(back_populates="informacion_medica")


class Expediente(Base):
    __tablename__ = "expedientes"
    __table_args__ = (
        Index("idx_expedientes_paciente", "paciente_uid"),
        Index("idx_expedientes_terapeuta", "terapeuta_uid"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    paciente_uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), nullable=False
    )
    terapeuta_uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), nullable=False
    )
    descripcion: Mapped[str] = mapped_column(Text, nullable=False, default="Expediente inicial")
    diagnostico: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    objetivos: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    plan_tratamiento: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    fecha_creacion: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sesiones: Mapped[list["Sesion"]] = relationship(back_populates="expediente", cascade="all, delete-orphan")


class Sesion(Base):
    __tablename__ = "sesiones"
    __table_args__ = (
        CheckConstraint("estado in ('agendada','completada','cancelada')", name="ck_sesiones_estado"),
        CheckConstraint("modalidad in ('presencial','virtual')", name="ck_sesiones_modalidad"),
        CheckConstraint(
            "dolor_inicial is null or (dolor_inicial between 0 and 10)", name="ck_sesiones_dolor_inicial"
        ),
        CheckConstraint(
            "dolor_final is null or (dolor_final between 0 and 10)", name="ck_sesiones_dolor_final"
        ),
        Index("idx_sesiones_expediente", "expediente_id"),
        Index("idx_sesiones_paciente", "paciente_uid"),
        Index("idx_sesiones_terapeuta", "terapeuta_uid"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    expediente_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("expedientes.id", ondelete="CASCADE"), nullable=False
    )
    terapeuta_uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), nullable=False
    )
    paciente_uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), nullable=False
    )
    fecha: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    modalidad: Mapped[str] = mapped_column(String, nullable=False)
    ubicacion: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    nota: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estado: Mapped[str] = mapped_column(String, default="agendada", nullable=False)
    creada_en: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # 완료 시 치료사가 기록하는 진행 정보
    notas_terapeuta: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dolor_inicial: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dolor_final: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    observaciones_objetivas: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tecnicas_aplicadas: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    plan_proxima_sesion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    progreso_percibido: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    estado_animo_observado: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    completada_en: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    expediente: Mapped["Expediente"] = relationship(back_populates="sesiones")


class Avance(Base):
    __tablename__ = "avances"
    __table_args__ = (
        CheckConstraint("tipo_registro in ('auto','sesion')", name="ck_avances_tipo"),
        CheckConstraint("dias_ejercicio is null or (dias_ejercicio between 0 and 7)", name="ck_avances_dias"),
        Index("idx_avances_expediente", "expediente_id"),
        Index("idx_avances_paciente", "paciente_uid"),
        Index("idx_avances_terapeuta", "terapeuta_uid"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    paciente_uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), nullable=False
    )
    terapeuta_uid: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), nullable=False
    )
    expediente_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("expedientes.id", ondelete="CASCADE"), nullable=False
    )
    fecha_registro: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    registrado_por: Mapped[str] = mapped_column(String(32), nullable=False)
    tipo_registro: Mapped[str] = mapped_column(String, default="auto", nullable=False)

    dolor_inicial: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    dolor_final: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ubicacion_dolor: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ejercicios_realizados: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dias_ejercicio: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    ejercicios_dificiles: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    movilidad_percibida: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    fatiga: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    limitaciones_funcionales: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    estado_animo: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    motivacion: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    comentario_paciente: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# 갤러리 ↔ 배정된 환자 (와이어에서는 pacientesAsignados 배열)
galeria_pacientes = Table(
    "galeria_pacientes",
    Base.metadata,
    Column("galeria_id", String(32), ForeignKey("galerias.id", ondelete="CASCADE"), primary_key=True),
    Column("paciente_uid", String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), primary_key=True),
    Index("idx_galeria_pacientes_paciente", "paciente_uid"),
)


class Galeria(Base):
    __tablename__ = "galerias"
    __table_args__ = (
        Index("idx_galerias_creada_por", "creada_por"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    nombre: Mapped[str] = mapped_column(String, nullable=False)
    descripcion: Mapped[str] = mapped_column(Text, nullable=False)
    creada_por: Mapped[str] = mapped_column(
        String(32), ForeignKey("usuarios.uid", ondelete="CASCADE"), nullable=False
    )
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    videos: Mapped[list["GaleriaVideo"]] = relationship(
        back_populates="galeria",
        cascade="all, delete-orphan",
        order_by="GaleriaVideo.posicion",
        lazy="selectin",
    )
    pacientes: Mapped[list["UserProfile"]] = relationship(secondary=galeria_pacientes, lazy="selectin")


class GaleriaVideo(Base):
    __tablename__ = "galeria_videos"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    galeria_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("galerias.id", ondelete="CASCADE"), nullable=False
    )
    posicion: Mapped[int] = mapped_column(Integer, nullable=False)
    titulo: Mapped[str] = mapped_column(String, nullable=False)
    youtube_url: Mapped[str] = mapped_column(Text, nullable=False)

    galeria: Mapped["Galeria"] = relationship(back_populates="videos")
