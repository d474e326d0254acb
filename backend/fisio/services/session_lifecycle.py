from __future__ import annotations
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from fisio.models import Sesion
from fisio.schemas import SesionCompletar

class ScheduleValidationError(ValueError):
    pass


class InvalidTransitionError(Exception):
    def __init__(self, sesion_id: str, estado: str, target: str):
        super().__init__(f"Sesion {sesion_id} is '{estado}' and cannot become '{target}'.")
        self.sesion_id = sesion_id
        self.estado = estado
        self.target = target


def validate_schedule(
    fecha: datetime,
    modalidad: str,
    ubicacion: Optional[str],
    today: Optional[date] = None,
) -> None:
    """
    fecha 는 어제 이후여야 한다 (시계 오차를 감안해 어제까지 허용).
    presencial 은 장소가 필수, virtual 은 빈 장소를 허용한다.
    """
    if today is None:
        today = datetime.now(timezone.utc).date()
    fecha_utc = fecha.astimezone(timezone.utc) if fecha.tzinfo else fecha
    if fecha_utc.date() < today - timedelta(days=1):
        raise ScheduleValidationError("La fecha de la sesión no puede estar en el pasado.")
    if modalidad == "presencial" and not (ubicacion or "").strip():
        raise ScheduleValidationError("La ubicación es requerida para sesiones presenciales.")


def _ensure_open(sesion: Sesion, target: str) -> None:
    if sesion.estado != "agendada":
        raise InvalidTransitionError(sesion.id, sesion.estado, target)


def complete_session(sesion: Sesion, data: SesionCompletar) -> Sesion:
    """agendada → completada (단방향). 진행 정보를 함께 기록한다."""
    _ensure_open(sesion, "completada")
    for field, value in data.model_dump().items():
        setattr(sesion, field, value)
    sesion.estado = "completada"
    sesion.completada_en = datetime.now(timezone.utc)
    return sesion


def cancel_session(sesion: Sesion) -> Sesion:
    _ensure_open(sesion, "cancelada")
    sesion.estado = "cancelada"
    return sesion
