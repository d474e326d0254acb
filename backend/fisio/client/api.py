from __future__ import annotations
import json
import logging
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
from httpx import Timeout

from fisio.schemas import (
    IdentityPublic, UserProfilePublic, ExpedientePublic, SesionPublic, AvancePublic,
    ProgressSummary, GaleriaPublic, DocumentChangeEvent, ExpedienteUpdate, SesionCompletar, AvanceCreate,
    PasswordResetLink,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = Timeout(10.0, read=60.0)


class ApiError(RuntimeError):
    def __init__(self, status_code: int, detail: Any):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail

class AuthError(ApiError):
    pass

class ForbiddenError(ApiError):
    pass

class NotFoundError(ApiError):
    pass

class ConflictError(ApiError):
    pass

class EmailExistsError(ConflictError):
    """createUser: 이미 가입된 이메일"""

class InvalidRequestError(ApiError):
    pass

class ServiceUnavailableError(ApiError):
    pass


_ERRORS = {
    401: AuthError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: InvalidRequestError,
    503: ServiceUnavailableError,
}


def error_for(status_code: int, body: str) -> ApiError:
    try:
        detail = json.loads(body).get("detail", body)
    except (json.JSONDecodeError, AttributeError):
        detail = body
    if status_code == 409 and detail == "EMAIL_EXISTS":
        return EmailExistsError(status_code, detail)
    return _ERRORS.get(status_code, ApiError)(status_code, detail)


def _camel_body(data: Dict[str, Any]) -> Dict[str, Any]:
    # None 값은 보내지 않는다
    return {k: v for k, v in data.items() if v is not None}


class FisioApiClient:
    """
    백엔드 REST API 의 얇은 비동기 래퍼.
    성공한 변경 요청 뒤에는 on_mutation(collection) 을 호출해 캐시를 무효화할 수 있다.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: Timeout = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        on_mutation: Optional[Callable[[str], None]] = None,
    ):
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=timeout, transport=transport)
        self._on_mutation = on_mutation
        self.token: Optional[str] = None

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "FisioApiClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        r = await self._client.request(method, path, headers=self._headers(), **kwargs)
        if r.status_code >= 400:
            raise error_for(r.status_code, r.text)
        if r.status_code == 204 or not r.content:
            return None
        try:
            return r.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ApiError(r.status_code, f"Invalid JSON response ({e}): {r.text!r}")

    def _mutated(self, collection: str) -> None:
        if self._on_mutation is not None:
            self._on_mutation(collection)

    # --- 인증 ---
    async def sign_in(self, email: str, password: str) -> IdentityPublic:
        data = await self._request("POST", "/auth/login", data={"username": email, "password": password})
        self.token = data["access_token"]
        return await self.me()

    async def refresh_claims(self) -> None:
        """서버에 새로 기록된 역할 claim 을 반영한 토큰으로 교체"""
        data = await self._request("POST", "/auth/refresh")
        self.token = data["access_token"]

    async def sign_out(self) -> None:
        try:
            if self.token:
                await self._request("POST", "/auth/logout")
        finally:
            self.token = None

    async def me(self) -> IdentityPublic:
        return IdentityPublic.model_validate(await self._request("GET", "/auth/me"))

    async def request_password_reset(self, email: str) -> None:
        await self._request("POST", "/auth/password-reset", json={"email": email})

    async def confirm_password_reset(self, token: str, new_password: str) -> None:
        await self._request("POST", "/auth/password-reset/confirm", json={"token": token, "new_password": new_password})

    # --- 사용자 ---
    async def create_user(
        self,
        email: str,
        nombre: str,
        rol: str,
        *,
        informacion_medica: Optional[Dict[str, Any]] = None,
        password: Optional[str] = None,
    ) -> str:
        body = _camel_body({
            "email": email,
            "nombre": nombre,
            "rol": rol,
            "informacionMedica": informacion_medica,
            "password": password,
        })
        data = await self._request("POST", "/functions/createUser", json=body)
        self._mutated("usuarios")
        return data["uid"]

    async def get_my_profile(self) -> Optional[UserProfilePublic]:
        """프로필이 없으면 None"""
        try:
            data = await self._request("GET", "/usuarios/me")
        except NotFoundError:
            return None
        return UserProfilePublic.model_validate(data)

    async def get_profile(self, uid: str) -> UserProfilePublic:
        return UserProfilePublic.model_validate(await self._request("GET", f"/usuarios/{uid}"))

    async def list_patients(self) -> List[UserProfilePublic]:
        data = await self._request("GET", "/usuarios", params={"rol": "paciente"})
        return [UserProfilePublic.model_validate(p) for p in data]

    async def issue_password_reset_link(self, uid: str) -> PasswordResetLink:
        """치료사 전용: 비밀번호 없이 만든 환자 계정의 접근 링크"""
        data = await self._request("POST", f"/usuarios/{uid}/password-reset-link")
        return PasswordResetLink.model_validate(data)

    # --- 기록 ---
    async def create_expediente(self, paciente_uid: str, descripcion: Optional[str] = None) -> ExpedientePublic:
        body = _camel_body({"pacienteUid": paciente_uid, "descripcion": descripcion})
        data = await self._request("POST", "/expedientes", json=body)
        self._mutated("expedientes")
        return ExpedientePublic.model_validate(data)

    async def list_expedientes(self) -> List[ExpedientePublic]:
        return [ExpedientePublic.model_validate(e) for e in await self._request("GET", "/expedientes")]

    async def get_expediente(self, expediente_id: str) -> ExpedientePublic:
        return ExpedientePublic.model_validate(await self._request("GET", f"/expedientes/{expediente_id}"))

    async def update_expediente(self, expediente_id: str, **fields: Any) -> ExpedientePublic:
        body = ExpedienteUpdate(**fields).model_dump(by_alias=True, exclude_none=True)
        data = await self._request("PATCH", f"/expedientes/{expediente_id}", json=body)
        self._mutated("expedientes")
        return ExpedientePublic.model_validate(data)

    # --- 세션 ---
    async def schedule_sesion(
        self,
        expediente_id: str,
        fecha: datetime,
        modalidad: str,
        ubicacion: Optional[str] = None,
        nota: Optional[str] = None,
    ) -> SesionPublic:
        body = _camel_body({
            "expedienteId": expediente_id,
            "fecha": fecha.isoformat(),
            "modalidad": modalidad,
            "ubicacion": ubicacion,
            "nota": nota,
        })
        data = await self._request("POST", "/sesiones", json=body)
        self._mutated("sesiones")
        return SesionPublic.model_validate(data)

    async def list_sesiones(self, expediente_id: Optional[str] = None) -> List[SesionPublic]:
        params = {"expedienteId": expediente_id} if expediente_id else None
        return [SesionPublic.model_validate(s) for s in await self._request("GET", "/sesiones", params=params)]

    async def get_sesion(self, sesion_id: str) -> SesionPublic:
        return SesionPublic.model_validate(await self._request("GET", f"/sesiones/{sesion_id}"))

    async def complete_sesion(self, sesion_id: str, **fields: Any) -> SesionPublic:
        body = SesionCompletar(**fields).model_dump(by_alias=True, exclude_none=True)
        data = await self._request("POST", f"/sesiones/{sesion_id}/completar", json=body)
        self._mutated("sesiones")
        return SesionPublic.model_validate(data)

    async def cancel_sesion(self, sesion_id: str) -> SesionPublic:
        data = await self._request("POST", f"/sesiones/{sesion_id}/cancelar")
        self._mutated("sesiones")
        return SesionPublic.model_validate(data)

    # --- 자가 보고 ---
    async def create_avance(self, **fields: Any) -> AvancePublic:
        body = AvanceCreate(**fields).model_dump(mode="json", by_alias=True)
        data = await self._request("POST", "/avances", json=body)
        self._mutated("avances")
        return AvancePublic.model_validate(data)

    async def list_avances(self, expediente_id: Optional[str] = None) -> List[AvancePublic]:
        params = {"expedienteId": expediente_id} if expediente_id else None
        return [AvancePublic.model_validate(a) for a in await self._request("GET", "/avances", params=params)]

    async def get_avance(self, avance_id: str) -> AvancePublic:
        return AvancePublic.model_validate(await self._request("GET", f"/avances/{avance_id}"))

    async def summarize_avance(self, avance_id: str) -> ProgressSummary:
        return ProgressSummary.model_validate(await self._request("POST", f"/avances/{avance_id}/resumen"))

    # --- 갤러리 ---
    async def create_galeria(
        self,
        nombre: str,
        descripcion: str,
        videos: List[Dict[str, str]],
        pacientes_asignados: List[str],
    ) -> GaleriaPublic:
        body = {
            "nombre": nombre,
            "descripcion": descripcion,
            "videos": videos,
            "pacientesAsignados": pacientes_asignados,
        }
        data = await self._request("POST", "/galerias", json=body)
        self._mutated("galerias")
        return GaleriaPublic.model_validate(data)

    async def list_galerias(self) -> List[GaleriaPublic]:
        return [GaleriaPublic.model_validate(g) for g in await self._request("GET", "/galerias")]

    async def get_galeria(self, galeria_id: str) -> GaleriaPublic:
        return GaleriaPublic.model_validate(await self._request("GET", f"/galerias/{galeria_id}"))

    async def assign_pacientes(self, galeria_id: str, pacientes_asignados: List[str]) -> GaleriaPublic:
        data = await self._request(
            "PUT", f"/galerias/{galeria_id}/pacientes", json={"pacientesAsignados": pacientes_asignados}
        )
        self._mutated("galerias")
        return GaleriaPublic.model_validate(data)

    # --- 변경 피드 ---
    async def stream_changes(self) -> AsyncIterator[DocumentChangeEvent]:
        """SSE 스트림에서 data 라인만 골라 변경 이벤트로 변환"""
        async with self._client.stream("GET", "/cambios/stream", headers=self._headers(), timeout=None) as r:
            if r.status_code >= 400:
                body = await r.aread()
                raise error_for(r.status_code, body.decode("utf-8", errors="replace"))
            async for line in r.aiter_lines():
                if not line.startswith("data:"):
                    continue
                try:
                    yield DocumentChangeEvent.model_validate_json(line[len("data:"):].strip())
                except ValueError as e:
                    logger.warning("Ignoring malformed change event %r: %s", line, e)
