"""
클라이언트 조합 루트.

API 클라이언트, 변경 피드, 프로필 소스, 인증 게이트, 조회 캐시를 한 곳에서
만들고 소유한다. 화면 코드는 gate.snapshot / gate.subscribe 와 api 만 본다.
"""
from __future__ import annotations
import os
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from httpx import Timeout

from fisio.schemas import IdentityPublic
from fisio.client.api import FisioApiClient, ServiceUnavailableError
from fisio.client.cache import QueryCache
from fisio.client.feed import ChangeFeed
from fisio.client.gate import AuthGate, PUBLIC_ROUTE
from fisio.client.profiles import ApiProfileSource, NullProfileSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClientConfig:
    api_url: Optional[str] = None
    timeout_s: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.api_url)

    @classmethod
    def from_env(cls) -> "ClientConfig":
        return cls(
            api_url=os.getenv("FISIO_API_URL") or None,
            timeout_s=float(os.getenv("FISIO_API_TIMEOUT_S", "10")),
        )


class ClinicApp:
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        navigate: Optional[Callable[[str], None]] = None,
        route: str = PUBLIC_ROUTE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or ClientConfig.from_env()
        self.cache = QueryCache()
        self.api: Optional[FisioApiClient] = None
        self.feed: Optional[ChangeFeed] = None
        self._uid: Optional[str] = None

        if self.config.enabled:
            self.api = FisioApiClient(
                self.config.api_url,
                timeout=Timeout(self.config.timeout_s, read=60.0),
                transport=transport,
                on_mutation=self.cache.invalidate,
            )
            self.feed = ChangeFeed(self.api)
            self.feed.listen(self.cache.on_change)
            source = ApiProfileSource(self.api, self.feed)
        else:
            # 설정이 없어도 앱은 뜬다. 로그인만 불가능
            logger.error("FISIO_API_URL is not set; the app runs without a backend.")
            source = NullProfileSource()

        self.gate = AuthGate(source, navigate=navigate, route=route)
        if not self.config.enabled:
            self.gate.on_identity_changed(None)

    def _require_api(self) -> FisioApiClient:
        if self.api is None:
            raise ServiceUnavailableError(503, "Backend is not configured.")
        return self.api

    async def sign_in(self, email: str, password: str) -> IdentityPublic:
        api = self._require_api()
        identity = await api.sign_in(email, password)
        # 서버에 기록된 역할 claim 을 즉시 반영
        await api.refresh_claims()
        if self._uid is not None and self._uid != identity.uid:
            # 로그아웃 없이 다른 계정으로 전환: 이전 계정의 조회 결과는 버린다
            self.cache.clear()
        if self.feed is not None:
            # 스트림은 새 토큰으로 다시 연다
            await self.feed.stop()
            self.feed.start()
        self._uid = identity.uid
        self.gate.on_identity_changed(identity.uid)
        return identity

    async def register_patient(self, email: str, password: str, nombre: str, informacion_medica: dict) -> IdentityPublic:
        """자가 가입: createUser 호출 후 같은 자격 증명으로 로그인"""
        api = self._require_api()
        await api.create_user(email, nombre, "paciente", informacion_medica=informacion_medica, password=password)
        return await self.sign_in(email, password)

    async def sign_out(self) -> None:
        try:
            if self.api is not None:
                await self.api.sign_out()
        finally:
            if self.feed is not None:
                await self.feed.stop()
            self.cache.clear()
            self._uid = None
            self.gate.on_identity_changed(None)

    async def aclose(self) -> None:
        self.gate.close()
        if self.feed is not None:
            await self.feed.stop()
        self.cache.clear()
        if self.api is not None:
            await self.api.aclose()
