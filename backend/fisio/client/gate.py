"""
세션/인증 게이트.

identity 변경 이벤트를 받아 프로필을 구독하고, 그 결과를 탐색 가능한
애플리케이션 상태로 바꾼 뒤 라우트 리다이렉트로 접근을 제어한다.
단일 이벤트 루프에서 동작하므로 콜백은 직렬화되며 락이 필요 없다.
다만 이전 identity 로 발행된 프로필 콜백은 세대(generation) 번호로 걸러낸다.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol

from fisio.schemas import UserProfilePublic

logger = logging.getLogger(__name__)

PUBLIC_ROUTE = "/"
SIGNUP_ROUTE = "/signup"
THERAPIST_HOME = "/terapeuta"
PATIENT_HOME = "/paciente"


class GateState(str, Enum):
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    NO_PROFILE = "authenticated-no-profile"
    THERAPIST = "authenticated-therapist"
    PATIENT = "authenticated-patient"


@dataclass(frozen=True)
class GateSnapshot:
    state: GateState
    uid: Optional[str]
    profile: Optional[UserProfilePublic]
    route: str


ProfileCallback = Callable[[Optional[UserProfilePublic]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class ProfileSource(Protocol):
    def watch(self, uid: str, on_snapshot: ProfileCallback, on_error: ErrorCallback) -> Unsubscribe:
        """uid 의 프로필을 실시간 구독. 스냅샷 None 은 프로필 없음."""
        ...


def in_zone(path: str, zone: str) -> bool:
    return path == zone or path.startswith(zone + "/")


def is_auth_route(path: str) -> bool:
    return path == PUBLIC_ROUTE or in_zone(path, SIGNUP_ROUTE)


def redirect_for(state: GateState, path: str) -> Optional[str]:
    """현재 상태에서 path 를 보고 있을 때 이동해야 할 라우트 (없으면 None)"""
    if state == GateState.LOADING:
        return None
    if state == GateState.UNAUTHENTICATED:
        if in_zone(path, THERAPIST_HOME) or in_zone(path, PATIENT_HOME):
            return PUBLIC_ROUTE
        return None
    if state == GateState.NO_PROFILE:
        # 프로필이 없으면 항상 가입 완료 화면으로 보낸다
        return None if path == SIGNUP_ROUTE else SIGNUP_ROUTE
    if state == GateState.THERAPIST:
        if is_auth_route(path) or in_zone(path, PATIENT_HOME):
            return THERAPIST_HOME
        return None
    if is_auth_route(path) or in_zone(path, THERAPIST_HOME):
        return PATIENT_HOME
    return None


class AuthGate:
    """
    명시적 상태 기계. 조합 루트(ClinicApp) 하나가 소유하며, 읽기 전용
    snapshot 과 subscribe/unsubscribe 인터페이스만 노출한다.
    """

    def __init__(
        self,
        profile_source: ProfileSource,
        navigate: Optional[Callable[[str], None]] = None,
        route: str = PUBLIC_ROUTE,
    ) -> None:
        self._source = profile_source
        self._navigate = navigate
        self._state = GateState.LOADING
        self._uid: Optional[str] = None
        self._profile: Optional[UserProfilePublic] = None
        self._route = route
        self._generation = 0
        self._unwatch: Optional[Unsubscribe] = None
        self._listeners: List[Callable[[GateSnapshot], None]] = []

    @property
    def snapshot(self) -> GateSnapshot:
        return GateSnapshot(self._state, self._uid, self._profile, self._route)

    @property
    def state(self) -> GateState:
        return self._state

    def subscribe(self, listener: Callable[[GateSnapshot], None]) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def on_identity_changed(self, uid: Optional[str]) -> None:
        # identity 가 바뀌면 이전 구독을 먼저 해제한다
        self._teardown()
        self._generation += 1
        self._profile = None

        if uid is None:
            self._uid = None
            self._transition(GateState.UNAUTHENTICATED)
            return

        self._uid = uid
        self._transition(GateState.LOADING)
        generation = self._generation
        self._unwatch = self._source.watch(
            uid,
            lambda profile: self._on_profile(generation, uid, profile),
            lambda exc: self._on_profile_error(generation, uid, exc),
        )

    def set_route(self, path: str) -> None:
        self._route = path
        if self._apply_redirect():
            self._notify()

    def can_access(self, path: str) -> bool:
        """역할 전용 데이터를 지금 불러와도 되는지"""
        if in_zone(path, THERAPIST_HOME):
            return self._state == GateState.THERAPIST
        if in_zone(path, PATIENT_HOME):
            return self._state == GateState.PATIENT
        return True

    def close(self) -> None:
        self._teardown()
        self._listeners.clear()

    def _on_profile(self, generation: int, uid: str, profile: Optional[UserProfilePublic]) -> None:
        if generation != self._generation:
            logger.debug("Discarding stale profile snapshot for %s", uid)
            return
        if profile is not None and profile.uid != uid:
            logger.warning("Profile snapshot for %s carries uid %s; ignoring", uid, profile.uid)
            return
        self._profile = profile
        if profile is None:
            self._transition(GateState.NO_PROFILE)
        elif profile.rol == "terapeuta":
            self._transition(GateState.THERAPIST)
        else:
            self._transition(GateState.PATIENT)

    def _on_profile_error(self, generation: int, uid: str, exc: Exception) -> None:
        if generation != self._generation:
            return
        logger.error("Error fetching user profile for %s: %s", uid, exc)
        self._teardown()
        self._generation += 1
        self._uid = None
        self._profile = None
        self._transition(GateState.UNAUTHENTICATED)

    def _teardown(self) -> None:
        if self._unwatch is not None:
            unwatch, self._unwatch = self._unwatch, None
            unwatch()

    def _transition(self, state: GateState) -> None:
        self._state = state
        self._apply_redirect()
        self._notify()

    def _apply_redirect(self) -> bool:
        target = redirect_for(self._state, self._route)
        if target is None or target == self._route:
            return False
        logger.info("Gate %s: redirecting %s -> %s", self._state.value, self._route, target)
        self._route = target
        if self._navigate is not None:
            self._navigate(target)
        return True

    def _notify(self) -> None:
        snap = self.snapshot
        for listener in list(self._listeners):
            listener(snap)
