import pytest

from fisio.client.gate import AuthGate, GateState, redirect_for
from fisio.schemas import UserProfilePublic


class FakeProfileSource:
    """watch 호출을 기록하고 테스트가 원하는 시점에 스냅샷을 흘려보낸다."""

    def __init__(self):
        self.watches = []

    def watch(self, uid, on_snapshot, on_error):
        entry = {"uid": uid, "on_snapshot": on_snapshot, "on_error": on_error, "active": True}
        self.watches.append(entry)

        def unsubscribe():
            entry["active"] = False
        return unsubscribe

    def emit(self, profile, index=-1):
        self.watches[index]["on_snapshot"](profile)

    def fail(self, exc, index=-1):
        self.watches[index]["on_error"](exc)


def _profile(uid, rol):
    return UserProfilePublic(uid=uid, nombre="Nombre", email=f"{uid}@example.com", rol=rol)


@pytest.fixture
def source():
    return FakeProfileSource()


@pytest.fixture
def routes():
    return []


@pytest.fixture
def gate(source, routes):
    return AuthGate(source, navigate=routes.append)


def test_starts_loading_without_redirect(gate, routes):
    gate.set_route("/terapeuta")
    assert gate.state == GateState.LOADING
    assert routes == []
    assert not gate.can_access("/terapeuta")
    assert not gate.can_access("/paciente")


def test_signed_out_user_leaves_protected_zone(gate, routes):
    gate.set_route("/paciente/avances")
    gate.on_identity_changed(None)
    assert gate.snapshot.state == GateState.UNAUTHENTICATED
    assert routes == ["/"]


def test_therapist_lands_on_therapist_home(gate, source, routes):
    gate.on_identity_changed("t1")
    assert gate.state == GateState.LOADING
    source.emit(_profile("t1", "terapeuta"))
    snap = gate.snapshot
    assert snap.state == GateState.THERAPIST
    assert snap.uid == "t1"
    assert snap.route == "/terapeuta"
    assert routes == ["/terapeuta"]


def test_patient_is_kept_out_of_therapist_zone(gate, source, routes):
    gate.set_route("/terapeuta/pacientes")
    gate.on_identity_changed("p1")
    source.emit(_profile("p1", "paciente"))
    assert gate.state == GateState.PATIENT
    assert routes == ["/paciente"]
    assert not gate.can_access("/terapeuta/pacientes")
    assert gate.can_access("/paciente/galerias")

    gate.set_route("/terapeuta")
    assert gate.snapshot.route == "/paciente"


def test_therapist_is_kept_out_of_patient_zone(gate, source, routes):
    gate.on_identity_changed("t1")
    source.emit(_profile("t1", "terapeuta"))
    gate.set_route("/paciente")
    assert gate.snapshot.route == "/terapeuta"


def test_missing_profile_goes_to_signup(gate, source, routes):
    gate.on_identity_changed("u1")
    source.emit(None)
    assert gate.state == GateState.NO_PROFILE
    assert routes == ["/signup"]

    gate.set_route("/paciente")
    assert gate.snapshot.route == "/signup"


def test_profile_completion_moves_to_role_home(gate, source, routes):
    gate.on_identity_changed("u1")
    source.emit(None)
    source.emit(_profile("u1", "paciente"))
    assert gate.state == GateState.PATIENT
    assert routes == ["/signup", "/paciente"]


def test_stale_snapshot_from_previous_identity_is_discarded(gate, source):
    gate.on_identity_changed("a")
    gate.on_identity_changed("b")
    assert source.watches[0]["active"] is False

    # a 의 조회가 늦게 도착
    source.emit(_profile("a", "terapeuta"), index=0)
    assert gate.state == GateState.LOADING
    assert gate.snapshot.uid == "b"

    source.emit(_profile("b", "paciente"), index=1)
    assert gate.state == GateState.PATIENT


def test_sign_out_discards_pending_snapshot(gate, source):
    gate.on_identity_changed("a")
    gate.on_identity_changed(None)
    source.emit(_profile("a", "terapeuta"), index=0)
    assert gate.state == GateState.UNAUTHENTICATED
    assert gate.snapshot.profile is None


def test_profile_error_signs_out(gate, source, routes):
    gate.set_route("/paciente")
    gate.on_identity_changed("p1")
    source.fail(RuntimeError("permission denied"))
    assert gate.state == GateState.UNAUTHENTICATED
    assert source.watches[0]["active"] is False
    assert routes == ["/"]


def test_subscribers_receive_snapshots_until_unsubscribed(gate, source):
    seen = []
    unsubscribe = gate.subscribe(seen.append)
    gate.on_identity_changed("t1")
    source.emit(_profile("t1", "terapeuta"))
    unsubscribe()
    gate.on_identity_changed(None)
    assert [s.state for s in seen] == [GateState.LOADING, GateState.THERAPIST]


@pytest.mark.parametrize(
    "state, path, expected",
    [
        (GateState.LOADING, "/terapeuta", None),
        (GateState.UNAUTHENTICATED, "/", None),
        (GateState.UNAUTHENTICATED, "/signup", None),
        (GateState.UNAUTHENTICATED, "/terapeuta/agenda", "/"),
        (GateState.THERAPIST, "/signup", "/terapeuta"),
        (GateState.THERAPIST, "/terapeuta/agenda", None),
        (GateState.PATIENT, "/", "/paciente"),
        (GateState.PATIENT, "/terapeutas", None),
        (GateState.NO_PROFILE, "/", "/signup"),
    ],
)
def test_redirect_rules(state, path, expected):
    assert redirect_for(state, path) == expected
