import asyncio
from urllib.parse import urlparse, parse_qs

from fisio.models import UserProfile
from fisio.api.routers import auth as auth_router
from fisio.services.auth_service import create_password_reset_token

from conftest import TestingSessionLocal, fetch_identity, login


def test_login_and_me(client, therapist):
    uid, headers = therapist
    r = client.get("/auth/me", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert body["uid"] == uid
    assert body["customClaims"] == {"rol": "terapeuta"}


def test_login_with_wrong_password(client, therapist):
    r = client.post("/auth/login", data={"username": "terapeuta@example.com", "password": "wrong-pass"})
    assert r.status_code == 401


def test_refresh_issues_working_token(client, patient):
    _, headers = patient
    r = client.post("/auth/refresh", headers=headers)
    assert r.status_code == 200
    refreshed = {"Authorization": f"Bearer {r.json()['access_token']}"}
    assert client.get("/usuarios/me", headers=refreshed).status_code == 200


def test_logout_revokes_existing_tokens(client, patient):
    _, headers = patient
    assert client.post("/auth/logout", headers=headers).status_code == 204
    assert client.get("/auth/me", headers=headers).status_code == 401


def _create_patient_without_password(client, t_headers, email="a@b.com"):
    r = client.post(
        "/functions/createUser",
        json={"email": email, "nombre": "Ana", "rol": "paciente"},
        headers=t_headers,
    )
    assert r.status_code == 200, r.text
    return r.json()["uid"]


def _token_from_link(link):
    return parse_qs(urlparse(link).query)["token"][0]


def test_therapist_link_gives_access_to_created_account(client, therapist):
    _, t_headers = therapist
    uid = _create_patient_without_password(client, t_headers)

    r = client.post(f"/usuarios/{uid}/password-reset-link", headers=t_headers)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["expiresInMinutes"] == 30
    assert body["emailSent"] is False
    assert _token_from_link(body["resetLink"]) == body["token"]

    r = client.post("/auth/password-reset/confirm", json={"token": body["token"], "new_password": "nueva123"})
    assert r.status_code == 204

    headers = login(client, "a@b.com", "nueva123")
    assert client.get("/usuarios/me", headers=headers).json()["nombre"] == "Ana"


def test_password_reset_request_mails_a_working_link(client, therapist, monkeypatch):
    _, t_headers = therapist
    _create_patient_without_password(client, t_headers)

    sent = []

    async def fake_send(email, link):
        sent.append((email, link))
        return True
    monkeypatch.setattr(auth_router.mailer, "send_password_reset_email", fake_send)

    r = client.post("/auth/password-reset", json={"email": "a@b.com"})
    assert r.status_code == 202
    assert [email for email, _ in sent] == ["a@b.com"]

    token = _token_from_link(sent[0][1])
    r = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "nueva123"})
    assert r.status_code == 204
    login(client, "a@b.com", "nueva123")


def test_reset_token_cannot_be_used_twice(client, therapist):
    _, t_headers = therapist
    uid = _create_patient_without_password(client, t_headers)
    token = client.post(f"/usuarios/{uid}/password-reset-link", headers=t_headers).json()["token"]

    r = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "nueva123"})
    assert r.status_code == 204
    r = client.post("/auth/password-reset/confirm", json={"token": token, "new_password": "otra4567"})
    assert r.status_code == 400

    # 두 번째 시도는 비밀번호를 바꾸지 않는다
    login(client, "a@b.com", "nueva123")


def test_reset_link_only_for_patients(client, therapist, patient):
    t_uid, t_headers = therapist
    _, p_headers = patient
    assert client.post(f"/usuarios/{t_uid}/password-reset-link", headers=t_headers).status_code == 403
    assert client.post("/usuarios/nope/password-reset-link", headers=t_headers).status_code == 404

    p_uid, _ = patient
    assert client.post(f"/usuarios/{p_uid}/password-reset-link", headers=p_headers).status_code == 403


def test_password_reset_does_not_reveal_unknown_email(client):
    r = client.post("/auth/password-reset", json={"email": "nadie@example.com"})
    assert r.status_code == 202


def test_reset_token_is_not_an_access_token(client, therapist):
    token = create_password_reset_token(fetch_identity("terapeuta@example.com"))
    r = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


def test_user_without_profile_gets_404_on_profile(client, therapist):
    uid, headers = therapist
    # 자가 등록으로 만든 identity 에서 프로필만 지운다
    async def _drop_profile():
        async with TestingSessionLocal() as session:
            await session.delete(await session.get(UserProfile, uid))
            await session.commit()
    asyncio.run(_drop_profile())

    r = client.get("/usuarios/me", headers=headers)
    assert r.status_code == 404
    assert client.get("/auth/me", headers=headers).status_code == 200
