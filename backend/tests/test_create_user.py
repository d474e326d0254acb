from conftest import EMERGENCY_CONTACT, fetch_identity, count_profiles, login, register


def test_self_registration_patient_without_emergency_contact_is_rejected(client):
    r = client.post(
        "/functions/createUser",
        json={
            "email": "sin.contacto@example.com",
            "nombre": "Marta",
            "rol": "paciente",
            "password": "secret123",
            "informacionMedica": {"contactoEmergenciaTelefono": "555-0199"},
        },
    )
    assert r.status_code == 422
    assert fetch_identity("sin.contacto@example.com") is None
    assert count_profiles() == 0


def test_self_registration_requires_password(client):
    r = client.post(
        "/functions/createUser",
        json={"email": "nopass@example.com", "nombre": "Nora", "rol": "terapeuta"},
    )
    assert r.status_code == 422
    assert fetch_identity("nopass@example.com") is None


def test_self_registration_stamps_role_claim_and_profile(client):
    uid = register(client, "paciente@example.com", "Pedro", "paciente", informacion_medica=EMERGENCY_CONTACT)

    identity = fetch_identity("paciente@example.com")
    assert identity.uid == uid
    assert identity.custom_claims == {"rol": "paciente"}
    assert identity.password_hash

    r = client.get("/usuarios/me", headers=login(client, "paciente@example.com"))
    assert r.status_code == 200
    body = r.json()
    assert body["rol"] == "paciente"
    assert body["informacionMedica"]["contactoEmergencia"] == {"nombre": "Luis", "telefono": "555-0101"}


def test_therapist_creates_patient_without_password(client, therapist):
    _, headers = therapist
    r = client.post(
        "/functions/createUser",
        json={"email": "a@b.com", "nombre": "Ana", "rol": "paciente"},
        headers=headers,
    )
    assert r.status_code == 200, r.text
    uid = r.json()["uid"]

    identity = fetch_identity("a@b.com")
    assert identity.uid == uid
    assert identity.password_hash is None
    assert identity.custom_claims == {"rol": "paciente"}

    profile = client.get(f"/usuarios/{uid}", headers=headers).json()
    assert profile["nombre"] == "Ana"
    assert profile["informacionMedica"] == {
        "contactoEmergencia": {"nombre": "", "telefono": ""},
        "historialMedico": "",
        "alergias": "",
        "medicamentos": "",
    }

    # 비밀번호가 없는 계정은 로그인할 수 없다
    r = client.post("/auth/login", data={"username": "a@b.com", "password": ""})
    assert r.status_code in (401, 422)


def test_duplicate_email_is_rejected_without_new_profile(client, therapist):
    _, headers = therapist
    body = {"email": "a@b.com", "nombre": "Ana", "rol": "paciente"}
    assert client.post("/functions/createUser", json=body, headers=headers).status_code == 200
    profiles_before = count_profiles()

    r = client.post("/functions/createUser", json=body, headers=headers)
    assert r.status_code == 409
    assert r.json()["detail"] == "EMAIL_EXISTS"
    assert count_profiles() == profiles_before


def test_patient_caller_cannot_create_users(client, patient):
    _, headers = patient
    r = client.post(
        "/functions/createUser",
        json={"email": "otro@example.com", "nombre": "Otro", "rol": "paciente"},
        headers=headers,
    )
    assert r.status_code == 403
    assert fetch_identity("otro@example.com") is None


def test_unknown_role_is_rejected(client):
    r = client.post(
        "/functions/createUser",
        json={"email": "admin@example.com", "nombre": "Admin", "rol": "admin", "password": "secret123"},
    )
    assert r.status_code == 422
    assert fetch_identity("admin@example.com") is None


def test_invalid_token_is_not_treated_as_self_registration(client):
    r = client.post(
        "/functions/createUser",
        json={"email": "x@example.com", "nombre": "Xavi", "rol": "paciente"},
        headers={"Authorization": "Bearer not-a-token"},
    )
    assert r.status_code == 401
