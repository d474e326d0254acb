import pytest

from conftest import EMERGENCY_CONTACT, login, register

VIDEOS = [
    {"titulo": "Movilidad de cadera", "youtubeUrl": "https://www.youtube.com/watch?v=abc"},
    {"titulo": "Puente de glúteo", "youtubeUrl": "https://youtu.be/def"},
]


@pytest.fixture
def galeria(client, therapist, patient):
    r = client.post(
        "/galerias",
        json={
            "nombre": "Rodilla fase 1",
            "descripcion": "Ejercicios para la primera semana",
            "videos": VIDEOS,
            "pacientesAsignados": [patient[0]],
        },
        headers=therapist[1],
    )
    assert r.status_code == 201, r.text
    return r.json()


def test_gallery_keeps_video_order(galeria, therapist, patient):
    assert [v["titulo"] for v in galeria["videos"]] == ["Movilidad de cadera", "Puente de glúteo"]
    assert galeria["creadaPor"] == therapist[0]
    assert galeria["pacientesAsignados"] == [patient[0]]


def test_assigned_patient_sees_gallery(client, galeria, patient):
    assert [g["id"] for g in client.get("/galerias", headers=patient[1]).json()] == [galeria["id"]]


def test_unassigned_patient_cannot_read(client, galeria):
    register(client, "otro@example.com", "Otro", "paciente", informacion_medica=EMERGENCY_CONTACT)
    headers = login(client, "otro@example.com")
    assert client.get("/galerias", headers=headers).json() == []
    assert client.get(f"/galerias/{galeria['id']}", headers=headers).status_code == 403


def test_reassign_patients(client, galeria, therapist, patient):
    other_uid = register(client, "otro@example.com", "Otro", "paciente", informacion_medica=EMERGENCY_CONTACT)
    r = client.put(
        f"/galerias/{galeria['id']}/pacientes", json={"pacientesAsignados": [other_uid]}, headers=therapist[1]
    )
    assert r.status_code == 200
    assert r.json()["pacientesAsignados"] == [other_uid]
    assert client.get("/galerias", headers=patient[1]).json() == []


def test_gallery_validation(client, therapist, patient):
    body = {
        "nombre": "Hombro",
        "descripcion": "Rutina de hombro congelado",
        "videos": [{"titulo": "Péndulo", "youtubeUrl": "youtube.com/watch?v=1"}],
        "pacientesAsignados": [patient[0]],
    }
    assert client.post("/galerias", json=body, headers=therapist[1]).status_code == 422

    body["videos"] = VIDEOS
    body["pacientesAsignados"] = ["no-existe"]
    assert client.post("/galerias", json=body, headers=therapist[1]).status_code == 404
