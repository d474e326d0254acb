import pytest

from fisio.schemas import ProgressSummary

AVANCE = {
    "dolorInicial": 7,
    "dolorFinal": 4,
    "ubicacionDolor": "rodilla derecha",
    "ejerciciosRealizados": "sentadillas, puente",
    "diasEjercicio": 5,
    "ejerciciosDificiles": "sentadillas profundas",
    "movilidadPercibida": "mejor que la semana pasada",
    "fatiga": 3,
    "limitacionesFuncionales": "subir escaleras",
    "estadoAnimo": "bien",
    "motivacion": 8,
    "comentarioPaciente": "",
}


@pytest.fixture
def avance(client, patient, expediente):
    _, headers = patient
    r = client.post("/avances", json=AVANCE, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_patient_report_round_trip(client, patient, avance, expediente):
    patient_uid, headers = patient
    assert avance["tipoRegistro"] == "auto"
    assert avance["registradoPor"] == patient_uid
    assert avance["expedienteId"] == expediente["id"]
    assert avance["terapeutaUid"] == expediente["terapeutaUid"]

    stored = client.get(f"/avances/{avance['id']}", headers=headers).json()
    for key, value in AVANCE.items():
        assert stored[key] == value


def test_patient_without_record_cannot_report(client, patient):
    _, headers = patient
    r = client.post("/avances", json=AVANCE, headers=headers)
    assert r.status_code == 404


def test_report_fields_are_validated(client, patient, expediente):
    _, headers = patient
    r = client.post("/avances", json={**AVANCE, "diasEjercicio": 8}, headers=headers)
    assert r.status_code == 422
    r = client.post("/avances", json={**AVANCE, "estadoAnimo": "excelente"}, headers=headers)
    assert r.status_code == 422


def test_therapist_lists_reports_by_record(client, therapist, avance, expediente):
    _, headers = therapist
    listed = client.get("/avances", params={"expedienteId": expediente["id"]}, headers=headers).json()
    assert [a["id"] for a in listed] == [avance["id"]]
    assert client.get("/avances", params={"expedienteId": "otro"}, headers=headers).json() == []


def test_therapist_cannot_submit_self_report(client, therapist, expediente):
    _, headers = therapist
    assert client.post("/avances", json=AVANCE, headers=headers).status_code == 403


def test_summary_for_therapist(client, therapist, avance, monkeypatch):
    _, headers = therapist
    seen = {}

    async def fake_summary(payload):
        seen.update(payload)
        return ProgressSummary(resumen="Mejora del dolor.", puntos_clave=["Dolor 7 → 4"], sugerencia="Progresar carga.")

    monkeypatch.setattr("fisio.api.routers.avances.generate_progress_summary", fake_summary)
    r = client.post(f"/avances/{avance['id']}/resumen", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"resumen": "Mejora del dolor.", "puntosClave": ["Dolor 7 → 4"], "sugerencia": "Progresar carga."}
    assert seen["dolorInicial"] == 7


def test_summary_upstream_failure_is_502(client, therapist, avance, monkeypatch):
    _, headers = therapist

    async def broken(payload):
        raise RuntimeError("OpenAI error: boom")

    monkeypatch.setattr("fisio.api.routers.avances.generate_progress_summary", broken)
    assert client.post(f"/avances/{avance['id']}/resumen", headers=headers).status_code == 502


def test_patient_cannot_request_summary(client, patient, avance):
    _, headers = patient
    assert client.post(f"/avances/{avance['id']}/resumen", headers=headers).status_code == 403
