from conftest import login, register


def test_create_record_defaults(client, expediente, therapist, patient):
    assert expediente["descripcion"] == "Expediente inicial"
    assert expediente["terapeutaUid"] == therapist[0]
    assert expediente["pacienteUid"] == patient[0]


def test_record_requires_existing_patient(client, therapist):
    _, headers = therapist
    r = client.post("/expedientes", json={"pacienteUid": therapist[0]}, headers=headers)
    assert r.status_code == 404


def test_lists_are_scoped_by_role(client, therapist, patient, expediente):
    assert [e["id"] for e in client.get("/expedientes", headers=therapist[1]).json()] == [expediente["id"]]
    assert [e["id"] for e in client.get("/expedientes", headers=patient[1]).json()] == [expediente["id"]]

    register(client, "otra@example.com", "Dra. Otra", "terapeuta")
    other = login(client, "otra@example.com")
    assert client.get("/expedientes", headers=other).json() == []
    assert client.get(f"/expedientes/{expediente['id']}", headers=other).status_code == 403


def test_therapist_updates_clinical_fields(client, therapist, patient, expediente):
    r = client.patch(
        f"/expedientes/{expediente['id']}",
        json={"diagnostico": "Tendinopatía rotuliana", "planTratamiento": "Excéntricos 3x/semana"},
        headers=therapist[1],
    )
    assert r.status_code == 200
    assert r.json()["diagnostico"] == "Tendinopatía rotuliana"

    seen_by_patient = client.get(f"/expedientes/{expediente['id']}", headers=patient[1]).json()
    assert seen_by_patient["planTratamiento"] == "Excéntricos 3x/semana"
    assert client.patch(
        f"/expedientes/{expediente['id']}", json={"diagnostico": "x"}, headers=patient[1]
    ).status_code == 403


def test_empty_update_is_rejected(client, therapist, expediente):
    r = client.patch(f"/expedientes/{expediente['id']}", json={}, headers=therapist[1])
    assert r.status_code == 400
