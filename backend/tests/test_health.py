def test_health_reports_configured(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True, "missing": []}


def test_db_health(client):
    r = client.get("/db-health")
    assert r.status_code == 200
    assert r.json()["result"] == 1


def test_missing_settings_are_reported(client, monkeypatch):
    monkeypatch.delenv("SECRET_KEY")
    body = client.get("/health").json()
    assert body["ok"] is False
    assert body["missing"] == ["SECRET_KEY"]
