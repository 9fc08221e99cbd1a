# backend/tests/test_health.py


def test_liveness(client):
    r = client.get("/api/v1/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["service"] == "evently-backend"


def test_db_readiness(client):
    r = client.get("/api/v1/health/db")
    assert r.status_code == 200
    assert r.json()["db"] == "up"


def test_root(client):
    r = client.get("/")
    assert r.status_code == 200
