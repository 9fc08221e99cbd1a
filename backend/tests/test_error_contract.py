# backend/tests/test_error_contract.py

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.testclient import TestClient

# Real handlers, not FastAPI defaults
from evently.core.errors import ErrorCode, http_error
from evently.main import http_exception_handler, request_observability, validation_exception_handler


def _app_with_handlers() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    return app


def test_http_exception_detail_dict_is_preserved_and_merged():
    app = _app_with_handlers()
    r = APIRouter()

    @r.get("/boom")
    def boom():
        raise HTTPException(
            status_code=400,
            detail={"type": "schema_error", "missing": ["guest_name"], "message": "Bad schema"},
        )

    app.include_router(r, prefix="/api/v1")

    resp = TestClient(app).get("/api/v1/boom")
    assert resp.status_code == 400

    body = resp.json()
    assert body["code"] == "HTTP_400"
    assert body["detail"]["code"] == "HTTP_400"
    assert body["detail"]["type"] == "schema_error"
    assert body["detail"]["missing"] == ["guest_name"]
    assert body["message"] == "Bad schema"
    assert isinstance(body["request_id"], str) and body["request_id"]
    assert resp.headers["X-Request-ID"] == body["request_id"]


def test_domain_error_code_reaches_detail():
    app = _app_with_handlers()

    @app.get("/gone")
    def gone():
        raise http_error(404, ErrorCode.INVITE_EXPIRED, "This invite has expired.", invite_id=7)

    body = TestClient(app).get("/gone").json()
    assert body["code"] == "HTTP_404"
    assert body["detail"] == {"code": "INVITE_EXPIRED", "message": "This invite has expired.", "invite_id": 7}


def test_string_detail_keeps_conservative_shape():
    app = _app_with_handlers()

    @app.get("/plain")
    def plain():
        raise HTTPException(status_code=403, detail="Nope")

    body = TestClient(app).get("/plain").json()
    assert body["code"] == "HTTP_403"
    assert body["message"] == "Nope"
    assert body["detail"] == {"code": "HTTP_403", "message": "Nope"}


def test_validation_error_contract():
    app = _app_with_handlers()

    @app.get("/needs-int")
    def needs_int(n: int):
        return {"n": n}

    resp = TestClient(app).get("/needs-int", params={"n": "abc"})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["errors"][0]["loc"] == ["query", "n"]


def test_full_app_echoes_incoming_request_id(client):
    resp = client.get("/api/v1/invites/lookup", headers={"X-Request-ID": "req-abc-123"})
    assert resp.status_code == 400
    assert resp.headers["X-Request-ID"] == "req-abc-123"
    assert resp.json()["request_id"] == "req-abc-123"


def test_unhandled_error_becomes_internal_error_payload(caplog):
    app = _app_with_handlers()
    app.middleware("http")(request_observability)

    @app.get("/crash")
    def crash():
        raise RuntimeError("kaboom")

    with caplog.at_level("ERROR", logger="evently"):
        resp = TestClient(app, raise_server_exceptions=False).get("/crash")

    assert resp.status_code == 500
    body = resp.json()
    assert body["code"] == "INTERNAL_ERROR"
    assert body["request_id"] == resp.headers["X-Request-ID"]
    assert any("Unhandled error" in rec.getMessage() for rec in caplog.records)
