from fastapi import FastAPI
from fastapi.testclient import TestClient

from roofdesk.errors import (
    AlreadyExistsError,
    AppError,
    FailedPreconditionError,
    InvalidArgumentError,
    NotFoundError,
    UnauthenticatedError,
    setup_exception_handlers,
)


def _app() -> FastAPI:
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/missing")
    async def missing():
        raise NotFoundError("Claim not found", details={"claim_id": 7})

    @app.get("/precondition")
    async def precondition():
        raise FailedPreconditionError("Claim has no photos")

    @app.get("/boom")
    async def boom():
        raise RuntimeError("database exploded")

    return app


def test_status_codes_map_to_http():
    assert InvalidArgumentError("x").http_status == 400
    assert UnauthenticatedError("x").http_status == 401
    assert NotFoundError("x").http_status == 404
    assert AlreadyExistsError("x").http_status == 409
    assert FailedPreconditionError("x").http_status == 412
    assert AppError("x").http_status == 500
    assert AppError("x", status="unavailable").http_status == 503


def test_to_dict_omits_empty_details():
    assert InvalidArgumentError("bad mode").to_dict() == {
        "status": "invalid-argument",
        "message": "bad mode",
    }


def test_app_errors_render_as_error_envelope():
    client = TestClient(_app())
    response = client.get("/missing")
    assert response.status_code == 404
    assert response.json() == {
        "error": {"status": "not-found", "message": "Claim not found", "details": {"claim_id": 7}}
    }

    response = client.get("/precondition")
    assert response.status_code == 412
    assert response.json()["error"]["status"] == "failed-precondition"


def test_unhandled_errors_render_as_internal():
    client = TestClient(_app(), raise_server_exceptions=False)
    response = client.get("/boom")
    assert response.status_code == 500
    body = response.json()["error"]
    assert body["status"] == "internal"
    assert body["message"] == "Internal server error"
    assert body["details"]["error_type"] == "RuntimeError"

    second = client.get("/boom").json()["error"]["details"]["error_id"]
    assert len(body["details"]["error_id"]) == 32
    assert int(body["details"]["error_id"], 16) >= 0
    assert second != body["details"]["error_id"]
