"""Unit tests for framework-level error envelope handlers."""

from __future__ import annotations

from fastapi import Depends
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.error_handlers import register_error_handlers
from app.core.errors import ErrorCode


def _deny() -> None:
    raise ErrorCode.UNAUTHORIZED.new_error(details="Authorization header is missing")


def _build_client() -> TestClient:
    app = FastAPI()
    register_error_handlers(app)

    @app.get("/query")
    def query(limit: int) -> dict[str, int]:
        return {"limit": limit}

    @app.get("/classified")
    def classified() -> None:
        raise ErrorCode.NOT_FOUND.new_error(details="User not found")

    @app.get("/guarded", dependencies=[Depends(_deny)])
    def guarded() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/http")
    def http_error() -> None:
        raise StarletteHTTPException(status_code=404, detail="Client not found")

    @app.get("/boom")
    def boom() -> None:
        raise RuntimeError("database password is hunter2")

    return TestClient(app, raise_server_exceptions=False)


def test_request_validation_errors_are_normalized_to_envelope() -> None:
    client = _build_client()

    response = client.get("/query")

    assert response.status_code == 400
    payload = response.json()
    assert payload["error"]["code"] == "BAD_REQUEST"
    assert payload["error"]["message"] == "The request was invalid or malformed."
    assert payload["error"]["details"][0]["field"] == "limit"
    assert payload["error"]["details"][0]["rule"] == "missing"
    assert "data" not in payload


def test_classified_errors_use_taxonomy_status() -> None:
    client = _build_client()

    response = client.get("/classified")

    assert response.status_code == 404
    assert response.json() == {
        "error": {
            "code": "NOT_FOUND",
            "message": "The requested resource could not be found.",
            "details": "User not found",
        },
        "message": "The requested resource could not be found.",
    }


def test_classified_errors_from_dependencies_use_shared_envelope() -> None:
    client = _build_client()

    response = client.get("/guarded")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"
    assert response.json()["error"]["details"] == "Authorization header is missing"


def test_http_exceptions_map_to_taxonomy_codes() -> None:
    client = _build_client()

    response = client.get("/http")

    assert response.status_code == 404
    payload = response.json()
    assert payload["error"]["code"] == "NOT_FOUND"
    assert payload["error"]["details"] == "Client not found"


def test_unknown_routes_render_not_found_envelope() -> None:
    client = _build_client()

    response = client.get("/does-not-exist")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_method_not_allowed_keeps_framework_status() -> None:
    client = _build_client()

    response = client.delete("/query")

    assert response.status_code == 405
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_unhandled_exceptions_do_not_leak_details() -> None:
    client = _build_client()

    response = client.get("/boom")

    assert response.status_code == 500
    payload = response.json()
    assert payload["error"]["code"] == "INTERNAL_SERVER_ERROR"
    assert "hunter2" not in response.text
