import asyncio
import json

from starlette.requests import Request

from app.errors import CORRELATION_HEADER, unhandled_exception_handler


def make_request(path="/boom"):
    scope = {
        "type": "http",
        "method": "GET",
        "path": path,
        "raw_path": path.encode(),
        "query_string": b"",
        "headers": [],
        "app": None,
    }
    return Request(scope)


def test_unhandled_error_is_opaque():
    response = asyncio.run(unhandled_exception_handler(make_request(), RuntimeError("db password is hunter2")))

    assert response.status_code == 500
    body = json.loads(response.body)
    assert body["detail"] == "Internal server error"
    assert body["error_code"] == "SERVER_ERROR"
    assert body["correlation_id"]
    assert "hunter2" not in response.body.decode()
    assert response.headers[CORRELATION_HEADER] == body["correlation_id"]


def test_responses_carry_correlation_id(client):
    resp = client.get("/health", headers={CORRELATION_HEADER: "abc123"})
    assert resp.status_code == 200
    assert resp.headers[CORRELATION_HEADER] == "abc123"


def test_root_and_health(client):
    assert client.get("/").json() == {"message": "Interactive Learning Platform API"}
    assert client.get("/health").json() == {"status": "ok"}


def test_http_errors_keep_detail(client):
    resp = client.get("/api/forum/discussions/not-an-id")
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Invalid discussion ID"}


def test_validation_error_shape(client, user):
    resp = client.post("/api/forum/discussions", json={"title": "x"}, headers=user["headers"])
    assert resp.status_code == 400
    body = resp.json()
    assert body["detail"].startswith("course")
    assert {tuple(e["loc"]) for e in body["errors"]} >= {("body", "course"), ("body", "lesson")}
