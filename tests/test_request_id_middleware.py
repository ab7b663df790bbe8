from __future__ import annotations

from fastapi.testclient import TestClient

from etags.core.app_factory import create_app


def _client() -> TestClient:
    return TestClient(create_app())


def test_preserves_incoming_request_id_header():
    resp = _client().get("/health", headers={"X-Request-ID": "scan-req-123"})

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID") == "scan-req-123"


def test_generates_request_id_when_missing():
    resp = _client().get("/health")

    assert resp.status_code == 200
    assert resp.headers.get("X-Request-ID")
    assert resp.headers.get("X-Request-Duration-ms") is not None


def test_error_body_carries_request_id():
    resp = _client().post(
        "/api/scan/claim-nft",
        json={"tagCode": "ETG-0001"},
        headers={"X-Request-ID": "claim-req-9"},
    )

    assert resp.status_code == 403
    assert resp.json()["error"]["request_id"] == "claim-req-9"
    assert resp.headers["X-Request-ID"] == "claim-req-9"


def test_unhandled_error_body_carries_request_id():
    app = create_app()

    @app.get("/boom")
    async def boom():
        raise RuntimeError("signer exploded")

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/boom", headers={"X-Request-ID": "boom-req-1"})

    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["code"] == "internal_server_error"
    assert error["request_id"] == "boom-req-1"
