from fastapi.testclient import TestClient

from backend.app.main import (
    LOCAL_DEVELOPMENT_ORIGINS,
    _load_allowed_origins_from_env,
    _resolve_allowed_origins,
    _split_raw_origins,
    app,
)


def test_split_raw_origins_accepts_commas_and_whitespace():
    raw = "http://localhost:5173, http://127.0.0.1:5173 https://shop.example.com"
    assert _split_raw_origins(raw) == [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "https://shop.example.com",
    ]


def test_load_allowed_origins_from_env_strips_trailing_slashes(monkeypatch):
    monkeypatch.setenv(
        "BACKEND_ALLOWED_ORIGINS",
        "https://shop.example.com/ https://admin.example.com",
    )

    origins = _load_allowed_origins_from_env()

    assert origins == [
        "https://admin.example.com",
        "https://shop.example.com",
    ]


def test_resolved_origins_always_include_local_dev_servers(monkeypatch):
    monkeypatch.setenv("BACKEND_ALLOWED_ORIGINS", "https://shop.example.com")

    origins = _resolve_allowed_origins()

    assert "https://shop.example.com" in origins
    assert LOCAL_DEVELOPMENT_ORIGINS <= set(origins)


def test_resellers_endpoint_includes_cors_headers_for_local_dev_origin():
    client = TestClient(app)

    response = client.options(
        "/api/resellers/",
        headers={
            "Origin": "http://localhost:5173",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.status_code == 200
    assert response.headers.get("access-control-allow-origin") == "http://localhost:5173"
