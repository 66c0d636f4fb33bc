from __future__ import annotations

import importlib

import pytest


def _load_app(monkeypatch, tmp_path):
    monkeypatch.setenv("SOURSOUND_FFMPEG_PATH", str(tmp_path / "missing" / "ffmpeg"))
    monkeypatch.delenv("SOURSOUND_DISCORD_TOKEN", raising=False)
    monkeypatch.delenv("DISCORD_BOT_TOKEN", raising=False)
    module = importlib.import_module("soursound.main")
    return importlib.reload(module)


def test_health_endpoint_reports_degraded(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_app(monkeypatch, tmp_path)
    with TestClient(module.app) as client:
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        payload = resp.json()
        assert payload["status"] == "degraded"
        assert payload["ffmpeg_available"] is False
        assert payload["gateway_connected"] is False
        assert payload["session_count"] == 0
        assert payload["live_generators"] == 0
        assert "ffmpeg not found" in payload["detail"]


def test_presets_endpoint(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_app(monkeypatch, tmp_path)
    with TestClient(module.app) as client:
        resp = client.get("/api/v1/presets")
        assert resp.status_code == 200
        ids = [p["id"] for p in resp.json()]
        assert ids == ["deep-rumble", "soft-breeze", "smooth-brown", "wind-tunnel", "bright-hiss"]
        soft = resp.json()[1]
        assert soft["highpass_hz"] == 0
        assert soft["noise_color"] == "pink"


def test_session_endpoints(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_app(monkeypatch, tmp_path)
    module.registry.get_or_create(321)
    with TestClient(module.app) as client:
        listed = client.get("/api/v1/sessions")
        assert listed.status_code == 200
        assert [s["session_key"] for s in listed.json()] == [321]

        one = client.get("/api/v1/sessions/321")
        assert one.status_code == 200
        payload = one.json()
        assert payload["active_preset"] == "smooth-brown"
        assert payload["generator_running"] is False
        assert payload["sink_attached"] is False
        assert payload["remote_view"] is None

        missing = client.get("/api/v1/sessions/999")
        assert missing.status_code == 404


def test_sessions_websocket_sends_snapshot(monkeypatch, tmp_path):
    testclient_mod = pytest.importorskip("fastapi.testclient")
    TestClient = testclient_mod.TestClient
    module = _load_app(monkeypatch, tmp_path)
    module.registry.get_or_create(5)
    module.registry.get_or_create(6)
    with TestClient(module.app) as client:
        with client.websocket_connect("/ws/sessions?session_key=6") as ws:
            event = ws.receive_json()
            assert event["type"] == "session_changed"
            assert event["data"]["session_key"] == 6
            assert module.event_hub.listener_count() == 1
