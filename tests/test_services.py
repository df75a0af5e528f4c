import importlib
import logging
import sys

import pytest
from fastapi.testclient import TestClient

import services.canary.app as canary_module
import services.stable.app as stable_module
from services.stable.app import app as stable_app, MESSAGE as STABLE_MESSAGE
from services.canary.app import app as canary_app, MESSAGE as CANARY_MESSAGE


@pytest.mark.parametrize(
    "app,expected",
    [
        (stable_app, "Hello from the STABLE version (v1)"),
        (canary_app, "Hello from the CANARY version (v2)"),
    ],
)
def test_root_returns_fixed_version_string(app, expected):
    client = TestClient(app)
    r = client.get("/")
    assert r.status_code == 200
    assert r.text == expected
    assert r.headers["content-type"].startswith("text/plain")


@pytest.mark.parametrize("app", [stable_app, canary_app])
def test_repeated_requests_are_byte_identical(app):
    client = TestClient(app)
    bodies = {client.get("/").content for _ in range(25)}
    assert len(bodies) == 1


def test_versions_differ_only_by_message():
    assert STABLE_MESSAGE != CANARY_MESSAGE
    assert "(v1)" in STABLE_MESSAGE
    assert "(v2)" in CANARY_MESSAGE


@pytest.mark.parametrize("app", [stable_app, canary_app])
def test_no_other_routes(app):
    client = TestClient(app)
    assert client.get("/health").status_code == 404
    assert client.get("/version").status_code == 404
    assert client.post("/").status_code == 405


@pytest.mark.parametrize("module", [stable_module, canary_module])
def test_port_is_fixed_regardless_of_environment(monkeypatch, module):
    monkeypatch.setenv("PORT", "9999")
    reloaded = importlib.reload(module)
    assert reloaded.PORT == 8080


@pytest.mark.parametrize("app,track,version", [(stable_app, "stable", "v1"), (canary_app, "canary", "v2")])
def test_startup_announces_readiness_on_stdout(app, track, version, capsys):
    with TestClient(app):
        pass
    captured = capsys.readouterr()
    line = f"{track} responder ({version}) ready on port 8080"
    assert line in captured.out
    assert line not in captured.err


def test_responder_logger_writes_to_stdout():
    handlers = [h for h in logging.getLogger("responder").handlers if isinstance(h, logging.StreamHandler)]
    assert handlers
    assert all(h.stream is sys.stdout for h in handlers)
