"""The deployment entry point starts uvicorn on the configured port."""

import os
import runpy

import uvicorn

from formation_hub import config

START_SERVER = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "start_server.py")


def test_runs_app_on_configured_port(monkeypatch):
    calls = []
    monkeypatch.setattr(config, "PORT", 9123)
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

    runpy.run_path(START_SERVER, run_name="__main__")

    assert calls[0][0] == "formation_hub.app:app"
    assert calls[0][1]["port"] == 9123
