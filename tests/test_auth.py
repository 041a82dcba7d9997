from __future__ import annotations

import base64
import json
import time
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from formation_hub import auth
from formation_hub.database import UserProfile


def test_token_round_trip():
    token = auth.create_token({"id": 1001, "username": "odie", "global_name": "Odie", "avatar": "abc"})
    payload = auth.decode_token(token)
    assert payload["sub"] == "1001"
    assert payload["username"] == "Odie"
    assert payload["avatar"] == "abc"


def test_tampered_token_is_rejected():
    token = auth.create_token({"id": "1001", "username": "odie"})
    payload_b64, sig = token.split(".")
    forged = base64.urlsafe_b64encode(json.dumps({"sub": "1", "exp": 2**40}).encode()).decode()
    assert auth.decode_token(f"{forged}.{sig}") is None
    assert auth.decode_token("garbage") is None


def test_non_ascii_token_is_rejected():
    assert auth.decode_token("abc.\xe9") is None
    assert auth.decode_token("\xe9t\xe9.abc") is None


def test_non_ascii_bearer_header_is_treated_as_anonymous(client):
    headers = {"Authorization": "Bearer abc.\xe9".encode("latin-1")}
    assert client.get("/api/search", headers=headers).status_code == 200
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_expired_token_is_rejected(monkeypatch):
    token = auth.create_token({"id": "1001", "username": "odie"})
    real_time = time.time
    monkeypatch.setattr(auth.time, "time", lambda: real_time() + auth.SESSION_EXPIRY + 10)
    assert auth.decode_token(token) is None


def test_me_requires_token(client, auth_headers):
    assert client.get("/api/auth/me").status_code == 401

    resp = client.get("/api/auth/me", headers=auth_headers("1001", "Odie"))
    assert resp.status_code == 200
    assert resp.json()["id"] == "1001"


def test_login_unconfigured_returns_503(client, monkeypatch):
    monkeypatch.setattr(auth.config, "DISCORD_CLIENT_ID", "")
    assert client.get("/api/auth/login", follow_redirects=False).status_code == 503


def test_login_redirects_to_provider(client, monkeypatch):
    monkeypatch.setattr(auth.config, "DISCORD_CLIENT_ID", "cid")
    monkeypatch.setattr(auth.config, "DISCORD_CLIENT_SECRET", "secret")
    resp = client.get("/api/auth/login", follow_redirects=False)
    assert resp.status_code == 307
    assert resp.headers["location"].startswith(auth.DISCORD_AUTH_URL)
    assert "client_id=cid" in resp.headers["location"]


@pytest.fixture
def discord(monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/token"):
            return httpx.Response(200, json={"access_token": "at"})
        if request.url.path.endswith("/users/@me"):
            assert request.headers["authorization"] == "Bearer at"
            return httpx.Response(200, json={"id": "555", "username": "rowan", "global_name": "Rowan", "avatar": "h"})
        return httpx.Response(404)

    real_async_client = httpx.AsyncClient
    monkeypatch.setattr(
        auth.httpx, "AsyncClient",
        lambda **kwargs: real_async_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    monkeypatch.setattr(auth.config, "DISCORD_CLIENT_ID", "cid")
    monkeypatch.setattr(auth.config, "DISCORD_CLIENT_SECRET", "secret")
    monkeypatch.setattr(auth.config, "FRONTEND_URL", "https://app.example")


def test_callback_caches_profile_and_issues_token(client, discord, db_session):
    resp = client.get("/api/auth/callback", params={"code": "xyz"}, follow_redirects=False)
    assert resp.status_code == 302
    location = resp.headers["location"]
    assert location.startswith("https://app.example?token=")

    token = parse_qs(urlsplit(location).query)["token"][0]
    assert auth.decode_token(token)["sub"] == "555"
    assert auth.COOKIE_NAME in resp.cookies

    profile = db_session.get(UserProfile, "555")
    assert profile.username == "Rowan"
    assert profile.avatar_url.endswith("/555/h.png")


def test_cookie_session_and_logout(client):
    token = auth.create_token({"id": "1001", "username": "odie"})
    client.cookies.set(auth.COOKIE_NAME, token)
    assert client.get("/api/auth/me").json()["username"] == "odie"

    resp = client.post("/api/auth/logout")
    assert resp.json() == {"status": "logged_out"}
    assert f"{auth.COOKIE_NAME}=" in resp.headers["set-cookie"]
