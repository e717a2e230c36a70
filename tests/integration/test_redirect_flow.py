"""End-to-end tests: inbound request → resolver → classifier → 302.

The app runs through its real lifespan via TestClient; config loading and the
shared HTTP client are swapped for a stub Config and FakeProviders.

Covers:
  - X-Forwarded-For "203.0.113.5, 10.0.0.1", all providers ALLOW → allow URL
  - same request with teoh risk "high" → block URL
  - unresolvable address → providers queried with the fallback identity
  - enrichment failure never changes the redirect
  - unexpected handler failure → 500 JSON, no redirect
  - /health readiness gate
"""

from __future__ import annotations

from typing import Any

import httpx
import pytest
from starlette.testclient import TestClient

from botgate.config import ClassifierConfig, Config, RedirectConfig
from botgate.main import create_app
from botgate.redirect.handler import REQUEST_ID_HEADER

from tests.fakes import PROVIDER_HOSTS, FakeProviders

ALLOW_URL = "https://allow.example.com/welcome"
BLOCK_URL = "https://block.example.org/"
XFF = {"x-forwarded-for": "203.0.113.5, 10.0.0.1"}


def _stub_config() -> Config:
    return Config(
        redirect=RedirectConfig(allow_url=ALLOW_URL, block_url=BLOCK_URL),
        classifier=ClassifierConfig(provider_timeout_s=1.0, deadline_s=2.0, fallback_ip="9.9.9.9"),
    )


def _build_app(fake: FakeProviders, monkeypatch: pytest.MonkeyPatch) -> Any:
    monkeypatch.setattr("botgate.main.load_config", _stub_config)
    monkeypatch.setattr("botgate.main.create_http_client", fake.client)
    return create_app()


def _get(client: TestClient, path: str = "/", headers: dict[str, str] | None = None) -> httpx.Response:
    return client.get(path, headers=headers or {}, follow_redirects=False)


class TestRedirectDecision:
    def test_all_allow_redirects_to_allow_url(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            response = _get(client, headers=XFF)
        assert response.status_code == 302
        assert response.headers["location"] == ALLOW_URL

    def test_teoh_high_risk_redirects_to_block_url(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        fake_providers.respond(
            "teoh", lambda r: httpx.Response(200, json={"risk": "high"})
        )
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            response = _get(client, headers=XFF)
        assert response.status_code == 302
        assert response.headers["location"] == BLOCK_URL

    @pytest.mark.parametrize("provider", list(PROVIDER_HOSTS))
    def test_any_single_block_redirects_to_block_url(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch, provider: str
    ) -> None:
        fake_providers.block(provider)
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            response = _get(client, headers=XFF)
        assert response.headers["location"] == BLOCK_URL

    def test_providers_receive_leftmost_forwarded_address(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            _get(client, headers=XFF)
        for name in PROVIDER_HOSTS:
            (request,) = fake_providers.requests_to(name)
            assert "203.0.113.5" in str(request.url)
            assert "10.0.0.1" not in str(request.url)

    def test_any_path_and_method_redirects(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            get_response = _get(client, "/some/landing/path?utm=1", headers=XFF)
            post_response = client.post("/api/index", headers=XFF, follow_redirects=False)
        assert get_response.headers["location"] == ALLOW_URL
        assert post_response.status_code == 302

    def test_request_id_header(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            first = _get(client, headers=XFF)
            second = _get(client, headers=XFF)
        assert len(first.headers[REQUEST_ID_HEADER]) == 26
        assert first.headers[REQUEST_ID_HEADER] != second.headers[REQUEST_ID_HEADER]


class TestFallbackIdentity:
    def test_private_only_headers_use_peer(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            _get(client, headers={"x-forwarded-for": "10.0.0.1", "x-real-ip": "192.168.1.1"})
        # TestClient's peer address is the literal "testclient".
        (request,) = fake_providers.requests_to("blackbox")
        assert request.url.path == "/lookup/testclient"

    def test_unresolved_address_uses_fallback_ip(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr("botgate.redirect.handler.resolve_client_ip", lambda headers, peer: None)
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            response = _get(client)
        assert response.headers["location"] == ALLOW_URL
        for name in PROVIDER_HOSTS:
            (request,) = fake_providers.requests_to(name)
            assert "9.9.9.9" in str(request.url)


class TestFailureModes:
    def test_enrichment_failure_does_not_change_redirect(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("ipinfo down", request=request)

        fake_providers.respond("ipinfo", broken)
        fake_providers.block("iphub")
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            response = _get(client, headers=XFF)
        assert response.status_code == 302
        assert response.headers["location"] == BLOCK_URL

    def test_all_providers_down_fails_open(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        for name in PROVIDER_HOSTS:
            fake_providers.respond(name, lambda r: httpx.Response(503, text="unavailable"))
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            response = _get(client, headers=XFF)
        assert response.headers["location"] == ALLOW_URL

    def test_unexpected_error_returns_500_without_redirect(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        async def explode(*args: Any, **kwargs: Any) -> None:
            raise RuntimeError("classifier exploded")

        monkeypatch.setattr("botgate.redirect.handler.classify", explode)
        application = _build_app(fake_providers, monkeypatch)
        with TestClient(application, raise_server_exceptions=False) as client:
            response = _get(client, headers=XFF)
        assert response.status_code == 500
        assert response.json() == {"error": "Internal Server Error"}
        assert "location" not in response.headers


class TestHealth:
    @pytest.mark.asyncio
    async def test_503_before_ready(self) -> None:
        application = create_app()
        transport = httpx.ASGITransport(app=application)  # no lifespan → never ready
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            health = await client.get("/health")
            visitor = await client.get("/", headers=XFF)
        assert health.status_code == 503
        assert health.json()["error"]["status"] == "starting"
        assert visitor.status_code == 503

    def test_200_after_startup(
        self, fake_providers: FakeProviders, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        with TestClient(_build_app(fake_providers, monkeypatch)) as client:
            response = client.get("/health")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["providers"] == list(PROVIDER_HOSTS)
        assert body["deadline_s"] == 2.0
        assert fake_providers.requests == []
