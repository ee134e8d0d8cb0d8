"""
DarkMode Backend — HTTP API Tests
===================================

What:  End-to-end requests through the full middleware chain and routers.
How:   HTTPX AsyncClient over ASGITransport (no real server). The database
       dependency is overridden in conftest; storage writes go to a temp dir.

What we test:
    ✅ Health, 404 envelope, X-Request-ID echo
    ✅ Register / duplicate / validation error envelope
    ✅ Refresh rotation over HTTP
    ✅ Session limit → 429 LIMIT_EXCEEDED, session end credits minutes
    ✅ Multipart document upload
    ✅ API key creation and X-API-Key authentication
    ✅ Rate limiter buckets and subscription gate
"""

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from app.dependencies import require_subscription
from app.exceptions import ForbiddenError
from app.middleware.rate_limit import RateLimitMiddleware
from app.models.enums import SubscriptionStatus


async def register(client, email="api@example.com", password="password123"):
    return await client.post("/api/auth/register", json={"email": email, "password": password, "name": "Api"})


class TestPlumbing:
    @pytest.mark.asyncio
    async def test_health(self, test_client):
        response = await test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["database"] == "connected"

    @pytest.mark.asyncio
    async def test_unknown_route_uses_error_envelope(self, test_client):
        response = await test_client.get("/api/does-not-exist")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "Not found"
        assert body["code"] == "NOT_FOUND"
        assert body["request_id"] == response.headers["X-Request-ID"]

    @pytest.mark.asyncio
    async def test_client_request_id_is_echoed(self, test_client):
        response = await test_client.get("/health", headers={"X-Request-ID": "trace-abc"})
        assert response.headers["X-Request-ID"] == "trace-abc"


class TestAuthApi:
    @pytest.mark.asyncio
    async def test_register_and_duplicate(self, test_client):
        first = await register(test_client)
        second = await register(test_client, email="API@example.com")

        assert first.status_code == 201
        body = first.json()
        assert body["user"]["email"] == "api@example.com"
        assert body["token_type"] == "bearer"
        assert body["refresh_token"]
        assert second.status_code == 409
        assert second.json()["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_short_password_is_bad_request(self, test_client):
        response = await register(test_client, password="short")

        assert response.status_code == 400
        body = response.json()
        assert body["code"] == "BAD_REQUEST"
        assert "password" in body["error"]

    @pytest.mark.asyncio
    async def test_me_requires_token(self, test_client):
        response = await test_client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json()["error"] == "No token provided"

    @pytest.mark.asyncio
    async def test_refresh_rotation(self, test_client):
        tokens = (await register(test_client, email="rotate@example.com")).json()

        rotated = await test_client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        replayed = await test_client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert rotated.status_code == 200
        assert rotated.json()["refresh_token"] != tokens["refresh_token"]
        assert replayed.status_code == 401

        me = await test_client.get(
            "/api/auth/me", headers={"Authorization": f"Bearer {rotated.json()['access_token']}"}
        )
        assert me.status_code == 200
        assert me.json()["email"] == "rotate@example.com"


class TestSessionsApi:
    @pytest.mark.asyncio
    async def test_fourth_session_of_the_day_is_refused(self, test_client, make_account, auth_headers):
        headers = auth_headers(await make_account())

        for _ in range(3):
            created = await test_client.post("/api/sessions", json={"profile": "interview"}, headers=headers)
            assert created.status_code == 201

        refused = await test_client.post("/api/sessions", json={}, headers=headers)

        assert refused.status_code == 429
        assert refused.json()["code"] == "LIMIT_EXCEEDED"

    @pytest.mark.asyncio
    async def test_end_session(self, test_client, make_account, auth_headers):
        headers = auth_headers(await make_account())
        session_id = (await test_client.post("/api/sessions", json={}, headers=headers)).json()["id"]

        ended = await test_client.post(f"/api/sessions/{session_id}/end", headers=headers)
        again = await test_client.post(f"/api/sessions/{session_id}/end", headers=headers)

        assert ended.status_code == 200
        assert ended.json()["session"]["status"] == "COMPLETED"
        assert ended.json()["duration_minutes"] >= 0
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_sessions_are_tenant_scoped(self, test_client, make_account, auth_headers):
        owner = auth_headers(await make_account())
        intruder = auth_headers(await make_account())
        session_id = (await test_client.post("/api/sessions", json={}, headers=owner)).json()["id"]

        response = await test_client.get(f"/api/sessions/{session_id}", headers=intruder)

        assert response.status_code == 404


class TestDocumentsApi:
    @pytest.mark.asyncio
    async def test_upload_and_read_content(self, test_client, make_account, auth_headers):
        headers = auth_headers(await make_account())

        uploaded = await test_client.post(
            "/api/documents",
            headers=headers,
            files={"file": ("notes.md", b"# Talking points", "text/markdown")},
            data={"type": "NOTES"},
        )

        assert uploaded.status_code == 201
        document = uploaded.json()
        assert document["type"] == "NOTES"
        assert document["text_content"] == "# Talking points"

        content = await test_client.get(f"/api/documents/{document['id']}/content", headers=headers)
        assert content.json()["content"] == "# Talking points"

    @pytest.mark.asyncio
    async def test_disallowed_type_is_rejected(self, test_client, make_account, auth_headers):
        headers = auth_headers(await make_account())

        response = await test_client.post(
            "/api/documents", headers=headers, files={"file": ("a.png", b"\x89PNG", "image/png")}
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid file type"


class TestUsersApi:
    @pytest.mark.asyncio
    async def test_api_key_authenticates(self, test_client, make_account, auth_headers):
        headers = auth_headers(await make_account())

        created = await test_client.post("/api/users/api-keys", json={"name": "ci"}, headers=headers)
        listed = await test_client.get("/api/users/api-keys", headers=headers)

        assert created.status_code == 201
        full_key = created.json()["key"]
        assert listed.json()["api_keys"][0]["key"] != full_key

        profile = await test_client.get("/api/users/profile", headers={"X-API-Key": full_key})
        assert profile.status_code == 200

        bogus = await test_client.get("/api/users/profile", headers={"X-API-Key": "dm_not_a_key"})
        assert bogus.status_code == 401


class TestSubscriptionsApi:
    @pytest.mark.asyncio
    async def test_plans_are_public(self, test_client):
        response = await test_client.get("/api/subscriptions/plans")

        assert response.status_code == 200
        slugs = [plan["slug"] for plan in response.json()["plans"]]
        assert slugs == ["free", "pro", "enterprise"]

    @pytest.mark.asyncio
    async def test_status_reports_usage(self, test_client, make_account, auth_headers):
        headers = auth_headers(await make_account(minutes_used=12))

        response = await test_client.get("/api/subscriptions/status", headers=headers)

        assert response.status_code == 200
        assert response.json()["status"] == "FREE"
        assert response.json()["usage"]["minutes_used"] == 12


class TestSubscriptionGate:
    @pytest.mark.asyncio
    async def test_free_account_is_forbidden(self, make_account):
        gate = require_subscription([SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL])
        free = await make_account()
        paying = await make_account(subscription_status=SubscriptionStatus.ACTIVE)

        with pytest.raises(ForbiddenError):
            await gate(account=free)
        assert await gate(account=paying) is paying


class TestRateLimitMiddleware:
    def build_app(self):
        app = FastAPI()
        app.add_middleware(RateLimitMiddleware, requests=2, window=60, webhook_requests=1, webhook_window=60)

        @app.get("/api/ping")
        async def ping():
            return {"ok": True}

        @app.post("/api/webhooks/stripe")
        async def hook():
            return {"received": True}

        @app.get("/health")
        async def health():
            return {"status": "healthy"}

        return app

    def test_bucket_for(self):
        assert RateLimitMiddleware.bucket_for("/api/webhooks/stripe") == "webhook"
        assert RateLimitMiddleware.bucket_for("/api/sessions") == "api"
        assert RateLimitMiddleware.bucket_for("/health") is None

    @pytest.mark.asyncio
    async def test_limits_per_bucket(self):
        transport = ASGITransport(app=self.build_app())
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            assert (await client.get("/api/ping")).status_code == 200
            assert (await client.get("/api/ping")).status_code == 200
            limited = await client.get("/api/ping")

            assert limited.status_code == 429
            assert limited.json()["code"] == "RATE_LIMITED"
            assert int(limited.headers["Retry-After"]) > 0

            # webhook bucket has its own counter
            assert (await client.post("/api/webhooks/stripe")).status_code == 200
            assert (await client.post("/api/webhooks/stripe")).status_code == 429

            for _ in range(5):
                assert (await client.get("/health")).status_code == 200
