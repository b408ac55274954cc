"""
tests.test_api_flows

End-to-end account flows over HTTP (ASGI transport, temporary sqlite database).
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import pytest

from credgate.api.app import create_app
from credgate.api.deps import credential_store
from credgate.audit.events import AuditLevel, EventCode
from credgate.auth.jwt import issue_session_token
from credgate.auth.policy import LockoutPolicy, PasswordPolicy
from credgate.errors import StoreFailure
from credgate.settings import Settings
from tests.fakes import InMemoryCredentialStore

ADMIN_PASSWORD = "Adm1n!pass"
ROTATED_PASSWORD = "R0tated!pass"


@asynccontextmanager
async def client_for(
    settings: Settings, overrides: dict | None = None
) -> AsyncIterator[httpx.AsyncClient]:
    app = create_app(settings=settings)
    app.dependency_overrides.update(overrides or {})
    await app.router.startup()
    try:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        await app.router.shutdown()


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def _login(client: httpx.AsyncClient, username: str, password: str, **extra) -> httpx.Response:
    return await client.post(
        "/v1/account/login", json={"username": username, "password": password, **extra}
    )


@pytest.mark.asyncio
async def test_seeded_admin_is_forced_through_rotation(settings: Settings) -> None:
    async with client_for(settings) as client:
        r = await _login(client, "admin", ADMIN_PASSWORD, return_url="/v1/audit/events")
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "NEEDS_PASSWORD_CHANGE"
        assert body["forced"] is True
        assert "returnUrl=%2Fv1%2Faudit%2Fevents" in body["redirect"]
        stale_token = body["access_token"]

        # No validity claim: the admin-only page redirects into rotation, not a 403.
        r = await client.get("/v1/audit/events", headers=_bearer(stale_token))
        assert r.status_code == 303
        assert r.headers["location"].startswith(settings.change_password_page)
        assert "forced=yes" in r.headers["location"]

        r = await client.get(
            "/v1/account/change-password",
            params={"returnUrl": "/v1/audit/events", "forced": "yes"},
            headers=_bearer(stale_token),
        )
        assert r.status_code == 200
        assert r.json()["forced"] is True
        assert r.json()["return_url"] == "/v1/audit/events"

        r = await client.post(
            "/v1/account/change-password",
            headers=_bearer(stale_token),
            json={
                "old_password": ADMIN_PASSWORD,
                "new_password": ROTATED_PASSWORD,
                "confirm_password": ROTATED_PASSWORD,
                "return_url": "/v1/audit/events",
                "forced": True,
            },
        )
        assert r.status_code == 200
        changed = r.json()
        assert changed["result"] == "SUCCEEDED"
        assert changed["redirect"] == "/v1/audit/events"

        # The re-issued session sees the claim immediately.
        r = await client.get("/v1/audit/events", headers=_bearer(changed["access_token"]))
        assert r.status_code == 200
        events = r.json()
        codes = [e["event_code"] for e in events]
        assert EventCode.password_change_ok in codes
        assert EventCode.password_change_demand in codes
        assert EventCode.login_rotation_forced in codes
        assert EventCode.forbidden not in codes
        ids = [e["id"] for e in events]
        assert ids == sorted(ids, reverse=True)

        r = await _login(client, "admin", ROTATED_PASSWORD)
        assert r.json()["status"] == "SUCCESS"


@pytest.mark.asyncio
async def test_login_failures_map_to_status_codes(settings: Settings) -> None:
    async with client_for(settings) as client:
        r = await _login(client, "nobody", "x")
        assert r.status_code == 401
        assert r.json()["error_kind"] == "UNKNOWN_USER"

        for _ in range(settings.password_max_failures - 1):
            r = await _login(client, "admin", "wrong")
            assert r.status_code == 401
        r = await _login(client, "admin", "wrong")
        assert r.status_code == 423
        assert r.json()["status"] == "LOCKED_OUT"

        r = await _login(client, "admin", ADMIN_PASSWORD)
        assert r.status_code == 423


@pytest.mark.asyncio
async def test_change_password_validation(settings: Settings) -> None:
    async with client_for(settings) as client:
        token = (await _login(client, "admin", ADMIN_PASSWORD)).json()["access_token"]

        r = await client.post(
            "/v1/account/change-password",
            headers=_bearer(token),
            json={"old_password": ADMIN_PASSWORD, "new_password": ADMIN_PASSWORD},
        )
        assert r.status_code == 400
        assert r.json()["error_kind"] == "SAME_PASSWORD_REJECTED"

        r = await client.post(
            "/v1/account/change-password",
            headers=_bearer(token),
            json={
                "old_password": ADMIN_PASSWORD,
                "new_password": ROTATED_PASSWORD,
                "confirm_password": "different",
            },
        )
        assert r.status_code == 422


@pytest.mark.asyncio
async def test_forbidden_page_disambiguation(settings: Settings) -> None:
    async with client_for(settings) as client:
        r = await client.get("/v1/account/forbidden", params={"returnUrl": "/secret"})
        assert r.status_code == 403
        assert r.json()["kind"] == "TRUE_DENIAL"

        stale = (await _login(client, "admin", ADMIN_PASSWORD)).json()["access_token"]
        r = await client.get(
            "/v1/account/forbidden", params={"returnUrl": "/secret"}, headers=_bearer(stale)
        )
        assert r.status_code == 303
        assert "returnUrl=%2Fsecret" in r.headers["location"]


@pytest.mark.asyncio
async def test_admin_creates_user_who_must_rotate(settings: Settings) -> None:
    async with client_for(settings) as client:
        stale = (await _login(client, "admin", ADMIN_PASSWORD)).json()["access_token"]
        token = (
            await client.post(
                "/v1/account/change-password",
                headers=_bearer(stale),
                json={"old_password": ADMIN_PASSWORD, "new_password": ROTATED_PASSWORD},
            )
        ).json()["access_token"]

        payload = {
            "username": "carol",
            "new_password": "Car0l!pass",
            "confirm_password": "Car0l!pass",
            "role": settings.database_role,
        }
        r = await client.post("/v1/users", headers=_bearer(token), json=payload)
        assert r.status_code == 201
        assert r.json()["roles"] == [settings.database_role]

        r = await client.post("/v1/users", headers=_bearer(token), json=payload)
        assert r.status_code == 400

        r = await _login(client, "carol", "Car0l!pass")
        assert r.json()["status"] == "NEEDS_PASSWORD_CHANGE"

        # carol is not an administrator: once rotated, the audit log is a true denial.
        carol_stale = r.json()["access_token"]
        carol = (
            await client.post(
                "/v1/account/change-password",
                headers=_bearer(carol_stale),
                json={"old_password": "Car0l!pass", "new_password": "Car0l!pass2"},
            )
        ).json()["access_token"]
        r = await client.get("/v1/audit/events", headers=_bearer(carol))
        assert r.status_code == 403

        r = await client.get(
            "/v1/audit/events", params={"target": "carol"}, headers=_bearer(token)
        )
        codes = [e["event_code"] for e in r.json()]
        assert EventCode.user_add_ok in codes
        assert EventCode.user_add_fail in codes
        assert all(e["target_username"] == "carol" for e in r.json())


@pytest.mark.asyncio
async def test_logout_is_audited(settings: Settings) -> None:
    async with client_for(settings) as client:
        token = (await _login(client, "admin", ADMIN_PASSWORD)).json()["access_token"]
        r = await client.post("/v1/account/logout", headers=_bearer(token))
        assert r.status_code == 200
        assert r.json()["redirect"] == settings.home_page

        r = await client.post("/v1/account/logout")
        assert r.status_code == 401


async def _rotated_admin_token(client: httpx.AsyncClient) -> str:
    stale = (await _login(client, "admin", ADMIN_PASSWORD)).json()["access_token"]
    r = await client.post(
        "/v1/account/change-password",
        headers=_bearer(stale),
        json={"old_password": ADMIN_PASSWORD, "new_password": ROTATED_PASSWORD},
    )
    return r.json()["access_token"]


@pytest.mark.asyncio
async def test_admin_lists_users_with_roles(settings: Settings) -> None:
    async with client_for(settings) as client:
        token = await _rotated_admin_token(client)
        for name in ("zoe", "bob"):
            r = await client.post(
                "/v1/users",
                headers=_bearer(token),
                json={
                    "username": name,
                    "new_password": "B0b!pass",
                    "role": settings.database_role,
                },
            )
            assert r.status_code == 201

        r = await client.get("/v1/users", headers=_bearer(token))
        assert r.status_code == 200
        assert r.json() == [
            {"username": "admin", "roles": [settings.admin_role]},
            {"username": "bob", "roles": [settings.database_role]},
            {"username": "zoe", "roles": [settings.database_role]},
        ]

        r = await client.get("/v1/users")
        assert r.status_code == 401


@pytest.mark.asyncio
async def test_store_failure_while_creating_user_is_audited(settings: Settings) -> None:
    broken = InMemoryCredentialStore(
        password_policy=PasswordPolicy.from_settings(settings),
        lockout_policy=LockoutPolicy.from_settings(settings),
    )
    broken.fail_with = StoreFailure("identity database unavailable")
    admin = issue_session_token(
        settings, subject="admin", roles={settings.admin_role}, password_valid=True
    )

    async with client_for(settings, {credential_store: lambda: broken}) as client:
        r = await client.post(
            "/v1/users",
            headers=_bearer(admin),
            json={"username": "erin", "new_password": "Er1n!pass"},
        )
        assert r.status_code == 400
        assert r.json()["detail"] == ["identity database unavailable"]

        r = await client.get(
            "/v1/audit/events", params={"target": "erin"}, headers=_bearer(admin)
        )
        (event,) = r.json()
        assert event["event_code"] == EventCode.user_add_fail
        assert event["level"] == AuditLevel.error
        assert "identity database unavailable" in event["exception_text"]
        assert event["actor_username"] == "admin"
