"""Tests for admin provider management and audit endpoints."""

from __future__ import annotations

import httpx
import pytest

from aiunk.api.admin import mask_api_key
from aiunk.db.repositories import list_audit_entries, log_chat, upsert_provider_setting
from aiunk.providers import ProviderRegistry


@pytest.fixture
def admin_client(make_client, settings, login_as, admin_user):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.headers.get("authorization") == "Bearer sk-good":
            return httpx.Response(
                200,
                json={
                    "choices": [{"message": {"content": "test successful"}}],
                    "usage": {"total_tokens": 5},
                },
            )
        return httpx.Response(401, json={"error": {"message": "Incorrect API key provided"}})

    registry = ProviderRegistry(
        settings, transport_overrides={"openai": httpx.MockTransport(handler)}
    )
    client = make_client(registry)
    login_as(client, admin_user)
    return client


@pytest.mark.parametrize(
    ("method", "url", "payload"),
    [
        ("get", "/admin/providers", None),
        ("put", "/admin/providers",
         {"provider_id": "openai", "model": "gpt", "api_key": "k", "is_active": True}),
        ("post", "/admin/providers/test",
         {"provider_id": "openai", "model": "gpt", "api_key": "k"}),
        ("get", "/admin/audit", None),
    ],
)
def test_admin_routes_reject_regular_users(
    client, login_as, user, db_session, method, url, payload
) -> None:
    login_as(client, user)

    response = client.request(method, url, json=payload)

    assert response.status_code == 403
    assert response.json()["error"]["message"] == "Admin access required"
    assert list_audit_entries(db_session) == []


def test_owner_login_is_admin(admin_user) -> None:
    assert admin_user.role == "admin"


def test_update_and_list_providers(admin_client, db_session, admin_user) -> None:
    response = admin_client.put(
        "/admin/providers",
        json={"provider_id": "openai", "model": "gpt-4o", "api_key": "sk-abcdef123456", "is_active": True},
    )
    assert response.status_code == 200
    assert response.json() == {"success": True}

    providers = admin_client.get("/admin/providers").json()["providers"]
    assert len(providers) == 1
    assert providers[0]["provider_id"] == "openai"
    assert providers[0]["is_active"] is True
    assert providers[0]["api_key"].endswith("3456")
    assert "sk-abcdef" not in providers[0]["api_key"]

    switched = list_audit_entries(db_session, event_type="provider_switched")
    assert switched[0].user_id == admin_user.id
    assert switched[0].details_dict() == {
        "providerId": "openai",
        "model": "gpt-4o",
        "isActive": True,
    }


def test_switching_active_provider(admin_client) -> None:
    for provider_id in ("openai", "google"):
        admin_client.put(
            "/admin/providers",
            json={"provider_id": provider_id, "model": "m", "api_key": "key", "is_active": True},
        )

    providers = admin_client.get("/admin/providers").json()["providers"]
    active = [p["provider_id"] for p in providers if p["is_active"]]
    assert active == ["google"]


def test_update_provider_rejects_unknown_id(admin_client) -> None:
    response = admin_client.put(
        "/admin/providers",
        json={"provider_id": "skynet", "model": "m", "api_key": "key", "is_active": True},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "E1001"


def test_provider_test_invalid_key(admin_client, db_session) -> None:
    response = admin_client.post(
        "/admin/providers/test",
        json={"provider_id": "openai", "model": "gpt-4o", "api_key": "sk-bad"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert isinstance(body["latency_ms"], int)
    assert body["message"]

    entries = list_audit_entries(db_session, event_type="provider_test")
    assert len(entries) == 1
    assert entries[0].details_dict()["success"] is False


def test_provider_test_unknown_provider_is_reported(admin_client, db_session) -> None:
    response = admin_client.post(
        "/admin/providers/test",
        json={"provider_id": "skynet", "model": "t-800", "api_key": "key"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is False
    assert "skynet" in body["message"]

    entries = list_audit_entries(db_session, event_type="provider_test")
    assert len(entries) == 1
    assert entries[0].details_dict()["providerId"] == "skynet"


def test_provider_test_valid_key(admin_client, db_session) -> None:
    body = admin_client.post(
        "/admin/providers/test",
        json={"provider_id": "openai", "model": "gpt-4o", "api_key": "sk-good"},
    ).json()

    assert body["success"] is True
    assert body["message"] == "Connection successful"
    assert admin_client.get("/admin/providers").json()["providers"] == []


def test_audit_log_listing(admin_client, db_session, admin_user) -> None:
    upsert_provider_setting(db_session, "openai", "m", "k", True)
    log_chat(db_session, admin_user.id, "conv-1", "openai", 10)
    log_chat(db_session, admin_user.id, "conv-2", "openai", 20)
    admin_client.put(
        "/admin/providers",
        json={"provider_id": "openai", "model": "m", "api_key": "k", "is_active": False},
    )

    entries = admin_client.get("/admin/audit").json()["entries"]
    assert [e["event_type"] for e in entries] == ["provider_switched", "chat", "chat"]
    assert entries[1]["details"]["conversationId"] == "conv-2"

    chats = admin_client.get("/admin/audit", params={"event_type": "chat", "limit": 1}).json()[
        "entries"
    ]
    assert len(chats) == 1
    assert chats[0]["details"]["tokensUsed"] == 20


@pytest.mark.parametrize(
    ("key", "masked"),
    [("abc", "***"), ("sk-1234567890", "********7890")],
)
def test_mask_api_key(key: str, masked: str) -> None:
    assert mask_api_key(key) == masked
