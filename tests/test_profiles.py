"""Integration tests for user and company profile endpoints."""

import pytest
from fastapi import status


@pytest.mark.asyncio
async def test_own_profile_upsert(client, auditor, auditor_headers):
    response = await client.get("/api/v1/profiles/me", headers=auditor_headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND

    response = await client.put(
        "/api/v1/profiles/me",
        json={"full_name": "Alice A. Auditor", "phone": "+1 555 0100", "telegram_chat_id": "42"},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["id"] == str(auditor.id)
    assert response.json()["telegram_chat_id"] == "42"

    response = await client.put(
        "/api/v1/profiles/me", json={"telegram": "@alice"}, headers=auditor_headers
    )
    body = response.json()
    assert body["telegram"] == "@alice"
    assert body["phone"] == "+1 555 0100"


@pytest.mark.asyncio
async def test_contact_card_hides_bot_credentials(client, auditor, auditor_headers, counterpart_headers):
    await client.put(
        "/api/v1/profiles/me",
        json={"phone": "+1 555 0100", "telegram_bot_token": "secret"},
        headers=auditor_headers,
    )
    response = await client.get(f"/api/v1/profiles/{auditor.id}", headers=counterpart_headers)
    assert response.status_code == status.HTTP_200_OK
    card = response.json()
    assert card["full_name"] == "Alice Auditor"
    assert card["phone"] == "+1 555 0100"
    assert card["email"] == "auditor@example.com"
    assert "telegram_bot_token" not in card


@pytest.mark.asyncio
async def test_contact_card_unknown_user(client, auditor_headers):
    response = await client.get(
        "/api/v1/profiles/00000000-0000-0000-0000-000000000000", headers=auditor_headers
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_company_profile_default_then_upsert(client, project, auditor_headers, counterpart_headers, bus):
    """Test: Missing profile reads as a default; the auditor can save one."""
    response = await client.get(f"/api/v1/projects/{project.id}/company-profile", headers=counterpart_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["company_name"] == "Acme Audit"
    assert response.json()["exists"] is False

    subscription = bus.subscribe("company_profiles", {"project_id": project.id})
    payload = {
        "company_name": "Acme LLC",
        "address": "1 Main St",
        "contacts": [{"name": "Jane Roe", "role": "CFO", "email": "jane@example.com"}],
    }
    response = await client.put(
        f"/api/v1/projects/{project.id}/company-profile", json=payload, headers=auditor_headers
    )
    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["exists"] is True
    assert body["contacts"][0]["id"]
    notification = await subscription.get()
    assert notification.event_type.value == "INSERT"

    payload["company_name"] = "Acme Holdings"
    response = await client.put(
        f"/api/v1/projects/{project.id}/company-profile", json=payload, headers=auditor_headers
    )
    assert response.json()["company_name"] == "Acme Holdings"
    notification = await subscription.get()
    assert notification.event_type.value == "UPDATE"


@pytest.mark.asyncio
async def test_company_profile_auditor_only(client, project, counterpart_headers):
    response = await client.put(
        f"/api/v1/projects/{project.id}/company-profile",
        json={"company_name": "Mine now"},
        headers=counterpart_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
