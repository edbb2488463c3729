from datetime import timedelta
from uuid import uuid4

import pytest

from src.config import NotificationKind

from conftest import NOON, auth, make_token


async def create_ticket(client, user, **overrides):
    body = {"title": "Broken keyboard", "description": "Half the keys do nothing", "priority": "HIGH"}
    body.update(overrides)
    return await client.post("/tickets", json=body, headers=auth(user))


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["checks"]["sla_defaults"] == "loaded"


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client):
    response = await client.get("/tickets/my")

    assert response.status_code == 401
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_expired_token_is_unauthorized(client, world):
    token = make_token(world.acme.user, exp=NOON - timedelta(days=365))
    response = await client.get("/tickets/my", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_and_fetch_ticket(client, world):
    created = await create_ticket(client, world.acme.user)

    assert created.status_code == 201
    body = created.json()
    assert body["success"] is True
    assert body["message"] == "Ticket created successfully"
    ticket = body["data"]
    assert ticket["status"] == "OPEN"
    assert ticket["slaDueAt"].startswith("2024-03-01T16:00:00")

    fetched = await client.get(f"/tickets/{ticket['id']}", headers=auth(world.acme.user))
    assert fetched.status_code == 200
    detail = fetched.json()["data"]
    assert detail["user"]["email"] == world.acme.user.email
    assert detail["assignedTo"] is None


@pytest.mark.asyncio
async def test_body_validation_is_400(client, world):
    response = await client.post("/tickets", json={"title": "No description"}, headers=auth(world.acme.user))

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Validation Error"
    assert "description" in body["error"]


@pytest.mark.asyncio
async def test_short_title_is_400(client, world):
    response = await create_ticket(client, world.acme.user, title="ab")

    assert response.status_code == 400
    assert "title" in response.json()["error"]


@pytest.mark.asyncio
async def test_other_tenant_ticket_is_404(client, world):
    created = await create_ticket(client, world.globex.user)
    ticket_id = created.json()["data"]["id"]

    response = await client.get(f"/tickets/{ticket_id}", headers=auth(world.acme.admin))
    assert response.status_code == 404

    response = await client.patch(
        f"/tickets/{ticket_id}/status", json={"status": "CLOSED"}, headers=auth(world.acme.admin)
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_user_reading_others_ticket_is_403(client, world):
    created = await create_ticket(client, world.acme.other_user)
    ticket_id = created.json()["data"]["id"]

    response = await client.get(f"/tickets/{ticket_id}", headers=auth(world.acme.user))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_ticket_is_404(client, world):
    response = await client.get(f"/tickets/{uuid4()}", headers=auth(world.acme.admin))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_assign_with_non_agent_is_400(client, world):
    created = await create_ticket(client, world.acme.user)
    ticket_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/tickets/{ticket_id}/assign",
        json={"assignedToId": str(world.acme.other_user.id)},
        headers=auth(world.acme.admin)
    )

    assert response.status_code == 400
    assert response.json()["message"] == "User is not an agent"


@pytest.mark.asyncio
async def test_assign_and_list_activity(client, world, dispatcher, notifier):
    created = await create_ticket(client, world.acme.user)
    ticket_id = created.json()["data"]["id"]

    response = await client.patch(
        f"/tickets/{ticket_id}/assign",
        json={"assignedToId": str(world.acme.agent.id)},
        headers=auth(world.acme.admin)
    )
    assert response.status_code == 200
    assert response.json()["data"]["assignedTo"]["id"] == str(world.acme.agent.id)

    await dispatcher.join()
    activity = await client.get(f"/tickets/{ticket_id}/activity", headers=auth(world.acme.user))
    assert [e["action"] for e in activity.json()["data"]] == ["ASSIGNED"]
    assert len(notifier.of_kind(NotificationKind.AGENT_ASSIGNED)) == 1


@pytest.mark.asyncio
async def test_list_tickets_paginates(client, world):
    for _ in range(3):
        await create_ticket(client, world.acme.user)

    response = await client.get("/tickets?page=2&limit=2", headers=auth(world.acme.agent))

    data = response.json()["data"]
    assert (data["total"], data["page"], data["limit"], data["totalPages"]) == (3, 2, 2, 2)
    assert len(data["tickets"]) == 1


@pytest.mark.asyncio
async def test_comment_round_trip(client, world):
    created = await create_ticket(client, world.acme.user)
    ticket_id = created.json()["data"]["id"]

    posted = await client.post(
        f"/tickets/{ticket_id}/comments", json={"message": "Any update?"}, headers=auth(world.acme.user)
    )
    assert posted.status_code == 201

    listed = await client.get(f"/tickets/{ticket_id}/comments", headers=auth(world.acme.agent))
    [comment] = listed.json()["data"]
    assert comment["message"] == "Any update?"
    assert comment["user"]["id"] == str(world.acme.user.id)


@pytest.mark.asyncio
async def test_sla_settings_update(client, world):
    response = await client.patch(
        "/organizations/sla",
        json={"slaLowHours": 48, "slaMediumHours": 12, "slaHighHours": 2},
        headers=auth(world.acme.admin)
    )
    assert response.status_code == 200
    assert response.json()["data"] == {"slaLowHours": 48, "slaMediumHours": 12, "slaHighHours": 2}

    rejected = await client.patch(
        "/organizations/sla",
        json={"slaLowHours": 48, "slaMediumHours": 12, "slaHighHours": 0},
        headers=auth(world.acme.admin)
    )
    assert rejected.status_code == 400


@pytest.mark.asyncio
async def test_sla_update_by_user_is_403_even_with_bad_hours(client, world):
    response = await client.patch(
        "/organizations/sla",
        json={"slaLowHours": 0, "slaMediumHours": 0, "slaHighHours": 0},
        headers=auth(world.acme.user)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_dashboard_stats(client, world):
    await create_ticket(client, world.acme.user)

    response = await client.get("/dashboard/stats", headers=auth(world.acme.agent))

    data = response.json()["data"]
    assert data["total"] == 1
    assert data["highPriority"] == 1
    assert data["assignedToMe"] == 0


@pytest.mark.asyncio
async def test_sweep_requires_super_admin(client, world):
    response = await client.post("/sla/sweep", headers=auth(world.acme.admin))
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_manual_sweep(client, world, clock):
    await create_ticket(client, world.acme.user)
    clock.set(NOON + timedelta(hours=5))

    response = await client.post("/sla/sweep", headers=auth(world.super_admin))

    assert response.status_code == 200
    assert response.json()["data"] == {"processed": 1}

    again = await client.post("/sla/sweep", headers=auth(world.super_admin))
    assert again.json()["data"] == {"processed": 0}
