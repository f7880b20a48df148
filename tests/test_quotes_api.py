"""
Quote and workflow endpoint tests.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient


async def create_customer(client: AsyncClient, **overrides) -> dict:
    payload = {
        "name": "Dana Rivera",
        "email": "dana@example.com",
        "phone": "(201) 555-0123",
    }
    payload.update(overrides)
    response = await client.post("/api/v1/customers", json=payload)
    assert response.status_code == 201
    return response.json()


async def create_quote(client: AsyncClient, customer_id: int, items=None) -> dict:
    if items is None:
        items = [{"name": "Lawn mowing", "quantity": "2", "unit_price": "50.00"}]
    response = await client.post(
        "/api/v1/quotes",
        json={
            "customer_id": customer_id,
            "title": "Spring cleanup",
            "tax_rate": "10",
            "items": items,
        },
    )
    assert response.status_code == 201
    return response.json()


def tomorrow() -> str:
    return (datetime.now(timezone.utc).date() + timedelta(days=1)).isoformat()


@pytest.mark.asyncio
async def test_customer_phone_is_normalized(auth_client: AsyncClient):
    customer = await create_customer(auth_client)

    assert customer["phone"] == "+12015550123"


@pytest.mark.asyncio
async def test_customer_invalid_phone(auth_client: AsyncClient):
    response = await auth_client.post(
        "/api/v1/customers",
        json={"name": "Bad Phone", "phone": "12"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["field"] == "phone"


@pytest.mark.asyncio
async def test_create_quote(auth_client: AsyncClient):
    customer = await create_customer(auth_client)

    quote = await create_quote(auth_client, customer["id"])

    assert quote["status"] == "draft"
    assert quote["quote_number"].startswith("Q-")
    assert Decimal(quote["subtotal"]) == Decimal("100.00")
    assert Decimal(quote["tax"]) == Decimal("10.00")
    assert Decimal(quote["total"]) == Decimal("110.00")
    assert quote["customer"]["name"] == "Dana Rivera"


@pytest.mark.asyncio
async def test_create_quote_unknown_customer(auth_client: AsyncClient):
    response = await auth_client.post(
        "/api/v1/quotes",
        json={"customer_id": 999, "items": []},
    )

    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


@pytest.mark.asyncio
async def test_edit_draft_items(auth_client: AsyncClient):
    customer = await create_customer(auth_client)
    quote = await create_quote(auth_client, customer["id"])

    response = await auth_client.post(
        f"/api/v1/quotes/{quote['id']}/items",
        json={"name": "Hedge trimming", "unit_price": "30.00"},
    )
    assert response.status_code == 201
    assert Decimal(response.json()["subtotal"]) == Decimal("130.00")

    item_id = response.json()["items"][0]["id"]
    response = await auth_client.patch(
        f"/api/v1/quotes/{quote['id']}/items/{item_id}",
        json={"quantity": "3"},
    )
    assert Decimal(response.json()["subtotal"]) == Decimal("180.00")

    response = await auth_client.delete(f"/api/v1/quotes/{quote['id']}/items/{item_id}")
    assert response.status_code == 200
    assert Decimal(response.json()["total"]) == Decimal("33.00")


@pytest.mark.asyncio
async def test_sent_quote_cannot_be_edited(auth_client: AsyncClient):
    customer = await create_customer(auth_client)
    quote = await create_quote(auth_client, customer["id"])
    await auth_client.post(f"/api/v1/workflow/quotes/{quote['id']}/send", json={})

    response = await auth_client.patch(
        f"/api/v1/quotes/{quote['id']}",
        json={"title": "Changed"},
    )

    assert response.status_code == 409
    assert response.json()["error"]["kind"] == "invalid_state"


@pytest.mark.asyncio
async def test_quote_lifecycle(auth_client: AsyncClient, gateways):
    customer = await create_customer(auth_client)
    quote = await create_quote(auth_client, customer["id"])
    base = f"/api/v1/workflow/quotes/{quote['id']}"

    response = await auth_client.post(f"{base}/send", json={})
    assert response.status_code == 200
    sent = response.json()
    assert sent["status"] == "sent"
    assert sent["communication"]["recipient"] == "dana@example.com"
    assert gateways.communication.sent[0]["subject"] == f"Quote {quote['quote_number']} from Green Thumb Landscaping"

    response = await auth_client.post(f"{base}/signature", json={"signer_name": "Dana Rivera"})
    assert response.status_code == 200
    signature_id = response.json()["signature_id"]

    response = await auth_client.post(f"{base}/approve")
    assert response.json()["status"] == "approved"

    response = await auth_client.post(
        f"/api/v1/workflow/signatures/{signature_id}/complete",
        json={"signed_by": "Dana Rivera", "signed_at": "2026-03-03T15:00:00Z"},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert response.json()["signed_by"] == "Dana Rivera"

    response = await auth_client.post(
        f"{base}/schedule",
        json={"scheduled_date": tomorrow(), "scheduled_time": "09:00"},
    )
    assert response.status_code == 200
    assert response.json()["calendar_event_id"] == "cal_1"

    response = await auth_client.post(f"{base}/convert")
    assert response.status_code == 200
    job_id = response.json()["job_id"]

    response = await auth_client.get(f"/api/v1/jobs/{job_id}")
    assert response.status_code == 200
    assert response.json()["quote_id"] == quote["id"]
    assert response.json()["status"] == "scheduled"

    response = await auth_client.post(f"{base}/reject")
    assert response.status_code == 409
    body = response.json()
    assert body["error"]["kind"] == "already_converted"
    assert body["detail"] == body["error"]["message"]

    response = await auth_client.get(f"/api/v1/quotes/{quote['id']}/events")
    assert [e["event"] for e in response.json()] == [
        "sent",
        "signature_requested",
        "approved",
        "signature_completed",
        "scheduled",
        "converted",
    ]


@pytest.mark.asyncio
async def test_send_empty_quote(auth_client: AsyncClient, gateways):
    customer = await create_customer(auth_client)
    quote = await create_quote(auth_client, customer["id"], items=[])

    response = await auth_client.post(f"/api/v1/workflow/quotes/{quote['id']}/send", json={})

    assert response.status_code == 400
    assert response.json()["error"] == {
        "kind": "validation_error",
        "message": "Cannot send a quote without items",
        "field": "items",
    }
    assert gateways.communication.calls == 0


@pytest.mark.asyncio
async def test_gateway_failure_maps_to_502(auth_client: AsyncClient, gateways):
    customer = await create_customer(auth_client)
    quote = await create_quote(auth_client, customer["id"])
    gateways.communication.fail = True

    response = await auth_client.post(f"/api/v1/workflow/quotes/{quote['id']}/send", json={})

    assert response.status_code == 502
    assert response.json()["error"]["kind"] == "gateway_error"

    response = await auth_client.get(f"/api/v1/quotes/{quote['id']}")
    assert response.json()["status"] == "draft"
    assert response.json()["communications"] == []


@pytest.mark.asyncio
async def test_export_batch_with_draft(auth_client: AsyncClient, gateways):
    customer = await create_customer(auth_client)
    draft = await create_quote(auth_client, customer["id"])
    approved = await create_quote(auth_client, customer["id"])
    await auth_client.post(f"/api/v1/workflow/quotes/{approved['id']}/send", json={})
    await auth_client.post(f"/api/v1/workflow/quotes/{approved['id']}/approve")

    response = await auth_client.post(
        "/api/v1/workflow/export",
        json={"quote_ids": [draft["id"], approved["id"]], "export_type": "invoice"},
    )

    assert response.status_code == 400
    error = response.json()["error"]
    assert error["field"] == "quote_ids[0]"
    assert str(draft["id"]) in error["message"]
    assert gateways.accounting.calls == 0

    response = await auth_client.post(
        "/api/v1/workflow/export",
        json={"quote_ids": [approved["id"]], "export_type": "invoice"},
    )
    assert response.status_code == 200
    assert response.json()["exported"] == 1


@pytest.mark.asyncio
async def test_export_spreadsheet(auth_client: AsyncClient):
    customer = await create_customer(auth_client)
    first = await create_quote(auth_client, customer["id"])
    second = await create_quote(auth_client, customer["id"])
    await auth_client.post(f"/api/v1/workflow/quotes/{second['id']}/send", json={})

    response = await auth_client.post(
        "/api/v1/workflow/export/spreadsheet",
        json={"quote_ids": [second["id"], first["id"]]},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=quotes_export_" in response.headers["content-disposition"]
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("Quote Number,Title,Customer")
    assert len(lines) == 3
    assert lines[1].startswith(f"{second['quote_number']},Spring cleanup,Dana Rivera")
    assert ",sent," in lines[1]
    assert ",draft," in lines[2]


@pytest.mark.asyncio
async def test_export_spreadsheet_unknown_quote(auth_client: AsyncClient):
    response = await auth_client.post(
        "/api/v1/workflow/export/spreadsheet",
        json={"quote_ids": [999]},
    )

    assert response.status_code == 400
    assert response.json()["error"]["field"] == "quote_ids[0]"


@pytest.mark.asyncio
async def test_record_communication(auth_client: AsyncClient, gateways):
    customer = await create_customer(auth_client)
    quote = await create_quote(auth_client, customer["id"])

    response = await auth_client.post(
        f"/api/v1/workflow/quotes/{quote['id']}/communications",
        json={"channel": "sms", "recipient": "(201) 555-0187", "body": "Called about the hedge"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["purpose"] == "external"
    assert body["recipient"] == "+12015550187"
    assert body["provider_status"] == "delivered"
    assert gateways.communication.calls == 0

    response = await auth_client.get(f"/api/v1/quotes/{quote['id']}/communications")
    assert [c["purpose"] for c in response.json()] == ["external"]


@pytest.mark.asyncio
async def test_list_quotes_by_status(auth_client: AsyncClient):
    customer = await create_customer(auth_client)
    await create_quote(auth_client, customer["id"])
    sent = await create_quote(auth_client, customer["id"])
    await auth_client.post(f"/api/v1/workflow/quotes/{sent['id']}/send", json={})

    response = await auth_client.get("/api/v1/quotes", params={"status": "sent"})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == sent["id"]


@pytest.mark.asyncio
async def test_workflow_metrics(auth_client: AsyncClient):
    customer = await create_customer(auth_client)
    quote = await create_quote(auth_client, customer["id"])
    await auth_client.post(f"/api/v1/workflow/quotes/{quote['id']}/send", json={})

    response = await auth_client.get("/api/v1/workflow/metrics")

    assert response.status_code == 200
    data = response.json()
    assert data["totals"]["quotes"] == 1
    assert data["totals"]["sent"] == 1
    assert data["conversion_rate"] == 0.0
    assert data["avg_time_to_approval"] is None


@pytest.mark.asyncio
async def test_customer_with_quotes_cannot_be_deleted(auth_client: AsyncClient):
    customer = await create_customer(auth_client)
    await create_quote(auth_client, customer["id"])

    response = await auth_client.delete(f"/api/v1/customers/{customer['id']}")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_workflow_requires_auth(client: AsyncClient):
    response = await client.post("/api/v1/workflow/quotes/1/approve")

    assert response.status_code == 401
