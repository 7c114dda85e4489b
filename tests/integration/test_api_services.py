"""Integration tests: services, status pipeline and batch endpoints."""

from uuid import uuid4

import pytest
from httpx import AsyncClient


async def create_service(client: AsyncClient, api_base: str, headers: dict, client_id, **extra) -> dict:
    payload = {"client_id": str(client_id), "scheduled_date": "2025-03-10", "subtotal": "150000"}
    payload.update(extra)
    resp = await client.post(f"{api_base}/services", headers=headers, json=payload)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


@pytest.mark.asyncio
async def test_create_and_get_service(async_client, api_base, dispatcher_headers, client_record):
    created = await create_service(async_client, api_base, dispatcher_headers, client_record.id)
    assert created["folio"] == "SRV-000001"
    assert created["status"] == "pending"

    resp = await async_client.get(f"{api_base}/services/{created['id']}", headers=dispatcher_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == created["id"]


@pytest.mark.asyncio
async def test_create_service_validation_error(async_client, api_base, dispatcher_headers, client_record):
    resp = await async_client.post(
        f"{api_base}/services",
        headers=dispatcher_headers,
        json={"client_id": str(client_record.id), "scheduled_date": "2025-03-10", "subtotal": "-1"},
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert body["error"]["details"]["errors"]


@pytest.mark.asyncio
async def test_unknown_service_is_404(async_client, api_base, dispatcher_headers):
    missing = uuid4()
    resp = await async_client.get(f"{api_base}/services/{missing}", headers=dispatcher_headers)
    assert resp.status_code == 404
    error = resp.json()["error"]
    assert error["code"] == "RESOURCE_NOT_FOUND"
    assert error["details"] == {"entity": "Service", "entity_id": str(missing)}


@pytest.mark.asyncio
async def test_illegal_transition_is_409(async_client, api_base, dispatcher_headers, client_record):
    created = await create_service(async_client, api_base, dispatcher_headers, client_record.id)
    url = f"{api_base}/services/{created['id']}/status"

    resp = await async_client.patch(url, headers=dispatcher_headers, json={"status": "on_site"})
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "on_site"

    resp = await async_client.patch(url, headers=dispatcher_headers, json={"status": "pending"})
    assert resp.status_code == 409
    error = resp.json()["error"]
    assert error["code"] == "INVALID_TRANSITION"
    assert error["details"]["from_status"] == "on_site"
    assert error["details"]["to_status"] == "pending"


@pytest.mark.asyncio
async def test_batch_reports_failing_item(async_client, api_base, dispatcher_headers, client_record):
    first = await create_service(async_client, api_base, dispatcher_headers, client_record.id)
    second = await create_service(async_client, api_base, dispatcher_headers, client_record.id)
    missing = str(uuid4())

    resp = await async_client.post(f"{api_base}/services/batch", headers=dispatcher_headers, json={
        "items": [
            {"service_id": first["id"], "patch": {"kind": "status", "status": "dispatched"}},
            {"service_id": missing, "patch": {"kind": "status", "status": "dispatched"}},
            {"service_id": second["id"], "patch": {"kind": "reference", "quote_number": "COT-1"}},
        ],
    })
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert result["succeeded"] is False
    assert result["applied"] == 1
    assert result["failed_index"] == 1
    assert result["failed_item_id"] == missing
    assert result["error_code"] == "RESOURCE_NOT_FOUND"

    resp = await async_client.get(f"{api_base}/services/{second['id']}", headers=dispatcher_headers)
    assert resp.json()["data"]["quote_number"] is None


@pytest.mark.asyncio
async def test_reference_numbering(async_client, api_base, dispatcher_headers, client_record):
    services = [await create_service(async_client, api_base, dispatcher_headers, client_record.id) for _ in range(2)]

    resp = await async_client.post(f"{api_base}/services/batch/references", headers=dispatcher_headers, json={
        "service_ids": [s["id"] for s in services],
        "field": "purchase_order_number",
        "prefix": "OC-",
        "starting_number": 41,
    })
    assert resp.status_code == 200
    assert resp.json()["data"]["applied"] == 2

    numbers = []
    for service in services:
        resp = await async_client.get(f"{api_base}/services/{service['id']}", headers=dispatcher_headers)
        numbers.append(resp.json()["data"]["purchase_order_number"])
    assert numbers == ["OC-41", "OC-42"]


@pytest.mark.asyncio
async def test_assign_operator_endpoint(async_client, api_base, dispatcher_headers, client_record, assistant_record):
    created = await create_service(async_client, api_base, dispatcher_headers, client_record.id)
    resp = await async_client.post(
        f"{api_base}/services/{created['id']}/operators",
        headers=dispatcher_headers,
        json={"operator_id": str(assistant_record.id), "role": "assistant"},
    )
    assert resp.status_code == 200
    resp = await async_client.get(f"{api_base}/services/{created['id']}/operators", headers=dispatcher_headers)
    assert [o["role"] for o in resp.json()["data"]] == ["assistant"]


@pytest.mark.asyncio
async def test_list_services_is_paginated(async_client, api_base, viewer_headers, dispatcher_headers, client_record):
    for _ in range(3):
        await create_service(async_client, api_base, dispatcher_headers, client_record.id)

    resp = await async_client.get(
        f"{api_base}/services", headers=viewer_headers, params={"page": 2, "page_size": 2}
    )
    assert resp.status_code == 200
    body = resp.json()
    assert [s["folio"] for s in body["data"]] == ["SRV-000001"]
    assert body["meta"] == {"page": 2, "page_size": 2, "total": 3, "total_pages": 2}
