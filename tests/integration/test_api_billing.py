"""Integration tests: service to invoice to payment, through the HTTP API."""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from httpx import AsyncClient


async def completed_service(client: AsyncClient, api_base: str, headers: dict, client_id, operator_id=None) -> dict:
    payload = {"client_id": str(client_id), "scheduled_date": "2025-03-10", "subtotal": "150000"}
    if operator_id is not None:
        payload["operator_id"] = str(operator_id)
    resp = await client.post(f"{api_base}/services", headers=headers, json=payload)
    assert resp.status_code == 200, resp.text
    service_id = resp.json()["data"]["id"]
    resp = await client.patch(f"{api_base}/services/{service_id}/status", headers=headers, json={"status": "completed"})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


async def approved_closure(client: AsyncClient, api_base: str, headers: dict, client_id) -> dict:
    resp = await client.post(f"{api_base}/closures", headers=headers, json={
        "client_id": str(client_id), "period_start": "2025-03-01", "period_end": "2025-03-31",
    })
    assert resp.status_code == 200, resp.text
    closure_id = resp.json()["data"]["id"]
    resp = await client.post(f"{api_base}/closures/{closure_id}/approve", headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def invoice_payload(closure_id) -> dict:
    today = date.today()
    return {
        "billing_closure_id": closure_id,
        "fiscal_folio": f"F-{uuid4().hex[:8]}",
        "issue_date": today.isoformat(),
        "due_date": (today + timedelta(days=30)).isoformat(),
    }


@pytest.mark.asyncio
async def test_billing_flow_end_to_end(
    async_client, api_base, admin_headers, finance_headers, client_record, operator_record
):
    service = await completed_service(async_client, api_base, admin_headers, client_record.id, operator_record.id)
    closure = await approved_closure(async_client, api_base, finance_headers, client_record.id)
    assert Decimal(closure["subtotal"]) == Decimal("150000")
    assert Decimal(closure["tax_amount"]) == Decimal("28500")
    assert Decimal(closure["total"]) == Decimal("178500")
    assert closure["status"] == "approved"

    resp = await async_client.get(f"{api_base}/closures/{closure['id']}", headers=finance_headers)
    assert [s["service_id"] for s in resp.json()["data"]["services"]] == [service["id"]]

    resp = await async_client.post(f"{api_base}/invoices", headers=finance_headers, json=invoice_payload(closure["id"]))
    assert resp.status_code == 200, resp.text
    invoice = resp.json()["data"]
    assert invoice["status"] == "draft"
    assert Decimal(invoice["balance_due"]) == Decimal("178500")

    resp = await async_client.post(f"{api_base}/invoices/{invoice['id']}/send", headers=finance_headers)
    assert resp.json()["data"]["status"] == "sent"

    resp = await async_client.post(f"{api_base}/payments", headers=finance_headers, json={
        "client_id": str(client_record.id),
        "invoice_id": invoice["id"],
        "amount": "78500",
        "payment_date": date.today().isoformat(),
        "payment_method": "transfer",
        "confirm_now": True,
    })
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["status"] == "confirmed"

    resp = await async_client.get(f"{api_base}/invoices/{invoice['id']}", headers=finance_headers)
    data = resp.json()["data"]
    assert Decimal(data["balance_due"]) == Decimal("100000")
    assert data["status"] == "partial"

    resp = await async_client.get(f"{api_base}/services/{service['id']}", headers=finance_headers)
    assert resp.json()["data"]["status"] == "invoiced"

    resp = await async_client.get(
        f"{api_base}/commissions/entries", headers=finance_headers, params={"service_id": service["id"]}
    )
    assert [Decimal(e["commission_amount"]) for e in resp.json()["data"]] == [Decimal("15000")]


@pytest.mark.asyncio
async def test_second_invoice_for_closure_is_409(async_client, api_base, admin_headers, client_record):
    await completed_service(async_client, api_base, admin_headers, client_record.id)
    closure = await approved_closure(async_client, api_base, admin_headers, client_record.id)

    first = await async_client.post(f"{api_base}/invoices", headers=admin_headers, json=invoice_payload(closure["id"]))
    assert first.status_code == 200
    second = await async_client.post(f"{api_base}/invoices", headers=admin_headers, json=invoice_payload(closure["id"]))
    assert second.status_code == 409
    error = second.json()["error"]
    assert error["code"] == "CLOSURE_ALREADY_INVOICED"
    assert error["details"]["invoice_id"] == first.json()["data"]["id"]


@pytest.mark.asyncio
async def test_empty_closure_is_422(async_client, api_base, finance_headers, client_record):
    resp = await async_client.post(f"{api_base}/closures", headers=finance_headers, json={
        "client_id": str(client_record.id), "period_start": "2025-03-01", "period_end": "2025-03-31",
    })
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "NO_ELIGIBLE_SERVICES"


@pytest.mark.asyncio
async def test_mark_paid_endpoint(async_client, api_base, admin_headers, client_record):
    await completed_service(async_client, api_base, admin_headers, client_record.id)
    closure = await approved_closure(async_client, api_base, admin_headers, client_record.id)
    resp = await async_client.post(f"{api_base}/invoices", headers=admin_headers, json=invoice_payload(closure["id"]))
    invoice_id = resp.json()["data"]["id"]
    missing = str(uuid4())

    resp = await async_client.post(f"{api_base}/invoices/mark-paid", headers=admin_headers, json={
        "invoice_ids": [invoice_id, missing],
    })
    assert resp.status_code == 200
    result = resp.json()["data"]
    assert result["succeeded"] == [invoice_id]
    assert [f["invoice_id"] for f in result["failed"]] == [missing]

    resp = await async_client.get(f"{api_base}/invoices/{invoice_id}", headers=admin_headers)
    assert resp.json()["data"]["status"] == "paid"


@pytest.mark.asyncio
async def test_refresh_overdue_endpoint(async_client, api_base, admin_headers, client_record):
    await completed_service(async_client, api_base, admin_headers, client_record.id)
    closure = await approved_closure(async_client, api_base, admin_headers, client_record.id)
    resp = await async_client.post(f"{api_base}/invoices", headers=admin_headers, json=invoice_payload(closure["id"]))
    invoice_id = resp.json()["data"]["id"]
    await async_client.post(f"{api_base}/invoices/{invoice_id}/send", headers=admin_headers)

    as_of = (date.today() + timedelta(days=60)).isoformat()
    resp = await async_client.post(f"{api_base}/invoices/refresh-overdue", headers=admin_headers, json={"today": as_of})
    assert resp.status_code == 200
    assert resp.json()["data"] == {"updated": 1, "as_of": as_of}
