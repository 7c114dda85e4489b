"""Unit tests for request schemas and their validators."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from settlement.models.enums import ServiceStatus
from settlement.schemas.billing import ClosureCreate, InvoiceCreate
from settlement.schemas.commission import LiquidationAdjust, LiquidationCreate
from settlement.schemas.payment import PaymentCreate
from settlement.schemas.service import (
    BatchItem,
    BatchRequest,
    ReferenceNumberingRequest,
    ServiceReferencePatch,
    ServiceStatusPatch,
)
from settlement.services.batch_service import BatchService


def test_batch_item_patch_discriminated_by_kind():
    status_item = BatchItem.model_validate(
        {"service_id": str(uuid4()), "patch": {"kind": "status", "status": "dispatched"}}
    )
    reference_item = BatchItem.model_validate(
        {"service_id": str(uuid4()), "patch": {"kind": "reference", "quote_number": "COT-1"}}
    )
    assert isinstance(status_item.patch, ServiceStatusPatch)
    assert status_item.patch.status == ServiceStatus.DISPATCHED
    assert isinstance(reference_item.patch, ServiceReferencePatch)


def test_unknown_patch_kind_rejected():
    with pytest.raises(ValidationError):
        BatchItem.model_validate({"service_id": str(uuid4()), "patch": {"kind": "delete"}})


def test_reference_patch_requires_a_reference():
    with pytest.raises(ValidationError):
        ServiceReferencePatch()


def test_batch_request_needs_items():
    with pytest.raises(ValidationError):
        BatchRequest(items=[])


def test_reference_numbering_requires_exactly_one_mode():
    ids = [uuid4()]
    with pytest.raises(ValidationError):
        ReferenceNumberingRequest(service_ids=ids, field="quote_number")
    with pytest.raises(ValidationError):
        ReferenceNumberingRequest(service_ids=ids, field="quote_number", base_number="10", starting_number=10)


def test_build_reference_items_consecutive_numbers():
    ids = [uuid4(), uuid4(), uuid4()]
    request = ReferenceNumberingRequest(
        service_ids=ids, field="purchase_order_number", prefix="OC-", starting_number=100
    )
    items = BatchService.build_reference_items(request)
    assert [i.service_id for i in items] == ids
    assert [i.patch.purchase_order_number for i in items] == ["OC-100", "OC-101", "OC-102"]
    assert all(i.patch.quote_number is None for i in items)


def test_build_reference_items_shared_base_number():
    ids = [uuid4(), uuid4()]
    request = ReferenceNumberingRequest(service_ids=ids, field="quote_number", prefix="COT-", base_number="77")
    items = BatchService.build_reference_items(request)
    assert [i.patch.quote_number for i in items] == ["COT-77", "COT-77"]


def test_closure_period_must_be_ordered():
    with pytest.raises(ValidationError):
        ClosureCreate(client_id=uuid4(), period_start=date(2025, 3, 31), period_end=date(2025, 3, 1))


def test_closure_tax_rate_bounds():
    with pytest.raises(ValidationError):
        ClosureCreate(
            client_id=uuid4(), period_start=date(2025, 3, 1), period_end=date(2025, 3, 31), tax_rate=Decimal("101")
        )


def test_invoice_due_date_not_before_issue():
    with pytest.raises(ValidationError):
        InvoiceCreate(
            billing_closure_id=uuid4(),
            fiscal_folio="F-1",
            issue_date=date(2025, 4, 10),
            due_date=date(2025, 4, 1),
        )


def test_payment_amount_must_be_positive():
    with pytest.raises(ValidationError):
        PaymentCreate(client_id=uuid4(), amount=Decimal("0"), payment_date=date(2025, 4, 1), payment_method="transfer")


def test_liquidation_schemas():
    with pytest.raises(ValidationError):
        LiquidationCreate(operator_id=uuid4(), period_start=date(2025, 4, 1), period_end=date(2025, 3, 1))
    with pytest.raises(ValidationError):
        LiquidationAdjust(bonus=Decimal("-1"))
