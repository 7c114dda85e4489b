"""Unit tests for settings, errors, logging and token handling."""

import json
import logging
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

from settlement.config import settings
from settlement.core.exceptions import (
    AmountMismatch,
    ClosureAlreadyInvoiced,
    EntityNotFound,
    InvalidState,
    ReconciliationConflict,
)
from settlement.core.logging import build_formatter
from settlement.database import build_database_url, engine_options, split_ssl_options
from settlement.core.security import create_access_token, decode_token, principal_from_payload
from settlement.main import status_code_for
from settlement.models.enums import ActorRole


def test_settings_load():
    assert settings.API_V1_PREFIX == "/api/v1"
    assert settings.APP_NAME == "Settlement Backend"
    assert settings.RATE_LIMIT_ENABLED is False


def test_environment_flag():
    assert settings.is_development == (settings.ENVIRONMENT.lower() == "development")
    assert settings.is_production == (settings.ENVIRONMENT.lower() == "production")


def test_money_quantum_follows_currency_decimals():
    assert settings.money_quantum == Decimal(1).scaleb(-settings.CURRENCY_DECIMALS)


def test_errors_carry_code_and_plain_details():
    invoice_id = uuid4()
    closure_id = uuid4()
    err = ClosureAlreadyInvoiced(closure_id, invoice_id)
    assert isinstance(err, InvalidState)
    assert err.to_dict() == {
        "code": "CLOSURE_ALREADY_INVOICED",
        "message": f"Closure {closure_id} has already been invoiced",
        "details": {"closure_id": str(closure_id), "invoice_id": str(invoice_id)},
    }


def test_amount_mismatch_is_a_reconciliation_conflict():
    err = AmountMismatch(Decimal("100"), Decimal("90"))
    assert isinstance(err, ReconciliationConflict)
    assert err.details == {"transaction_amount": "100", "payment_amount": "90"}


def test_error_status_mapping():
    assert status_code_for(EntityNotFound("Invoice", uuid4())) == 404
    assert status_code_for(ClosureAlreadyInvoiced(uuid4())) == 409
    assert status_code_for(AmountMismatch(Decimal("1"), Decimal("2"))) == 409


def test_access_token_round_trip():
    actor_id = uuid4()
    token = create_access_token({"sub": str(actor_id), "role": "finance"})
    principal = principal_from_payload(decode_token(token))
    assert principal.actor_id == actor_id
    assert principal.role == ActorRole.FINANCE
    assert principal.has_role(ActorRole.ADMIN, ActorRole.FINANCE)


def test_expired_or_tampered_tokens_rejected():
    expired = create_access_token({"sub": str(uuid4()), "role": "finance"}, expires_delta=timedelta(minutes=-1))
    assert decode_token(expired) is None
    assert decode_token("not-a-token") is None


def test_token_with_unknown_role_has_no_principal():
    token = create_access_token({"sub": str(uuid4()), "role": "janitor"})
    assert principal_from_payload(decode_token(token)) is None


def test_json_log_record_carries_context():
    record = logging.LogRecord("settlement.test", logging.INFO, __file__, 1, "Invoice sent", None, None)
    invoice_id = uuid4()
    record.invoice_id = invoice_id
    record.correlation_id = "req-1"

    payload = json.loads(build_formatter("json").format(record))
    assert payload["message"] == "Invoice sent"
    assert payload["level"] == "INFO"
    assert payload["currency"] == "CLP"
    assert payload["correlation_id"] == "req-1"
    assert payload["invoice_id"] == str(invoice_id)


def test_text_log_format():
    record = logging.LogRecord("settlement.test", logging.WARNING, __file__, 1, "Payment rejected", None, None)
    assert "WARNING - Payment rejected" in build_formatter("text").format(record)


def test_database_url_uses_asyncpg():
    assert build_database_url("postgresql://u:p@db/settlement") == "postgresql+asyncpg://u:p@db/settlement"
    assert build_database_url("sqlite+aiosqlite:///x.db") == "sqlite+aiosqlite:///x.db"


def test_sslmode_moves_to_connect_args():
    url, connect_args = split_ssl_options("postgresql+asyncpg://db/settlement?sslmode=require&application_name=api")
    assert url == "postgresql+asyncpg://db/settlement?application_name=api"
    assert "ssl" in connect_args

    url, connect_args = split_ssl_options("postgresql+asyncpg://db/settlement")
    assert url == "postgresql+asyncpg://db/settlement"
    assert connect_args == {}


def test_sqlite_engine_has_no_pool_sizing():
    assert "pool_size" not in engine_options("sqlite+aiosqlite:///x.db")
    assert engine_options("postgresql+asyncpg://db/settlement")["pool_size"] == settings.DB_POOL_SIZE
