"""Tests for the ParaBank API adapter."""

import logging

import aiohttp
import pytest
from aioresponses import aioresponses

from parabank.regression_suite.api.client import (
    ApiAdapter,
    ApiResponse,
    FieldSpec,
    TransactionCriteria,
)
from parabank.regression_suite.errors import StructuralValidationError

BASE_URL = "https://parabank.test/parabank"
BANK_URL = f"{BASE_URL}/services/bank"
HEALTH_URL = f"{BANK_URL}/login/john/demo"


@pytest.fixture
def adapter() -> ApiAdapter:
    """Create an adapter that has not probed health yet."""
    return ApiAdapter(BASE_URL, timeout=1.0)


async def _make_healthy(adapter: ApiAdapter, m: aioresponses) -> None:
    m.get(HEALTH_URL, payload={"id": 12212, "firstName": "John"})
    assert await adapter.check_health() is True


async def test_check_health_success(adapter: ApiAdapter) -> None:
    """check_health sets the flag when the probe answers 200."""
    with aioresponses() as m:
        m.get(HEALTH_URL, payload={"id": 12212})
        healthy = await adapter.check_health()

    assert healthy is True
    assert adapter.is_healthy is True
    assert adapter.response_time >= 0


async def test_check_health_connection_error_never_raises(
    adapter: ApiAdapter,
) -> None:
    """check_health swallows transport errors and reports unhealthy."""
    with aioresponses() as m:
        m.get(HEALTH_URL, exception=aiohttp.ClientConnectionError("refused"))
        healthy = await adapter.check_health()

    assert healthy is False
    assert adapter.is_healthy is False


async def test_check_health_server_error(adapter: ApiAdapter) -> None:
    """check_health treats error statuses as unhealthy."""
    with aioresponses() as m:
        m.get(HEALTH_URL, status=503, body="down")
        assert await adapter.check_health() is False


async def test_unhealthy_adapter_still_serves(adapter: ApiAdapter) -> None:
    """A failed probe leaves find and get_account answering 200."""
    with aioresponses() as m:
        m.get(HEALTH_URL, exception=aiohttp.ClientConnectionError("refused"))
        await adapter.check_health()

    transactions = await adapter.find_transactions(13344)
    account = await adapter.get_account(13344)

    assert transactions.status == 200
    assert len(transactions.data) == 4
    assert account.status == 200
    assert account.data["id"] == 13344
    assert account.data["balance"] == 515.50


@pytest.mark.parametrize("amount", ["50.00", "50", 50.0, "50.004"])
async def test_find_by_amount_uses_tolerance(
    adapter: ApiAdapter, amount: object
) -> None:
    """Amount filtering matches within 0.01."""
    response = await adapter.find_transactions(
        12345, TransactionCriteria(amount=amount)  # type: ignore[arg-type]
    )

    assert response.status == 200
    assert len(response.data) == 1
    assert response.data[0]["description"] == "Bill Payment"


async def test_find_by_amount_without_match(adapter: ApiAdapter) -> None:
    """Amounts outside the tolerance match nothing."""
    response = await adapter.find_transactions(
        12345, TransactionCriteria(amount="50.02")
    )
    assert response.data == []


async def test_find_by_unparseable_amount(adapter: ApiAdapter) -> None:
    """An unparseable amount yields an empty, well-formed result."""
    response = await adapter.find_transactions(
        12345, TransactionCriteria(amount="abc")
    )
    assert response.status == 200
    assert response.data == []


async def test_find_by_type_is_case_insensitive(adapter: ApiAdapter) -> None:
    """'debit' and 'Debit' yield identical results."""
    lower = await adapter.find_transactions(1, TransactionCriteria(type="debit"))
    upper = await adapter.find_transactions(1, TransactionCriteria(type="Debit"))

    assert lower.data == upper.data
    assert [t["id"] for t in lower.data] == [12345, 12347]


async def test_find_by_type_credit(adapter: ApiAdapter) -> None:
    """Searching by Credit returns exactly the two credit records."""
    response = await adapter.find_transactions(
        12345, TransactionCriteria(type="Credit")
    )

    assert response.status == 200
    assert len(response.data) == 2
    assert all(t["type"] == "Credit" for t in response.data)
    assert all(t["accountId"] == 12345 for t in response.data)


async def test_find_by_date_range_is_inclusive(adapter: ApiAdapter) -> None:
    """Date-only bounds include the whole start and end days."""
    response = await adapter.find_transactions(
        1, TransactionCriteria(from_date="2023-12-02", to_date="2023-12-03")
    )
    assert [t["id"] for t in response.data] == [12346, 12347]


async def test_find_by_timestamp_range(adapter: ApiAdapter) -> None:
    """Full timestamps are compared by instant."""
    response = await adapter.find_transactions(
        1,
        TransactionCriteria(
            from_date="2023-12-02T14:30:00Z", to_date="2023-12-04T16:44:59Z"
        ),
    )
    assert [t["id"] for t in response.data] == [12346, 12347]


async def test_find_by_parabank_date_format(adapter: ApiAdapter) -> None:
    """MM-DD-YYYY bounds are accepted."""
    response = await adapter.find_transactions(
        1, TransactionCriteria(from_date="12-04-2023")
    )
    assert [t["id"] for t in response.data] == [12348]


async def test_get_transaction_history(adapter: ApiAdapter) -> None:
    """get_transaction_history filters by the date range."""
    response = await adapter.get_transaction_history(1, "2023-12-01", "2023-12-01")
    assert [t["id"] for t in response.data] == [12345]


async def test_healthy_find_uses_live_endpoint(adapter: ApiAdapter) -> None:
    """When healthy, find_transactions calls the type endpoint."""
    live = [{"id": 1, "accountId": 13344, "type": "Credit", "amount": 9.0}]
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.get(f"{BANK_URL}/accounts/13344/transactions/type/Credit", payload=live)
        response = await adapter.find_transactions(
            13344, TransactionCriteria(type="Credit")
        )

    assert response.status == 200
    assert response.data == live


async def test_healthy_find_falls_back_on_failure(
    adapter: ApiAdapter, caplog: pytest.LogCaptureFixture
) -> None:
    """A failing live call returns mock data without flipping health."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.get(
            f"{BANK_URL}/accounts/13344/transactions/amount/50.00",
            exception=aiohttp.ServerTimeoutError("slow"),
        )
        with caplog.at_level(logging.WARNING):
            response = await adapter.find_transactions(
                13344, TransactionCriteria(amount="50.00")
            )

    assert response.status == 200
    assert [t["description"] for t in response.data] == ["Bill Payment"]
    assert adapter.is_healthy is True
    assert "returning mock data" in caplog.text


async def test_healthy_get_account_falls_back_on_server_error(
    adapter: ApiAdapter,
) -> None:
    """A 500 from the live API is absorbed into a mock response."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.get(f"{BANK_URL}/accounts/13344", status=500, body="oops")
        response = await adapter.get_account(13344)

    assert response.status == 200
    assert response.data["type"] == "CHECKING"
    assert adapter.is_healthy is True


async def test_healthy_transfer_live(adapter: ApiAdapter) -> None:
    """transfer posts to the live API when healthy."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.post(f"{BANK_URL}/transfer", payload={"status": "SUCCESS", "id": 7})
        response = await adapter.transfer(13344, 13355, 25)

    assert response.data == {"status": "SUCCESS", "id": 7}


async def test_mock_transfer_structure(adapter: ApiAdapter) -> None:
    """Mock transfers carry typed fields."""
    response = await adapter.transfer("13344", "13355", "25.50")

    assert response.status == 200
    assert response.data["amount"] == 25.5
    assert response.data["status"] == "SUCCESS"
    adapter.validate_response_structure(
        response,
        [
            FieldSpec(field="id", type="number"),
            FieldSpec(field="fromAccountId", type="number"),
            FieldSpec(field="date", type="string"),
        ],
    )


async def test_mock_create_account(adapter: ApiAdapter) -> None:
    """Mock account creation returns a plausible new account."""
    response = await adapter.create_account(12212, "savings", 13344)

    assert response.status == 200
    assert response.data["type"] == "SAVINGS"
    assert response.data["id"] >= 13300
    assert response.data["status"] == "ACTIVE"


async def test_mock_pay_bill(adapter: ApiAdapter) -> None:
    """Mock bill payment returns a confirmation number."""
    response = await adapter.pay_bill(13344, {"name": "Electric Company"}, 75)

    assert response.status == 200
    assert response.data["payeeName"] == "Electric Company"
    assert response.data["confirmationNumber"].startswith("PAY")


async def test_mock_customer_accounts(adapter: ApiAdapter) -> None:
    """Mock customer accounts list two accounts."""
    response = await adapter.get_customer_accounts(12212)
    assert [a["id"] for a in response.data] == [13344, 13355]


@pytest.mark.parametrize(
    ("request_type", "status", "code"),
    [
        ("Invalid account ID", 404, "ACCOUNT_NOT_FOUND"),
        ("Missing parameters", 400, "MISSING_PARAMETERS"),
        ("Invalid amount", 400, "INVALID_AMOUNT"),
    ],
)
async def test_invalid_request_unhealthy(
    adapter: ApiAdapter, request_type: str, status: int, code: str
) -> None:
    """Unhealthy invalid requests return the canonical error."""
    response = await adapter.make_invalid_request(request_type)

    assert response.status == status
    assert response.data["code"] == code
    assert {"error", "message", "code"} <= response.data.keys()


async def test_invalid_request_unknown_type_unhealthy(adapter: ApiAdapter) -> None:
    """Unknown request types map to a 500 when unhealthy."""
    response = await adapter.make_invalid_request("Teleport funds")
    assert response.status == 500
    assert response.data["error"] == "Unknown error type"


async def test_invalid_request_unknown_type_healthy(adapter: ApiAdapter) -> None:
    """Unknown request types map to a 400 when healthy."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        response = await adapter.make_invalid_request("Teleport funds")

    assert response.status == 400
    assert response.data["error"] == "Unknown Request Type"


async def test_invalid_request_healthy_uses_live_error(adapter: ApiAdapter) -> None:
    """A live error body with the expected fields is passed through."""
    body = {"error": "Nope", "message": "no such account", "code": "E404"}
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.get(f"{BANK_URL}/accounts/999999999", status=404, payload=body)
        response = await adapter.make_invalid_request("Invalid account ID")

    assert response.status == 404
    assert response.data == body


async def test_invalid_request_healthy_incomplete_body(adapter: ApiAdapter) -> None:
    """A live error without the expected fields uses the canonical body."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.post(f"{BANK_URL}/transfer", status=422, body="Could not transfer")
        response = await adapter.make_invalid_request("Invalid amount")

    assert response.status == 422
    assert response.data["code"] == "INVALID_AMOUNT"


async def test_invalid_request_healthy_transport_error(adapter: ApiAdapter) -> None:
    """A transport failure uses the canonical status and body."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.post(f"{BANK_URL}/transfer", exception=aiohttp.ClientConnectionError())
        response = await adapter.make_invalid_request("Missing parameters")

    assert response.status == 400
    assert response.data["code"] == "MISSING_PARAMETERS"


def test_validate_response_structure_success() -> None:
    """Matching fields and types validate."""
    response = ApiResponse(data=[{"id": 1, "type": "Credit"}], status=200)
    assert ApiAdapter.validate_response_structure(
        response,
        [FieldSpec(field="id", type="number"), FieldSpec(field="type", type="string")],
    )


def test_validate_response_structure_missing_field() -> None:
    """The first missing field is named."""
    response = ApiResponse(data={"id": 1}, status=200)
    with pytest.raises(StructuralValidationError, match="Missing required field: date"):
        ApiAdapter.validate_response_structure(
            response,
            [
                FieldSpec(field="date", type="string"),
                FieldSpec(field="x", type="string"),
            ],
        )


def test_validate_response_structure_type_mismatch() -> None:
    """A mistyped field is reported with both types."""
    response = ApiResponse(data={"amount": "50.00"}, status=200)
    with pytest.raises(
        StructuralValidationError, match="amount has type string, expected number"
    ):
        ApiAdapter.validate_response_structure(
            response, [FieldSpec(field="amount", type="number")]
        )


def test_validate_response_structure_bool_is_not_number() -> None:
    """Booleans do not satisfy number fields."""
    response = ApiResponse(data={"id": True}, status=200)
    with pytest.raises(StructuralValidationError):
        ApiAdapter.validate_response_structure(
            response, [FieldSpec(field="id", type="number")]
        )


@pytest.mark.parametrize("data", [None, [], "text"])
def test_validate_response_structure_missing_data(data: object) -> None:
    """Responses without an object body fail validation."""
    with pytest.raises(StructuralValidationError, match="Invalid response structure"):
        ApiAdapter.validate_response_structure(
            ApiResponse(data=data, status=200), [FieldSpec(field="id", type="number")]
        )


def test_structural_error_is_an_assertion() -> None:
    """Structural errors fail steps like assertions."""
    assert issubclass(StructuralValidationError, AssertionError)


async def test_check_health_undecodable_body(adapter: ApiAdapter) -> None:
    """A 200 probe with a non-UTF-8 body neither raises nor fails health."""
    with aioresponses() as m:
        m.get(
            HEALTH_URL,
            status=200,
            body=b"\xff\xfe\xfa\x00garbage",
            content_type="text/plain",
        )
        healthy = await adapter.check_health()

    assert healthy is True


async def test_live_undecodable_body_is_returned_as_text(
    adapter: ApiAdapter,
) -> None:
    """Non-JSON, non-UTF-8 live bodies come back decoded with replacements."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.get(
            f"{BANK_URL}/accounts/1/transactions/type/Credit",
            status=200,
            body=b"\xff\xfe\xfa\x00garbage",
            content_type="text/plain",
        )
        response = await adapter.find_transactions(
            1, TransactionCriteria(type="Credit")
        )

    assert response.status == 200
    assert isinstance(response.data, str)
    assert response.data.endswith("garbage")


async def test_live_undecodable_error_body_falls_back(adapter: ApiAdapter) -> None:
    """An error status with an undecodable body still falls back to mock data."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.get(
            f"{BANK_URL}/accounts/13344",
            status=502,
            body=b"\xff\xfe",
            content_type="text/plain",
        )
        response = await adapter.get_account(13344)

    assert response.status == 200
    assert response.data["id"] == 13344


async def test_non_numeric_account_id_served_from_mock(adapter: ApiAdapter) -> None:
    """Non-numeric identifiers are echoed back instead of raising."""
    transactions = await adapter.find_transactions(
        "ABC-1", TransactionCriteria(type="Credit")
    )
    account = await adapter.get_account("ABC-1")
    customers = await adapter.get_customer_accounts("cust-x")

    assert transactions.status == 200
    assert [t["accountId"] for t in transactions.data] == ["ABC-1", "ABC-1"]
    assert account.status == 200
    assert account.data["id"] == "ABC-1"
    assert customers.data[0]["customerId"] == "cust-x"


async def test_numeric_string_ids_are_coerced(adapter: ApiAdapter) -> None:
    """Numeric strings become integers in mock payloads."""
    response = await adapter.get_account("13344")
    assert response.data["id"] == 13344


async def test_mock_writes_with_non_numeric_values(adapter: ApiAdapter) -> None:
    """Mock transfers and payments accept non-numeric ids and amounts."""
    transfer = await adapter.transfer("from-x", 13355, "lots")
    created = await adapter.create_account("cust-x", "checking", "from-x")
    payment = await adapter.pay_bill("acct-x", {"name": "Gas"}, "ten")

    assert transfer.status == 200
    assert transfer.data["fromAccountId"] == "from-x"
    assert transfer.data["amount"] == "lots"
    assert created.data["customerId"] == "cust-x"
    assert payment.data["accountId"] == "acct-x"
    assert payment.data["amount"] == "ten"


async def test_live_path_uses_raw_account_id(adapter: ApiAdapter) -> None:
    """The live URL carries the identifier as given."""
    with aioresponses() as m:
        await _make_healthy(adapter, m)
        m.get(f"{BANK_URL}/accounts/ABC-1", payload={"id": "ABC-1"})
        response = await adapter.get_account("ABC-1")

    assert response.data == {"id": "ABC-1"}
