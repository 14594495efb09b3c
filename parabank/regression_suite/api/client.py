"""ParaBank REST client with health probing and mock fallback."""

import asyncio
import logging
import random
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import date, datetime, timedelta, timezone
from typing import Any, Literal

import aiohttp
from pydantic import BaseModel, Field

from parabank.regression_suite.api.mock_data import (
    MOCK_DATASET,
    MockDataset,
    MockTransaction,
)
from parabank.regression_suite.errors import (
    NetworkError,
    StructuralValidationError,
)

logger = logging.getLogger(__name__)

JSON_HEADERS = {"content-type": "application/json"}

CANONICAL_ERRORS: dict[str, tuple[int, dict[str, str]]] = {
    "Invalid account ID": (
        404,
        {
            "error": "Account not found",
            "message": "The specified account ID does not exist",
            "code": "ACCOUNT_NOT_FOUND",
        },
    ),
    "Missing parameters": (
        400,
        {
            "error": "Bad Request",
            "message": "Required parameters are missing",
            "code": "MISSING_PARAMETERS",
        },
    ),
    "Invalid amount": (
        400,
        {
            "error": "Bad Request",
            "message": "Invalid amount format or value",
            "code": "INVALID_AMOUNT",
        },
    ),
}

AMOUNT_TOLERANCE = 0.01


class ApiResponse(BaseModel):
    """Uniform response shape for live and mock calls."""

    data: Any = Field(default=None, description="Decoded JSON body")
    status: int = Field(..., description="HTTP status code")
    headers: dict[str, str] = Field(default_factory=dict, description="Headers")


class TransactionCriteria(BaseModel):
    """Optional transaction search filters."""

    amount: float | str | None = Field(default=None, description="Exact amount")
    type: str | None = Field(default=None, description="Credit or Debit")
    from_date: str | date | None = Field(default=None, description="Range start")
    to_date: str | date | None = Field(default=None, description="Range end")


class FieldSpec(BaseModel):
    """Expected field of a response body."""

    field: str = Field(..., description="Field name")
    type: Literal["number", "string"] = Field(..., description="Expected JSON type")


def _parse_instant(value: str | date, end_of_day: bool = False) -> datetime:
    """Parse a filter bound into an aware datetime.

    Date-only bounds cover the whole day: a start bound is midnight, an end
    bound is the last microsecond of the day.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
        if end_of_day:
            parsed += timedelta(days=1, microseconds=-1)
    else:
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            # ParaBank's UI uses MM-DD-YYYY
            parsed = datetime.strptime(text, "%m-%d-%Y")
        if end_of_day and len(text) == 10:
            parsed += timedelta(days=1, microseconds=-1)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def filter_transactions(
    transactions: list[MockTransaction], criteria: TransactionCriteria
) -> list[MockTransaction]:
    """Apply amount, type and date-range filters to transactions."""
    result = list(transactions)

    if criteria.amount is not None and criteria.amount != "":
        try:
            amount = float(criteria.amount)
        except ValueError:
            logger.warning(f"Unparseable amount filter: {criteria.amount!r}")
            return []
        result = [t for t in result if abs(t.amount - amount) < AMOUNT_TOLERANCE]

    if criteria.type:
        wanted = criteria.type.lower()
        result = [t for t in result if t.type.lower() == wanted]

    try:
        start = _parse_instant(criteria.from_date) if criteria.from_date else None
        end = (
            _parse_instant(criteria.to_date, end_of_day=True)
            if criteria.to_date
            else None
        )
    except ValueError:
        logger.warning(
            f"Unparseable date filter: {criteria.from_date!r}..{criteria.to_date!r}"
        )
        return []

    if start is not None:
        result = [t for t in result if t.date >= start]
    if end is not None:
        result = [t for t in result if t.date <= end]

    return result


class ApiAdapter:
    """ParaBank API client that always answers with a well-formed response.

    When the health probe fails, every call is served from the fixed mock
    dataset. When the probe succeeded but a live call fails, that single call
    falls back to the mock path; the health flag is left unchanged.
    """

    HEALTH_ENDPOINT = "/services/bank/login/john/demo"
    BANK_PATH = "/services/bank"

    def __init__(
        self,
        base_url: str = "https://parabank.parasoft.com/parabank",
        timeout: float = 10.0,
        dataset: MockDataset = MOCK_DATASET,
    ) -> None:
        """Initialize the adapter; health is unknown (false) until probed."""
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.dataset = dataset
        self._healthy = False
        self._response_time = 0.0

    @property
    def is_healthy(self) -> bool:
        """Result of the last health probe."""
        return self._healthy

    @property
    def response_time(self) -> float:
        """Round-trip time of the last call in milliseconds."""
        return self._response_time

    async def check_health(self) -> bool:
        """Probe the API once. Never raises."""
        start = time.perf_counter()
        try:
            response = await self._request("GET", self.HEALTH_ENDPOINT)
            self._healthy = response.status == 200
        except NetworkError as e:
            logger.warning(f"API health check failed, proceeding with mock data: {e}")
            self._healthy = False
        finally:
            self._response_time = (time.perf_counter() - start) * 1000

        logger.info(
            f"API health: {'up' if self._healthy else 'down'} "
            f"({self._response_time:.0f} ms)"
        )
        return self._healthy

    async def _request(
        self,
        method: str,
        path: str,
        payload: Mapping[str, object] | None = None,
    ) -> ApiResponse:
        """Perform one live call.

        Raises:
            NetworkError: On transport failure, timeout or non-2xx status

        """
        url = f"{self.base_url}{path}"
        headers = {"Accept": "application/json", "Content-Type": "application/json"}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(
                    method, url, headers=headers, json=payload
                ) as response:
                    if response.status >= 400:
                        body = await self._read_body(response)
                        raise NetworkError(
                            f"{method} {path} failed: {response.status}",
                            status=response.status,
                            body=body,
                        )
                    return ApiResponse(
                        data=await self._read_body(response),
                        status=response.status,
                        headers=dict(response.headers),
                    )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method} {path} failed: {e!r}") from e

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> object:
        try:
            return await response.json(content_type=None)
        except ValueError:
            return await response.text(errors="replace")

    async def _with_fallback(
        self,
        operation: str,
        live: Callable[[], Awaitable[ApiResponse]],
        mock: Callable[[], ApiResponse],
    ) -> ApiResponse:
        """Run the live call when healthy, otherwise or on failure the mock."""
        start = time.perf_counter()
        try:
            if not self._healthy:
                return mock()
            try:
                return await live()
            except NetworkError as e:
                logger.warning(f"{operation} API call failed, returning mock data: {e}")
                return mock()
        finally:
            self._response_time = (time.perf_counter() - start) * 1000

    @staticmethod
    def _mock_response(data: object) -> ApiResponse:
        return ApiResponse(data=data, status=200, headers=dict(JSON_HEADERS))

    async def find_transactions(
        self, account_id: int | str, criteria: TransactionCriteria | None = None
    ) -> ApiResponse:
        """Search an account's transactions."""
        criteria = criteria or TransactionCriteria()
        account = _as_id(account_id)

        def mock() -> ApiResponse:
            transactions = self.dataset.transactions_for(account)
            matches = filter_transactions(transactions, criteria)
            return self._mock_response([t.to_payload() for t in matches])

        async def live() -> ApiResponse:
            path = f"{self.BANK_PATH}/accounts/{account}/transactions"
            if criteria.amount not in (None, ""):
                path += f"/amount/{criteria.amount}"
            elif criteria.type:
                path += f"/type/{criteria.type}"
            elif criteria.from_date and criteria.to_date:
                path += f"/fromDate/{criteria.from_date}/toDate/{criteria.to_date}"
            return await self._request("GET", path)

        return await self._with_fallback("Find transactions", live, mock)

    async def get_transaction_history(
        self,
        account_id: int | str,
        start: str | date | None,
        end: str | date | None,
    ) -> ApiResponse:
        """Transactions of an account within an inclusive date range."""
        return await self.find_transactions(
            account_id, TransactionCriteria(from_date=start, to_date=end)
        )

    async def get_account(self, account_id: int | str) -> ApiResponse:
        """Account details."""
        account = _as_id(account_id)
        return await self._with_fallback(
            "Get account",
            lambda: self._request("GET", f"{self.BANK_PATH}/accounts/{account}"),
            lambda: self._mock_response(self.dataset.account_payload(account)),
        )

    async def get_customer_accounts(self, customer_id: int | str) -> ApiResponse:
        """Accounts owned by a customer."""
        customer = _as_id(customer_id)
        return await self._with_fallback(
            "Get customer accounts",
            lambda: self._request(
                "GET", f"{self.BANK_PATH}/customers/{customer}/accounts"
            ),
            lambda: self._mock_response(
                self.dataset.customer_accounts_payload(customer)
            ),
        )

    async def transfer(
        self,
        from_account_id: int | str,
        to_account_id: int | str,
        amount: float | str,
    ) -> ApiResponse:
        """Transfer funds between two accounts."""
        payload = {
            "fromAccountId": from_account_id,
            "toAccountId": to_account_id,
            "amount": amount,
        }

        def mock() -> ApiResponse:
            return self._mock_response(
                {
                    "id": _now_millis(),
                    "fromAccountId": _as_id(from_account_id),
                    "toAccountId": _as_id(to_account_id),
                    "amount": _as_amount(amount),
                    "date": _now_iso(),
                    "status": "SUCCESS",
                    "message": "Transfer completed successfully",
                }
            )

        return await self._with_fallback(
            "Transfer",
            lambda: self._request("POST", f"{self.BANK_PATH}/transfer", payload),
            mock,
        )

    async def create_account(
        self,
        customer_id: int | str,
        account_type: str,
        from_account_id: int | str,
    ) -> ApiResponse:
        """Open a new account funded from an existing one."""
        payload = {
            "customerId": customer_id,
            "newAccountType": account_type,
            "fromAccountId": from_account_id,
        }

        def mock() -> ApiResponse:
            return self._mock_response(
                {
                    "id": random.randint(13300, 1013299),  # noqa: S311
                    "customerId": _as_id(customer_id),
                    "type": account_type.upper(),
                    "balance": 100.00,
                    "createdDate": _now_iso(),
                    "status": "ACTIVE",
                }
            )

        return await self._with_fallback(
            "Create account",
            lambda: self._request("POST", f"{self.BANK_PATH}/createAccount", payload),
            mock,
        )

    async def pay_bill(
        self,
        account_id: int | str,
        payee: Mapping[str, object],
        amount: float | str,
    ) -> ApiResponse:
        """Pay a bill from an account."""
        payload = {"accountId": account_id, "amount": amount, "payee": dict(payee)}

        def mock() -> ApiResponse:
            stamp = _now_millis()
            return self._mock_response(
                {
                    "id": stamp,
                    "accountId": _as_id(account_id),
                    "payeeName": payee.get("name"),
                    "amount": _as_amount(amount),
                    "date": _now_iso(),
                    "status": "SUCCESS",
                    "confirmationNumber": f"PAY{stamp}",
                    "message": "Bill payment completed successfully",
                }
            )

        return await self._with_fallback(
            "Bill payment",
            lambda: self._request("POST", f"{self.BANK_PATH}/billpay", payload),
            mock,
        )

    async def make_invalid_request(self, request_type: str) -> ApiResponse:
        """Issue a known-bad request and return its canonical error shape."""
        start = time.perf_counter()
        try:
            if not self._healthy:
                status, body = CANONICAL_ERRORS.get(
                    request_type,
                    (
                        500,
                        {
                            "error": "Unknown error type",
                            "message": "Unhandled error scenario",
                        },
                    ),
                )
                return ApiResponse(data=dict(body), status=status)

            if request_type not in CANONICAL_ERRORS:
                return ApiResponse(
                    data={
                        "error": "Unknown Request Type",
                        "message": f"Request type '{request_type}' is not supported",
                    },
                    status=400,
                )
            return await self._live_invalid_request(request_type)
        finally:
            self._response_time = (time.perf_counter() - start) * 1000

    async def _live_invalid_request(self, request_type: str) -> ApiResponse:
        canonical_status, canonical_body = CANONICAL_ERRORS[request_type]
        if request_type == "Invalid account ID":
            call = self._request("GET", f"{self.BANK_PATH}/accounts/999999999")
        elif request_type == "Missing parameters":
            call = self._request("POST", f"{self.BANK_PATH}/transfer", {})
        else:
            call = self._request(
                "POST",
                f"{self.BANK_PATH}/transfer",
                {
                    "fromAccountId": 12345,
                    "toAccountId": 12346,
                    "amount": "invalid_amount",
                },
            )

        try:
            response = await call
        except NetworkError as e:
            status = e.status or canonical_status
            body = e.body
            if isinstance(body, dict) and {"error", "message", "code"} <= body.keys():
                return ApiResponse(data=body, status=status)
            return ApiResponse(data=dict(canonical_body), status=status)

        logger.warning(
            f"Invalid request '{request_type}' unexpectedly succeeded "
            f"({response.status}), returning canonical error"
        )
        return ApiResponse(data=dict(canonical_body), status=canonical_status)

    @staticmethod
    def validate_response_structure(
        response: ApiResponse, fields: list[FieldSpec]
    ) -> bool:
        """Check that the body carries the expected fields and JSON types.

        List bodies are checked against their first element.

        Raises:
            StructuralValidationError: Naming the first missing or mistyped field

        """
        data = response.data
        if isinstance(data, list):
            if not data:
                raise StructuralValidationError(
                    "Invalid response structure: empty data list"
                )
            data = data[0]
        if not isinstance(data, dict):
            raise StructuralValidationError(
                "Invalid response structure: missing data field"
            )

        for spec in fields:
            if spec.field not in data:
                raise StructuralValidationError(f"Missing required field: {spec.field}")
            actual = _json_type(data[spec.field])
            if actual != spec.type:
                raise StructuralValidationError(
                    f"Field {spec.field} has type {actual}, expected {spec.type}"
                )
        return True


def _json_type(value: object) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if value is None:
        return "null"
    if isinstance(value, list):
        return "array"
    return "object"


def _now_millis() -> int:
    return int(time.time() * 1000)


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def _as_id(value: int | str) -> int | str:
    """Numeric identifiers become ints; anything else passes through unchanged."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return value


def _as_amount(value: float | str) -> float | str:
    try:
        return float(value)
    except (TypeError, ValueError):
        return value
