"""Fixed synthetic ParaBank records served when the live API is unavailable."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MOCK_DATASET_VERSION = "1"


class MockTransaction(BaseModel):
    """Synthetic transaction record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int = Field(..., description="Transaction identifier")
    account_id: int | str = Field(
        ..., alias="accountId", description="Owning account"
    )
    type: Literal["Credit", "Debit"] = Field(..., description="Transaction type")
    date: datetime = Field(..., description="ISO-8601 timestamp")
    amount: float = Field(..., description="Transaction amount")
    description: str = Field(..., description="Transaction description")

    def to_payload(self) -> dict[str, object]:
        """Render as the API's JSON representation."""
        return {
            "id": self.id,
            "accountId": self.account_id,
            "type": self.type,
            "date": self.date.strftime("%Y-%m-%dT%H:%M:%S.000Z"),
            "amount": self.amount,
            "description": self.description,
        }


class MockAccount(BaseModel):
    """Synthetic account record."""

    model_config = ConfigDict(frozen=True)

    id: int
    type: str
    balance: float


class MockDataset(BaseModel):
    """Immutable, versioned set of synthetic records."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(default=MOCK_DATASET_VERSION)
    transactions: tuple[MockTransaction, ...]
    customer_accounts: tuple[MockAccount, ...]
    account_customer_id: int = 12345
    account_type: str = "CHECKING"
    account_balance: float = 515.50
    account_created: str = "2023-01-01T00:00:00.000Z"

    def transactions_for(self, account_id: int | str) -> list[MockTransaction]:
        """Transactions re-keyed to the requested account."""
        return [
            t.model_copy(update={"account_id": account_id}) for t in self.transactions
        ]

    def account_payload(self, account_id: int | str) -> dict[str, object]:
        """Account details for the requested account."""
        return {
            "id": account_id,
            "customerId": self.account_customer_id,
            "type": self.account_type,
            "balance": self.account_balance,
            "availableBalance": self.account_balance,
            "createdDate": self.account_created,
            "status": "ACTIVE",
        }

    def customer_accounts_payload(
        self, customer_id: int | str
    ) -> list[dict[str, object]]:
        """Accounts owned by the requested customer."""
        return [
            {
                "id": account.id,
                "customerId": customer_id,
                "type": account.type,
                "balance": account.balance,
            }
            for account in self.customer_accounts
        ]


def _transaction(
    transaction_id: int,
    type: Literal["Credit", "Debit"],
    date: str,
    amount: float,
    description: str,
) -> MockTransaction:
    return MockTransaction(
        id=transaction_id,
        accountId=0,
        type=type,
        date=datetime.fromisoformat(date.replace("Z", "+00:00")),
        amount=amount,
        description=description,
    )


MOCK_DATASET = MockDataset(
    transactions=(
        _transaction(12345, "Debit", "2023-12-01T10:00:00Z", 50.00, "Bill Payment"),
        _transaction(12346, "Credit", "2023-12-02T14:30:00Z", 100.00, "Deposit"),
        _transaction(12347, "Debit", "2023-12-03T09:15:00Z", 25.50, "ATM Withdrawal"),
        _transaction(12348, "Credit", "2023-12-04T16:45:00Z", 200.00, "Transfer In"),
    ),
    customer_accounts=(
        MockAccount(id=13344, type="CHECKING", balance=515.50),
        MockAccount(id=13355, type="SAVINGS", balance=1000.00),
    ),
)
