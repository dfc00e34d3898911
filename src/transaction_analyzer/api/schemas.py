from pydantic import BaseModel, Field

from transaction_analyzer.models import AccountType, ColumnMapping, Transaction


class ImportRequest(BaseModel):
    csv_text: str
    file_name: str | None = None


class ConfirmRequest(BaseModel):
    mapping: ColumnMapping
    account_type: AccountType = "unknown"


class OverrideRequest(BaseModel):
    raw_description: str = Field(min_length=1)
    canonical_name: str = Field(min_length=1)


class TransactionsResponse(BaseModel):
    file_name: str | None = None
    account_type: AccountType
    warnings: list[str] = Field(default_factory=list)
    transactions: list[Transaction]
