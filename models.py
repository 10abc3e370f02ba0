from pydantic import BaseModel, Field, field_validator
from enum import Enum
from typing import Dict, List, Optional
from datetime import datetime
from decimal import Context, Decimal, DivisionByZero, Inexact, InvalidOperation, Overflow, ROUND_HALF_EVEN, localcontext


MAX_CLIENT_ID = 65535
MAX_TRANSACTION_ID = 4294967295

# Amounts are limited to 28 integer digits and 28 fractional digits.
MAX_AMOUNT_DIGITS = 28

# Wide enough that sums of bounded amounts are exact; rounding would trap.
LEDGER_CONTEXT = Context(
    prec=100,
    rounding=ROUND_HALF_EVEN,
    traps=[InvalidOperation, DivisionByZero, Overflow, Inexact],
)


class TransactionType(str, Enum):
    deposit = "deposit"
    withdrawal = "withdrawal"
    dispute = "dispute"
    resolve = "resolve"
    chargeback = "chargeback"


class DisputeState(str, Enum):
    not_disputed = "not_disputed"
    disputed = "disputed"
    resolved = "resolved"
    charged_back = "charged_back"


class TransactionRow(BaseModel):
    """A single input row, shape-checked but with the type still undecoded."""

    type: str = Field(..., description="Transaction type as written in the input")
    client: int = Field(..., ge=0, le=MAX_CLIENT_ID, description="Client identifier")
    tx: int = Field(..., ge=0, le=MAX_TRANSACTION_ID, description="Transaction identifier")
    amount: Optional[Decimal] = Field(None, description="Amount, absent for dispute-family rows")

    @field_validator('type', mode='before')
    @classmethod
    def strip_type(cls, v):
        if isinstance(v, str):
            v = v.strip()
        if not v:
            raise ValueError('Transaction type cannot be empty')
        return v

    @field_validator('amount', mode='before')
    @classmethod
    def empty_amount_is_missing(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if v == "":
                return None
        return v

    @field_validator('amount')
    @classmethod
    def validate_amount_range(cls, v):
        if v is None:
            return v
        if not v.is_finite():
            raise ValueError('Amount must be a finite number')
        if v and v.adjusted() >= MAX_AMOUNT_DIGITS:
            raise ValueError(f'Amount must have at most {MAX_AMOUNT_DIGITS} integer digits')
        if v.as_tuple().exponent < -MAX_AMOUNT_DIGITS:
            raise ValueError(f'Amount must have at most {MAX_AMOUNT_DIGITS} decimal places')
        return v


class TransactionRecord(BaseModel):
    type: TransactionType
    client: int
    tx: int
    amount: Optional[Decimal] = None


class Account(BaseModel):
    available: Decimal = Decimal(0)
    held: Decimal = Decimal(0)
    locked: bool = False

    @property
    def total(self) -> Decimal:
        with localcontext(LEDGER_CONTEXT):
            return self.available + self.held


class StoredTransaction(BaseModel):
    client: int = Field(..., frozen=True)
    amount: Decimal = Field(..., frozen=True)
    dispute_state: DisputeState = DisputeState.not_disputed


class AccountSnapshot(BaseModel):
    client: int = Field(..., description="Client identifier")
    available: Decimal = Field(..., description="Funds available for withdrawal")
    held: Decimal = Field(..., description="Funds held by open disputes")
    total: Decimal = Field(..., description="Available plus held funds")
    locked: bool = Field(..., description="Whether a chargeback froze the account")


class ProcessingSummary(BaseModel):
    processed: int = Field(0, description="Records read from the input")
    applied: int = Field(0, description="Records applied to the ledger")
    rejected: int = Field(0, description="Records rejected and skipped")
    rejections: Dict[str, int] = Field(default_factory=dict, description="Rejection counts per error code")


class LedgerReport(BaseModel):
    accounts: List[AccountSnapshot] = Field(..., description="Final state of every account")
    summary: ProcessingSummary = Field(..., description="Per-run processing statistics")


class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Error description")
    error_code: str = Field(..., description="Machine-readable error code")
    timestamp: datetime = Field(default_factory=datetime.now, description="Error timestamp")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Service health status")
    timestamp: datetime = Field(default_factory=datetime.now)
    version: str = Field(..., description="Service version")
