from datetime import datetime, timezone
from decimal import Decimal
from enum import IntEnum
from typing import Optional
from uuid import UUID, uuid4
from pydantic import BaseModel, Field, ConfigDict, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Read a timestamp without an offset as UTC and convert the rest to UTC."""
    if value is None:
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TransactionStatus(IntEnum):
    PENDING = 0
    SUCCESS = 1
    FAILED = 2

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Product(BaseModel):
    """An investment position. The caps are declared but not enforced by accrual."""

    id: UUID = Field(default_factory=uuid4)
    name: str
    start: datetime = Field(default_factory=utcnow)
    price: Decimal
    rate: Decimal = Field(..., description="Accrual per day as a fraction of price")
    total_profit: Decimal
    total_percentage: Decimal
    period: int = Field(..., description="Declared lifetime in days")
    elapsed_days: int = 0
    accrued_profit: Decimal = Decimal("0")
    accrued_percentage: Decimal = Decimal("0")

    model_config = ConfigDict(from_attributes=True, validate_assignment=True)

    @field_validator("start")
    @classmethod
    def start_in_utc(cls, v):
        return as_utc(v)


class Deposit(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    amount: Decimal
    source: str
    destination: str
    status: TransactionStatus = TransactionStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def created_in_utc(cls, v):
        return as_utc(v)


class Withdrawal(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    amount: Decimal
    status: TransactionStatus = TransactionStatus.PENDING
    requested_at: datetime = Field(default_factory=utcnow)
    succeeded_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("requested_at", "succeeded_at")
    @classmethod
    def timestamps_in_utc(cls, v):
        return as_utc(v)


class Account(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    admin: bool = False
    name: Optional[str] = None
    phone: str
    referrer_id: Optional[UUID] = Field(
        default=None, description="Account that invited this one; lookup only"
    )
    balance: Decimal = Decimal("0")
    daily_profit: Decimal = Decimal("0")
    invites_count: int = 0
    invites_profit: Decimal = Decimal("0")
    products: list[Product] = Field(default_factory=list)
    deposits: list[Deposit] = Field(default_factory=list)
    withdrawals: list[Withdrawal] = Field(default_factory=list)
    joined_at: datetime = Field(default_factory=utcnow)
    last_balance_update: datetime = Field(default_factory=utcnow)
    wallet_number: Optional[str] = None
    wallet_name: Optional[str] = None
    wallet_company: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("joined_at", "last_balance_update")
    @classmethod
    def timestamps_in_utc(cls, v):
        return as_utc(v)

    def find_deposit(self, deposit_id: UUID) -> Optional[Deposit]:
        return next((d for d in self.deposits if d.id == deposit_id), None)

    def find_withdrawal(self, withdrawal_id: UUID) -> Optional[Withdrawal]:
        return next((w for w in self.withdrawals if w.id == withdrawal_id), None)


class Wallet(BaseModel):
    name: str
    number: str
    active: bool = False

    model_config = ConfigDict(from_attributes=True)


class CreateAccountRequest(BaseModel):
    phone: str = Field(..., min_length=1)
    name: Optional[str] = None
    admin: bool = False
    referrer_id: Optional[UUID] = None
    wallet_number: Optional[str] = None
    wallet_name: Optional[str] = None
    wallet_company: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "phone": "01012345678",
            "name": "Sara",
            "referrer_id": "550e8400-e29b-41d4-a716-446655440000",
        }
    })


class UpdateAccountRequest(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = Field(default=None, min_length=1)
    wallet_number: Optional[str] = None
    wallet_name: Optional[str] = None
    wallet_company: Optional[str] = None


class PurchaseProductRequest(BaseModel):
    name: str
    price: Decimal = Field(..., gt=0)
    rate: Decimal = Field(..., ge=0)
    total_profit: Decimal
    total_percentage: Decimal
    period: int = Field(..., gt=0)
    start: Optional[datetime] = None

    @field_validator("start")
    @classmethod
    def start_in_utc(cls, v):
        return as_utc(v)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "name": "Gold plan",
            "price": 1000,
            "rate": 0.05,
            "total_profit": 18000,
            "total_percentage": 1800,
            "period": 360,
        }
    })


class CreateDepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    source: str
    destination: str


class CreateWithdrawalRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)


class StatusUpdateRequest(BaseModel):
    status: int = Field(..., description="0 pending, 1 success, 2 failed")


class AmountRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)


class CountRequest(BaseModel):
    amount: int = Field(..., gt=0, description="Whole number of invites")


class ActivateWalletRequest(BaseModel):
    wallet: str = Field(..., min_length=1, description="Name of the wallet to activate")


class PhoneCheckRequest(BaseModel):
    phone: str = Field(..., min_length=1)


class PhoneCheckResponse(BaseModel):
    available: bool
    message: str
