from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import structlog

from .config import settings
from .engine import recompute_account
from .exceptions import (
    TransactionNotFoundError,
    ValidationError,
)
from .models import (
    Account,
    CreateAccountRequest,
    CreateDepositRequest,
    CreateWithdrawalRequest,
    Deposit,
    Product,
    PurchaseProductRequest,
    TransactionStatus,
    UpdateAccountRequest,
    Withdrawal,
    utcnow,
)
from .scheduler import BatchRecomputeScheduler
from .storage import InMemoryStorage


logger = structlog.get_logger(__name__)


def signup_product(start: datetime) -> Product:
    return Product(
        name=settings.signup_product_name,
        start=start,
        price=settings.signup_product_price,
        rate=settings.signup_product_rate,
        total_profit=settings.signup_product_total_profit,
        total_percentage=settings.signup_product_total_percentage,
        period=settings.signup_product_period,
    )


def parse_status(status: int) -> TransactionStatus:
    try:
        return TransactionStatus(status)
    except ValueError:
        raise ValidationError(
            f"Invalid status value {status}",
            {"status": status, "allowed": [s.value for s in TransactionStatus]}
        )


class LedgerService:
    """
    Account operations. Every operation that changes an account's history
    also recomputes its balance before saving, under the account's lock.
    """

    def __init__(
        self,
        storage: Optional[InMemoryStorage] = None,
        scheduler: Optional[BatchRecomputeScheduler] = None,
    ):
        self.storage = storage or InMemoryStorage()
        self.scheduler = scheduler or BatchRecomputeScheduler(self.storage)
        self.logger = logger.bind(service="ledger_service")

    def create_account(self, request: CreateAccountRequest) -> Account:
        if self.storage.find_account_by_phone(request.phone):
            raise ValidationError("Phone number already exists", {"phone": request.phone})
        if request.referrer_id is not None:
            # raises AccountNotFoundError for an unknown referrer
            self.storage.get_account(request.referrer_id)

        now = utcnow()
        account = Account(
            **request.model_dump(),
            joined_at=now,
            last_balance_update=now,
            products=[signup_product(now)],
        )
        account = recompute_account(account, now)
        self.storage.save_account(account)
        self.logger.info("Account created", account_id=str(account.id), referrer_id=str(request.referrer_id))
        return account

    def is_phone_available(self, phone: str) -> bool:
        return self.storage.find_account_by_phone(phone) is None

    def get_account(self, account_id: UUID) -> Account:
        return self.scheduler.recompute_account(account_id)

    async def list_accounts(self) -> list[Account]:
        await self.scheduler.run_batch()
        return self.storage.list_accounts()

    def update_account(self, account_id: UUID, request: UpdateAccountRequest) -> Account:
        changes = request.model_dump(exclude_unset=True)
        phone = changes.get("phone")
        if phone:
            owner = self.storage.find_account_by_phone(phone)
            if owner and owner.id != account_id:
                raise ValidationError("Phone number already exists", {"phone": phone})

        def apply(account: Account) -> None:
            for key, value in changes.items():
                setattr(account, key, value)

        return self._modify(account_id, apply)

    def delete_account(self, account_id: UUID) -> None:
        with self.storage.account_lock(account_id):
            self.storage.delete_account(account_id)
        self.logger.info("Account deleted", account_id=str(account_id))

    def purchase_product(self, account_id: UUID, request: PurchaseProductRequest) -> Account:
        data = request.model_dump(exclude_none=True)
        return self._modify(account_id, lambda a: a.products.append(Product(**data)))

    def add_deposit(self, account_id: UUID, request: CreateDepositRequest) -> Account:
        deposit = Deposit(**request.model_dump())
        return self._modify(account_id, lambda a: a.deposits.append(deposit))

    def request_withdrawal(self, account_id: UUID, request: CreateWithdrawalRequest) -> Account:
        withdrawal = Withdrawal(amount=request.amount)
        return self._modify(account_id, lambda a: a.withdrawals.append(withdrawal))

    def change_deposit_status(self, account_id: UUID, deposit_id: UUID, status: int) -> Account:
        new_status = parse_status(status)

        def apply(account: Account) -> None:
            deposit = account.find_deposit(deposit_id)
            if deposit is None:
                raise TransactionNotFoundError("deposit", deposit_id, account_id)
            deposit.status = new_status

        return self._modify(account_id, apply)

    def change_withdrawal_status(self, account_id: UUID, withdrawal_id: UUID, status: int) -> Account:
        new_status = parse_status(status)

        def apply(account: Account) -> None:
            withdrawal = account.find_withdrawal(withdrawal_id)
            if withdrawal is None:
                raise TransactionNotFoundError("withdrawal", withdrawal_id, account_id)
            withdrawal.status = new_status
            if new_status == TransactionStatus.SUCCESS:
                withdrawal.succeeded_at = utcnow()

        return self._modify(account_id, apply)

    def increase_invites_count(self, account_id: UUID, amount: int) -> Account:
        self._check_positive(amount)

        def apply(account: Account) -> None:
            account.invites_count += amount

        return self._modify(account_id, apply)

    def decrease_invites_count(self, account_id: UUID, amount: int) -> Account:
        self._check_positive(amount)

        def apply(account: Account) -> None:
            account.invites_count = max(account.invites_count - amount, 0)

        return self._modify(account_id, apply)

    def increase_invites_profit(self, account_id: UUID, amount: Decimal) -> Account:
        self._check_positive(amount)

        def apply(account: Account) -> None:
            account.invites_profit += amount

        return self._modify(account_id, apply)

    def _modify(self, account_id: UUID, apply: Callable[[Account], None]) -> Account:
        with self.storage.account_lock(account_id):
            account = self.storage.get_account(account_id)
            apply(account)
            account = recompute_account(account)
            self.storage.save_account(account, create=False)
        return account

    @staticmethod
    def _check_positive(amount) -> None:
        if amount <= 0:
            raise ValidationError("Amount must be positive", {"amount": str(amount)})
