"""
Read-only summary of recomputed accounts for the admin dashboard.
"""

from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from .config import settings
from .models import Account, TransactionStatus, utcnow
from .storage import InMemoryStorage

DATE_FORMAT = "%Y-%m-%d %H:%M"


class AccountRow(BaseModel):
    id: str
    name: str
    phone: str
    balance: Decimal
    daily_profit: Decimal
    invites_count: int
    invites_profit: Decimal
    joined: str
    products: int
    referrer: str
    wallet: str


class RequestRow(BaseModel):
    account_id: str
    name: str
    transaction_id: str
    amount: Decimal
    date: str
    status: str
    source: Optional[str] = None
    destination: Optional[str] = None


class DashboardSummary(BaseModel):
    total_balances: Decimal
    total_daily_profit: Decimal
    total_deposits: Decimal
    total_deposits_success: Decimal
    total_withdrawals: Decimal
    total_withdrawals_success: Decimal
    total_invites: int
    total_invites_profit: Decimal
    actual_balance: Decimal
    daily_user_increase: int
    products_distribution: dict[str, int]
    accounts: list[AccountRow]
    deposit_requests: list[RequestRow]
    withdrawal_requests: list[RequestRow]


def _total(values) -> Decimal:
    return sum(values, Decimal("0"))


class DashboardAggregator:
    def __init__(self, storage: InMemoryStorage, timezone: Optional[str] = None):
        self.storage = storage
        self.tz = ZoneInfo(timezone or settings.dashboard_timezone)

    def format_time(self, moment: datetime) -> str:
        return moment.astimezone(self.tz).strftime(DATE_FORMAT)

    def summarize(self, now: Optional[datetime] = None) -> DashboardSummary:
        now = now or utcnow()
        accounts = self.storage.list_accounts()
        names = {a.id: a.name or "Unknown" for a in accounts}

        deposits = [(a, d) for a in accounts for d in a.deposits]
        withdrawals = [(a, w) for a in accounts for w in a.withdrawals]
        deposits_success = _total(d.amount for _, d in deposits if d.status == TransactionStatus.SUCCESS)
        withdrawals_success = _total(w.amount for _, w in withdrawals if w.status == TransactionStatus.SUCCESS)

        return DashboardSummary(
            total_balances=_total(a.balance for a in accounts),
            total_daily_profit=_total(a.daily_profit for a in accounts),
            total_deposits=_total(d.amount for _, d in deposits),
            total_deposits_success=deposits_success,
            total_withdrawals=_total(w.amount for _, w in withdrawals),
            total_withdrawals_success=withdrawals_success,
            total_invites=sum(a.invites_count for a in accounts),
            total_invites_profit=_total(a.invites_profit for a in accounts),
            actual_balance=deposits_success - withdrawals_success,
            daily_user_increase=sum(1 for a in accounts if a.joined_at >= now - timedelta(days=1)),
            products_distribution=dict(Counter(p.name for a in accounts for p in a.products)),
            accounts=[self._account_row(a, names) for a in accounts],
            deposit_requests=sorted(
                (
                    RequestRow(
                        account_id=str(a.id),
                        name=names[a.id],
                        transaction_id=str(d.id),
                        amount=d.amount,
                        date=self.format_time(d.created_at),
                        status=d.status.label,
                        source=d.source,
                        destination=d.destination,
                    )
                    for a, d in deposits
                ),
                key=_status_order,
            ),
            withdrawal_requests=sorted(
                (
                    RequestRow(
                        account_id=str(a.id),
                        name=names[a.id],
                        transaction_id=str(w.id),
                        amount=w.amount,
                        date=self.format_time(w.requested_at),
                        status=w.status.label,
                        destination=a.wallet_number or "Unknown",
                    )
                    for a, w in withdrawals
                ),
                key=_status_order,
            ),
        )

    def _account_row(self, account: Account, names: dict) -> AccountRow:
        return AccountRow(
            id=str(account.id),
            name=account.name or "Unknown",
            phone=account.phone,
            balance=account.balance,
            daily_profit=account.daily_profit,
            invites_count=account.invites_count,
            invites_profit=account.invites_profit,
            joined=self.format_time(account.joined_at),
            products=len(account.products),
            referrer=names.get(account.referrer_id, "None"),
            wallet=f"{account.wallet_name or 'Unknown'}-{account.wallet_number or 'Unknown'}",
        )


def _status_order(row: RequestRow) -> int:
    return TransactionStatus[row.status.upper()].value
