"""
Balance recomputation for a single account.

The balance is never stored incrementally; it is derived from the account's
full history each cycle:

    balance = successful deposits + accrued profit - non-failed withdrawals
              - product purchases + signup bonus + referral profit

Withdrawals reserve funds as soon as they are requested, so pending ones are
deducted too. ``daily_profit`` is the cumulative profit to date across all
products, not a per-day figure.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from .accrual import apply_accrual
from .models import Account, TransactionStatus, utcnow

SIGNUP_BONUS = Decimal("120")


@dataclass(frozen=True)
class BalanceBreakdown:
    deposits_total: Decimal
    profit_total: Decimal
    withdrawals_total: Decimal
    products_cost: Decimal
    signup_bonus: Decimal
    invites_profit: Decimal

    @property
    def balance(self) -> Decimal:
        return (
            self.deposits_total
            + self.profit_total
            - self.withdrawals_total
            - self.products_cost
            + self.signup_bonus
            + self.invites_profit
        )


def balance_breakdown(account: Account) -> BalanceBreakdown:
    """Totals that make up the balance, read from the account's current product fields."""
    return BalanceBreakdown(
        deposits_total=sum(
            (d.amount for d in account.deposits if d.status == TransactionStatus.SUCCESS),
            Decimal("0"),
        ),
        profit_total=sum((p.accrued_profit for p in account.products), Decimal("0")),
        withdrawals_total=sum(
            (w.amount for w in account.withdrawals if w.status != TransactionStatus.FAILED),
            Decimal("0"),
        ),
        products_cost=sum((p.price for p in account.products), Decimal("0")),
        signup_bonus=SIGNUP_BONUS,
        invites_profit=account.invites_profit,
    )


def recompute_account(account: Account, now: Optional[datetime] = None) -> Account:
    """
    Return a copy of ``account`` with products, daily profit and balance refreshed.

    The input is left untouched, so an exception part way through never
    leaves half-updated derived fields behind. Persisting the result is up to
    the caller.
    """
    now = now or utcnow()
    updated = account.model_copy(deep=True)

    for product in updated.products:
        apply_accrual(product, now)

    breakdown = balance_breakdown(updated)
    updated.daily_profit = breakdown.profit_total
    updated.balance = breakdown.balance
    updated.last_balance_update = now
    return updated
