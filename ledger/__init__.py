"""
Referral Investment Ledger

This package provides:
- Accrual of profit on investment products per whole elapsed day
- Balance recomputation from products, deposits, withdrawals and referral profit
- Batch recomputation with pruning of abandoned accounts
- Selection of the single active payout wallet
- Dashboard summaries over recomputed accounts
"""

from .models import (
    TransactionStatus,
    Product,
    Deposit,
    Withdrawal,
    Account,
    Wallet,
)
from .accrual import Accrual, compute_accrual, apply_accrual
from .engine import SIGNUP_BONUS, BalanceBreakdown, balance_breakdown, recompute_account
from .scheduler import BatchRecomputeScheduler, BatchStats
from .wallets import WalletSelector
from .service import LedgerService

__all__ = [
    "TransactionStatus",
    "Product",
    "Deposit",
    "Withdrawal",
    "Account",
    "Wallet",
    "Accrual",
    "compute_accrual",
    "apply_accrual",
    "SIGNUP_BONUS",
    "BalanceBreakdown",
    "balance_breakdown",
    "recompute_account",
    "BatchRecomputeScheduler",
    "BatchStats",
    "WalletSelector",
    "LedgerService",
]
