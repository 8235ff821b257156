"""
Exception classes for the ledger.
Every error carries a machine-readable code and a details dict so callers can
tell a missing record from a broken invariant.
"""

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Base exception class for the ledger."""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(LedgerError):
    """Raised when input or stored data cannot be used as-is."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "VALIDATION_ERROR", details)


# Accrual math failures are validation failures of the product data.
DomainError = ValidationError


class NotFoundError(LedgerError):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "NOT_FOUND", details)


class ConsistencyError(LedgerError):
    """Raised when a stored invariant no longer holds."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "CONSISTENCY_ERROR", details)


class SchedulerError(LedgerError):
    """Raised when the batch scheduler cannot run."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, "SCHEDULER_ERROR", details)


class AccountNotFoundError(NotFoundError):
    def __init__(self, account_id):
        super().__init__(
            f"Account {account_id} not found",
            {"account_id": str(account_id)}
        )


class WalletNotFoundError(NotFoundError):
    def __init__(self, name: Optional[str] = None):
        message = f"Wallet {name} not found" if name else "No active wallet found"
        super().__init__(message, {"wallet": name})


class TransactionNotFoundError(NotFoundError):
    def __init__(self, kind: str, transaction_id, account_id):
        super().__init__(
            f"{kind.capitalize()} {transaction_id} not found for account {account_id}",
            {
                "kind": kind,
                "transaction_id": str(transaction_id),
                "account_id": str(account_id),
            }
        )
