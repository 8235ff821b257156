import threading
from collections import defaultdict
from typing import Callable, Iterable, Optional
from uuid import UUID

from .exceptions import AccountNotFoundError, WalletNotFoundError
from .models import Account, Wallet


class InMemoryStorage:
    """
    Process-local store for accounts and payout wallets.

    Reads and writes exchange deep copies, so a caller holding an Account
    never aliases stored state. Read-modify-write cycles on one account are
    serialized by a per-account lock; the wallet set has a lock of its own.
    """

    def __init__(self, accounts: Optional[Iterable[Account]] = None):
        self.accounts: dict[UUID, Account] = {}
        self.wallets: dict[str, Wallet] = {}
        self._accounts_lock = threading.Lock()
        self._account_locks: defaultdict[UUID, threading.RLock] = defaultdict(threading.RLock)
        self._wallets_lock = threading.Lock()
        for account in accounts or ():
            self.accounts[account.id] = account.model_copy(deep=True)

    def list_accounts(self) -> list[Account]:
        with self._accounts_lock:
            return [a.model_copy(deep=True) for a in self.accounts.values()]

    def get_account(self, account_id: UUID) -> Account:
        with self._accounts_lock:
            account = self.accounts.get(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        return account.model_copy(deep=True)

    def find_account_by_phone(self, phone: str) -> Optional[Account]:
        with self._accounts_lock:
            for account in self.accounts.values():
                if account.phone == phone:
                    return account.model_copy(deep=True)
        return None

    def save_account(self, account: Account, create: bool = True) -> Account:
        """
        Store a snapshot of ``account``, replacing any previous version.

        With ``create=False`` the account must still exist, so a recompute
        racing a deletion cannot bring the account back.
        """
        snapshot = account.model_copy(deep=True)
        with self.account_lock(account.id):
            with self._accounts_lock:
                if not create and account.id not in self.accounts:
                    raise AccountNotFoundError(account.id)
                self.accounts[account.id] = snapshot
        return account

    def delete_account(self, account_id: UUID) -> None:
        with self._accounts_lock:
            if self.accounts.pop(account_id, None) is None:
                raise AccountNotFoundError(account_id)
            self._account_locks.pop(account_id, None)

    def delete_accounts(self, predicate: Callable[[Account], bool]) -> int:
        with self._accounts_lock:
            doomed = [a.id for a in self.accounts.values() if predicate(a)]
            for account_id in doomed:
                del self.accounts[account_id]
                self._account_locks.pop(account_id, None)
        return len(doomed)

    def list_wallets(self) -> list[Wallet]:
        with self._wallets_lock:
            return [w.model_copy() for w in self.wallets.values()]

    def save_wallet(self, wallet: Wallet) -> Wallet:
        with self._wallets_lock:
            self.wallets[wallet.name] = wallet.model_copy()
        return wallet

    def seed_wallets(self, wallets: Iterable[Wallet]) -> bool:
        """Insert ``wallets`` only if the collection is empty. Returns whether it did."""
        with self._wallets_lock:
            if self.wallets:
                return False
            for wallet in wallets:
                self.wallets[wallet.name] = wallet.model_copy()
            return True

    def activate_wallet(self, name: str) -> Wallet:
        """Make ``name`` the only active wallet in a single guarded step."""
        with self._wallets_lock:
            if name not in self.wallets:
                raise WalletNotFoundError(name)
            for wallet in self.wallets.values():
                wallet.active = wallet.name == name
            return self.wallets[name].model_copy()

    def account_lock(self, account_id: UUID) -> threading.RLock:
        """
        Lock that serializes read-modify-write cycles on one account.

        Only stored accounts get a registered lock. An unknown id gets a
        private lock that is never kept, so lookups of missing accounts
        leave nothing behind.
        """
        with self._accounts_lock:
            if account_id not in self.accounts:
                return threading.RLock()
            return self._account_locks[account_id]
