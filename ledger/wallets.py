"""
Selection of the payout wallet.

At most one wallet in the collection is active at any time, and after
bootstrap exactly one is.
"""

from typing import Iterable, Optional

import structlog

from .config import settings
from .exceptions import ConsistencyError, WalletNotFoundError
from .models import Wallet
from .storage import InMemoryStorage


logger = structlog.get_logger(__name__)


class WalletSelector:
    def __init__(
        self,
        storage: InMemoryStorage,
        default_wallets: Optional[Iterable[dict]] = None,
    ):
        self.storage = storage
        self.default_wallets = list(
            settings.default_wallets if default_wallets is None else default_wallets
        )
        self.logger = logger.bind(service="wallet_selector")

    def bootstrap(self) -> bool:
        """Seed the default wallets if the collection is empty."""
        seeded = self.storage.seed_wallets(Wallet(**w) for w in self.default_wallets)
        if seeded:
            self.logger.info("Wallets initialized", wallets=[w["name"] for w in self.default_wallets])
        return seeded

    def list_wallets(self) -> list[Wallet]:
        return self.storage.list_wallets()

    def set_active(self, name: str) -> Wallet:
        """
        Activate ``name`` and deactivate every other wallet.

        Raises:
            WalletNotFoundError: no wallet has that name; nothing was changed.
        """
        try:
            wallet = self.storage.activate_wallet(name)
        except WalletNotFoundError:
            self.logger.warning("Wallet activation failed", wallet=name)
            raise
        self.logger.info("Active wallet changed", wallet=name)
        return wallet

    def get_active(self) -> Wallet:
        active = [w for w in self.storage.list_wallets() if w.active]
        if not active:
            raise WalletNotFoundError()
        if len(active) > 1:
            raise ConsistencyError(
                "More than one wallet is active",
                {"wallets": [w.name for w in active]}
            )
        return active[0]
