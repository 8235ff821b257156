"""
Batch recomputation of every account's balance.

A batch runs in two ordered phases:
- prune abandoned accounts (old, no purchases beyond the signup product,
  nobody invited)
- recompute and save every remaining account, concurrently and bounded

A failure on one account is logged and counted and never stops the others.
The batch as a whole is bounded by a timeout. Accounts not yet started are
skipped once it expires; each account's write is a single save, so an
interrupted batch leaves no half-updated account.

Besides on-demand runs, the scheduler can run batches periodically in the
background so balances stay fresh without a read forcing it.
"""

import asyncio
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID

import structlog

from .config import settings
from .engine import recompute_account
from .exceptions import SchedulerError
from .models import Account, utcnow
from .storage import InMemoryStorage


logger = structlog.get_logger(__name__)


class SchedulerStatus(Enum):
    STOPPED = "stopped"
    WAITING = "waiting"
    PROCESSING = "processing"
    ERROR = "error"


@dataclass
class BatchStats:
    """Outcome of one batch run."""
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    accounts_found: int = 0
    accounts_pruned: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    timed_out: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def duration(self) -> float:
        if not self.started_at or not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()


@dataclass
class SchedulerStats:
    last_run: Optional[datetime] = None
    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    last_batch: Optional[BatchStats] = None


def is_abandoned(account: Account, now: datetime, retention_days: int) -> bool:
    return (
        now - account.joined_at > timedelta(days=retention_days)
        and len(account.products) <= 1
        and account.invites_count == 0
    )


class BatchRecomputeScheduler:
    def __init__(
        self,
        storage: InMemoryStorage,
        retention_days: Optional[int] = None,
        concurrency: Optional[int] = None,
        timeout: Optional[float] = None,
        interval: Optional[int] = None,
    ):
        self.storage = storage
        self.retention_days = settings.retention_days if retention_days is None else retention_days
        self.concurrency = concurrency or settings.recompute_concurrency
        self.timeout = timeout or settings.recompute_timeout_seconds
        self.interval = interval or settings.scheduler_interval
        self.logger = logger.bind(service="batch_recompute_scheduler")

        self.status = SchedulerStatus.STOPPED
        self.stats = SchedulerStats()
        self._task: Optional[asyncio.Task] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    def prune_inactive(self, now: Optional[datetime] = None) -> int:
        """Delete abandoned accounts. Returns how many were removed."""
        now = now or utcnow()
        pruned = self.storage.delete_accounts(
            lambda account: is_abandoned(account, now, self.retention_days)
        )
        if pruned:
            self.logger.info("Pruned inactive accounts", count=pruned, retention_days=self.retention_days)
        return pruned

    def recompute_account(self, account_id: UUID, now: Optional[datetime] = None) -> Account:
        """
        Recompute and save a single account.

        A stored account that was already recomputed at a later instant is
        returned as is, so an older ``now`` never moves its figures back.
        """
        now = now or utcnow()
        with self.storage.account_lock(account_id):
            current = self.storage.get_account(account_id)
            if current.last_balance_update > now:
                self.logger.debug(
                    "Skipping stale recompute",
                    account_id=str(account_id),
                    stored=current.last_balance_update.isoformat(),
                    requested=now.isoformat()
                )
                return current
            updated = recompute_account(current, now)
            self.storage.save_account(updated, create=False)
        return updated

    async def run_batch(self, now: Optional[datetime] = None) -> BatchStats:
        """
        Prune, then recompute every remaining account.

        When the timeout expires, accounts still waiting for a worker are
        skipped and accounts already being recomputed are allowed to finish,
        so the returned stats account for every save.
        """
        now = now or utcnow()
        stats = BatchStats(started_at=utcnow())

        stats.accounts_pruned = self.prune_inactive(now)
        account_ids = [a.id for a in self.storage.list_accounts()]
        stats.accounts_found = len(account_ids)

        self.logger.info("Starting balance batch", accounts=stats.accounts_found)

        semaphore = asyncio.Semaphore(self.concurrency)
        expired = False

        async def process(account_id: UUID) -> None:
            async with semaphore:
                if expired:
                    stats.skipped += 1
                    return
                try:
                    await asyncio.to_thread(self.recompute_account, account_id, now)
                    stats.succeeded += 1
                except Exception as e:
                    stats.failed += 1
                    stats.errors.append(f"{account_id}: {e}")
                    self.logger.error(
                        "Balance recompute failed",
                        account_id=str(account_id),
                        error=str(e)
                    )

        tasks = [asyncio.create_task(process(account_id)) for account_id in account_ids]
        if tasks:
            try:
                _, pending = await asyncio.wait(tasks, timeout=self.timeout)
            except asyncio.CancelledError:
                expired = True
                raise
            if pending:
                expired = True
                stats.timed_out = True
                self.logger.warning(
                    "Balance batch timed out",
                    timeout=self.timeout,
                    in_flight_or_queued=len(pending)
                )
                await asyncio.gather(*pending)

        stats.finished_at = utcnow()
        self.logger.info(
            "Balance batch finished",
            accounts=stats.accounts_found,
            pruned=stats.accounts_pruned,
            succeeded=stats.succeeded,
            failed=stats.failed,
            skipped=stats.skipped,
            timed_out=stats.timed_out,
            duration=f"{stats.duration:.2f}s"
        )
        return stats

    async def trigger_run(self) -> BatchStats:
        """Run one batch now and record it in the scheduler stats."""
        previous = self.status
        self.status = SchedulerStatus.PROCESSING
        self.stats.total_runs += 1
        try:
            batch = await self.run_batch()
        except Exception as e:
            self.stats.failed_runs += 1
            self.status = SchedulerStatus.ERROR
            self.logger.error("Balance batch crashed", error=str(e))
            raise SchedulerError("Balance batch failed", {"error": str(e)}) from e

        self.stats.last_run = batch.finished_at
        self.stats.last_batch = batch
        if batch.timed_out:
            self.stats.failed_runs += 1
        else:
            self.stats.successful_runs += 1
        self.status = previous
        return batch

    async def start(self):
        """Start running batches every ``interval`` seconds."""
        if not settings.scheduler_enabled:
            self.logger.info("Balance scheduler is disabled")
            return

        if self.status != SchedulerStatus.STOPPED:
            self.logger.warning("Scheduler already running", current_status=self.status.value)
            return

        self.status = SchedulerStatus.WAITING
        self._task = asyncio.create_task(self._loop())
        self.logger.info("Balance scheduler started", interval=self.interval)

    async def stop(self):
        if self.status == SchedulerStatus.STOPPED:
            return

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        self._task = None
        self.status = SchedulerStatus.STOPPED
        self.logger.info("Balance scheduler stopped")

    async def _loop(self):
        while True:
            try:
                await self.trigger_run()
            except SchedulerError:
                # already logged; try again next tick
                self.status = SchedulerStatus.WAITING
            await asyncio.sleep(self.interval)

    def get_status(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "enabled": settings.scheduler_enabled,
            "interval": self.interval,
            "stats": asdict(self.stats),
        }
