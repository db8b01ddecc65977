"""
Background catalog sync.

A single long-lived loop that wakes every poll interval (or on a manual
trigger), checks which kinds of catalog data are due according to the
stored schedules, and runs the reconciliation for them. Errors never
end the loop: they are logged, recorded in the sync status, and the
loop resumes after a cooldown.

Can be run as a standalone script or started from the API lifespan.
"""

import argparse
import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from spots.config import settings
from spots.db.database import async_session_factory, init_db
from spots.db.operations import get_or_create_sync_settings
from spots.models.sync import is_sync_due
from spots.services.catalog_client import CatalogClient
from spots.services.reconciliation import Reconciler, SyncReport

logger = logging.getLogger(__name__)

CARD_SYNC_MESSAGE = "Syncing card data..."
PRICE_SYNC_MESSAGE = "Syncing prices..."


class SyncScheduler:
    """
    Decides when to sync and runs the syncs.

    The manual trigger is a single-slot wake-up signal: triggering while
    a woken pass is already pending or running is a no-op.
    """

    def __init__(
        self,
        reconciler: Reconciler,
        session_factory: async_sessionmaker[AsyncSession],
        poll_interval: float | None = None,
        error_cooldown: float | None = None,
    ) -> None:
        self.reconciler = reconciler
        self.session_factory = session_factory
        self.poll_interval = (
            settings.sync_poll_interval_seconds if poll_interval is None else poll_interval
        )
        self.error_cooldown = (
            settings.sync_error_cooldown_seconds if error_cooldown is None else error_cooldown
        )
        self._trigger = asyncio.Event()
        self._shutdown = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def manual_pending(self) -> bool:
        """True from a manual trigger until the pass it woke has finished."""
        return self._trigger.is_set()

    @property
    def stopping(self) -> bool:
        return self._shutdown.is_set()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def trigger_manual_sync(self) -> bool:
        """
        Wake the loop for an immediate schedule check.

        Only syncs that are due run; a "manual" schedule is never due.

        Returns:
            True if the trigger was set, False if one was already pending
        """
        if self._trigger.is_set():
            return False
        self._trigger.set()
        return True

    def start(self) -> asyncio.Task[None]:
        """Start the loop as a background task (idempotent)."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="catalog-sync-scheduler")
        return self._task

    async def stop(self) -> None:
        """
        Request shutdown and wait for the loop to exit.

        A set import already in flight is allowed to finish; no further
        imports are started.
        """
        self._shutdown.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _wait_for_wakeup(self) -> None:
        """Suspend until the poll interval elapses, a trigger arrives, or shutdown."""
        waiters = [
            asyncio.ensure_future(self._trigger.wait()),
            asyncio.ensure_future(self._shutdown.wait()),
        ]
        try:
            await asyncio.wait(
                waiters, timeout=self.poll_interval, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            for waiter in waiters:
                waiter.cancel()

    async def _sleep_unless_stopped(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def run(self) -> None:
        """Main loop. Returns only after stop() is requested."""
        logger.info("Sync scheduler started")

        while not self._shutdown.is_set():
            await self._wait_for_wakeup()
            if self._shutdown.is_set():
                break

            manual = self._trigger.is_set()
            try:
                await self.run_once()
            except Exception as e:
                logger.exception("Error in sync scheduler: %s", e)
                await self._record_failure(e)
                await self._sleep_unless_stopped(self.error_cooldown)
            finally:
                if manual:
                    self._trigger.clear()

        logger.info("Sync scheduler stopped")

    async def run_once(self, force: bool = False) -> dict[str, SyncReport]:
        """
        Evaluate the schedules and run whatever is due.

        Args:
            force: Run both syncs regardless of schedule (CLI --force)

        Returns:
            Dict mapping sync kind ("cards", "prices") to its report
        """
        async with self.session_factory() as session:
            state = await get_or_create_sync_settings(session)
            await session.commit()
            months = state.card_sync_recent_months
            cards_due = force or is_sync_due(state.card_sync_schedule, state.last_card_sync)
            prices_due = force or is_sync_due(state.price_sync_schedule, state.last_price_sync)

        reports: dict[str, SyncReport] = {}

        if cards_due and not self.stopping:
            reports["cards"] = await self._run_sync(
                "cards",
                CARD_SYNC_MESSAGE,
                lambda: self.reconciler.sync_recent_sets(months, should_stop=self._shutdown.is_set),
            )

        if prices_due and not self.stopping:
            reports["prices"] = await self._run_sync(
                "prices",
                PRICE_SYNC_MESSAGE,
                lambda: self.reconciler.sync_prices(should_stop=self._shutdown.is_set),
            )

        return reports

    async def _run_sync(
        self,
        kind: str,
        message: str,
        job: Callable[[], Awaitable[SyncReport]],
    ) -> SyncReport:
        async with self.session_factory() as session:
            state = await get_or_create_sync_settings(session)
            state.is_syncing = True
            state.sync_status = message
            await session.commit()

        logger.info("Starting %s sync", kind)
        report = await job()
        logger.info("Finished %s sync: %s", kind, report.summary())

        async with self.session_factory() as session:
            state = await get_or_create_sync_settings(session)
            # A run cut short by shutdown is not recorded, so it is redone on restart
            if not report.skipped:
                if kind == "cards":
                    state.last_card_sync = datetime.now(UTC)
                else:
                    state.last_price_sync = datetime.now(UTC)
            state.is_syncing = False
            if report.failed or report.partial:
                state.sync_status = f"Last {kind} sync: {report.summary()}"
            else:
                state.sync_status = None
            await session.commit()

        return report

    async def _record_failure(self, error: Exception) -> None:
        """Clear the syncing flag and publish the error in the status string."""
        try:
            async with self.session_factory() as session:
                state = await get_or_create_sync_settings(session)
                state.is_syncing = False
                state.sync_status = f"Sync failed: {error}"
                await session.commit()
        except Exception as e:
            logger.error("Could not record sync failure: %s", e)


async def run_sync(force: bool = False, forever: bool = False) -> None:
    """Run one scheduler pass, or the full loop when `forever` is set."""
    await init_db()

    async with CatalogClient() as client:
        scheduler = SyncScheduler(Reconciler(client, async_session_factory), async_session_factory)
        if forever:
            if force:
                scheduler.trigger_manual_sync()
            await scheduler.run()
        else:
            reports = await scheduler.run_once(force=force)
            if not reports:
                logger.info("Nothing due")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Sync catalog cards and prices")
    parser.add_argument("--force", action="store_true", help="Sync regardless of schedule")
    parser.add_argument("--forever", action="store_true", help="Keep running on a schedule")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(run_sync(force=args.force, forever=args.forever))


if __name__ == "__main__":
    main()
