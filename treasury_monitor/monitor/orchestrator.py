"""
Treasury Monitor Orchestrator
=============================

Drives the balance cycle on a fixed interval.

Cycle:
1. Load balances state
2. Query all account balances (concurrent)
3. Compute deltas
4. Persist the full state
5. Build the report (with SOL price)
6. Edit the dashboard message

A cycle that fails at steps 1-4 never reaches the publisher and leaves the
state file as it was; that includes a persist refused because another writer
changed the file mid-cycle. A publish failure leaves the already-persisted state
in place. Either way the loop carries on with the next interval.
"""

import logging
import signal
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

from ..api.coingecko import PriceOracle
from ..errors import MonitorError, PublishFailed, StateConflict
from ..models import PersistedState, TrackedAccount
from .balances import BalanceReader
from .delta import apply_observation
from .publisher import TelegramPublisher
from .report import Report, ReportAggregator
from .state import StateStore

logger = logging.getLogger(__name__)

# Cycle outcomes
STATUS_PUBLISHED = "published"
STATUS_PUBLISH_FAILED = "publish_failed"
STATUS_ABORTED = "aborted"
STATUS_SKIPPED = "skipped"


@dataclass
class CycleResult:
    """Outcome of one cycle."""
    status: str
    accounts: List[TrackedAccount] = field(default_factory=list)
    report: Optional[Report] = None
    error: Optional[BaseException] = None
    duration_sec: float = 0.0

    @property
    def persisted(self) -> bool:
        return self.status in (STATUS_PUBLISHED, STATUS_PUBLISH_FAILED)


class TreasuryMonitor:
    """
    Periodic balance monitor.

    Collaborators are passed in; the monitor owns only the schedule and the
    cycle lock. Cycles never overlap: the loop is sequential, and trigger()
    from another thread is refused while a cycle is in flight.
    """

    def __init__(
        self,
        state_store: StateStore,
        balance_reader: BalanceReader,
        price_oracle: PriceOracle,
        publisher: TelegramPublisher,
        aggregator: Optional[ReportAggregator] = None,
        interval_minutes: float = 5,
        presence_name: str = "Treasury",
        presence_description: str = "Watching Treasury Balances",
    ):
        """
        Initialize the monitor.

        Args:
            state_store: Balances file store
            balance_reader: Chain balance reader
            price_oracle: SOL price source
            publisher: Dashboard publisher
            aggregator: Report builder (default: ReportAggregator())
            interval_minutes: Time between cycle starts
            presence_name: Bot display name set at startup
            presence_description: Bot short description set at startup
        """
        self.state_store = state_store
        self.balance_reader = balance_reader
        self.price_oracle = price_oracle
        self.publisher = publisher
        self.aggregator = aggregator or ReportAggregator()
        self.interval_seconds = interval_minutes * 60
        self.presence_name = presence_name
        self.presence_description = presence_description

        self.running = False
        self.cycles_run = 0
        self._cycle_lock = threading.Lock()
        self._stop_event = threading.Event()

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info("Shutdown signal received, stopping monitor...")
        self.stop()

    def _install_signal_handlers(self):
        # signal.signal only works from the main thread
        if threading.current_thread() is threading.main_thread():
            signal.signal(signal.SIGINT, self._handle_shutdown)
            signal.signal(signal.SIGTERM, self._handle_shutdown)

    @property
    def cycle_in_progress(self) -> bool:
        return self._cycle_lock.locked()

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    def _observe(self, state: PersistedState) -> List[TrackedAccount]:
        """Query balances and return updated copies of every account."""
        balances = self.balance_reader.fetch_balances(state.accounts)
        updated = []
        for i, account in enumerate(state.accounts):
            if i in balances:
                updated.append(apply_observation(account, balances[i]))
            else:
                updated.append(account)
        return updated

    def _run_cycle_locked(self) -> CycleResult:
        cycle_start = time.time()
        observed_at = int(cycle_start)

        logger.info("=" * 60)
        logger.info("BALANCE CYCLE STARTING")
        logger.info("=" * 60)

        try:
            state = self.state_store.load()
            logger.info(f"Loaded {len(state.accounts)} accounts")
            accounts = self._observe(state)
            new_state = PersistedState(last_updated=observed_at, accounts=accounts, extra=state.extra)
            self.state_store.persist(new_state)
        except StateConflict as e:
            logger.warning(f"Cycle aborted, state file edited during the cycle (next cycle reloads it): {e}")
            self.publisher.send_service_status("cycle_failed", str(e))
            return CycleResult(STATUS_ABORTED, error=e, duration_sec=time.time() - cycle_start)
        except MonitorError as e:
            logger.error(f"Cycle aborted, state unchanged: {e}")
            self.publisher.send_service_status("cycle_failed", str(e))
            return CycleResult(STATUS_ABORTED, error=e, duration_sec=time.time() - cycle_start)

        changed = sum(1 for acc in accounts if acc.balance_change.direction is not None)
        logger.info(f"State persisted ({changed} balance change(s))")

        try:
            report = self.aggregator.build(accounts, self.price_oracle, updated_at=observed_at)
            self.publisher.publish(report)
        except PublishFailed as e:
            logger.error(f"Dashboard not updated this cycle: {e}")
            self.publisher.send_service_status("cycle_failed", str(e))
            return CycleResult(
                STATUS_PUBLISH_FAILED,
                accounts=accounts,
                error=e,
                duration_sec=time.time() - cycle_start,
            )

        duration = time.time() - cycle_start
        logger.info(f"BALANCE CYCLE COMPLETE ({duration:.1f}s)")
        return CycleResult(STATUS_PUBLISHED, accounts=accounts, report=report, duration_sec=duration)

    def run_cycle(self) -> CycleResult:
        """
        Run one full cycle, waiting for any cycle already in flight.

        Returns:
            CycleResult describing what happened
        """
        with self._cycle_lock:
            result = self._run_cycle_locked()
            self.cycles_run += 1
            return result

    def trigger(self) -> CycleResult:
        """
        Run a cycle now unless one is already running.

        Returns:
            CycleResult, with status "skipped" if a cycle was in flight
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Cycle already running, trigger ignored")
            return CycleResult(STATUS_SKIPPED)
        try:
            result = self._run_cycle_locked()
            self.cycles_run += 1
            return result
        finally:
            self._cycle_lock.release()

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    def _run_main_loop(self, max_cycles: Optional[int] = None):
        """
        Run cycles back to back, one per interval.

        The next cycle starts one interval after the previous one started, or
        immediately if the previous one overran the interval.
        """
        logger.info("Entering main monitoring loop...")
        completed = 0

        while self.running:
            loop_start = time.time()
            try:
                self.run_cycle()
            except Exception as e:
                logger.exception(f"Unexpected cycle error: {e}")
                self.publisher.send_service_status("error", f"Unexpected error: {type(e).__name__}")

            completed += 1
            if max_cycles is not None and completed >= max_cycles:
                break

            elapsed = time.time() - loop_start
            sleep_time = max(0.0, self.interval_seconds - elapsed)
            if sleep_time == 0:
                logger.warning(f"Cycle took {elapsed:.1f}s, longer than the {self.interval_seconds:.0f}s interval")
            if self._stop_event.wait(sleep_time):
                break

    def run(self, max_cycles: Optional[int] = None):
        """
        Main entry point - announce presence, then loop.

        Args:
            max_cycles: Stop after this many cycles (default: run until stopped)
        """
        self.running = True
        self._stop_event.clear()
        self._install_signal_handlers()

        logger.info("=" * 60)
        logger.info("TREASURY MONITOR STARTING")
        logger.info("=" * 60)
        logger.info(f"State file: {self.state_store.path}")
        logger.info(f"Interval: {self.interval_seconds / 60:g} min")

        self.publisher.announce_presence(self.presence_name, self.presence_description)
        self.publisher.send_service_status("started", f"Interval: {self.interval_seconds / 60:g} min")

        try:
            self._run_main_loop(max_cycles=max_cycles)
        except KeyboardInterrupt:
            logger.info("Service interrupted by user")
        finally:
            self.running = False
            logger.info("TREASURY MONITOR STOPPED")
            self.publisher.send_service_status("stopped")

    def stop(self):
        """Stop the monitor after the current cycle."""
        self.running = False
        self._stop_event.set()
