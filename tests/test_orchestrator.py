#!/usr/bin/env python3
"""
Integration tests for the monitor cycle and scheduler

Tests cover:
- Full cycle: observe, persist, report, publish
- Aborted cycles leave the state file untouched and publish nothing
- Accounts edited during a cycle are not overwritten
- Publish failure keeps the persisted state
- Non-overlapping cycles
"""
import json
import threading
import time

import pytest

from treasury_monitor.errors import StateConflict
from treasury_monitor.models import AccountKind
from treasury_monitor.monitor.orchestrator import (
    STATUS_ABORTED,
    STATUS_PUBLISHED,
    STATUS_PUBLISH_FAILED,
    STATUS_SKIPPED,
    TreasuryMonitor,
)
from treasury_monitor.monitor.report import ReportAggregator
from treasury_monitor.monitor.state import StateStore, add_account

from conftest import NATIVE_ADDR, OTHER_ADDR, TOKEN_ADDR, FakeOracle, FakeReader, RecordingPublisher


def make_monitor(state_file, reader, publisher, interval_minutes=5):
    return TreasuryMonitor(
        state_store=StateStore(state_file),
        balance_reader=reader,
        price_oracle=FakeOracle(price=20.0),
        publisher=publisher,
        aggregator=ReportAggregator(tz_name="UTC"),
        interval_minutes=interval_minutes,
    )


def wait_for(predicate, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


@pytest.fixture
def reader():
    return FakeReader(balances={NATIVE_ADDR: 3.0, TOKEN_ADDR: 150})


class TestCycle:
    """Test a single cycle"""

    def test_full_cycle(self, state_file, reader, publisher):
        monitor = make_monitor(state_file, reader, publisher)

        result = monitor.run_cycle()

        assert result.status == STATUS_PUBLISHED
        assert result.persisted

        saved = json.loads(state_file.read_text(encoding="utf-8"))
        sol, usdc, bonk = saved["accounts"]
        assert saved["last_updated"] > 1700000000

        assert sol["balanceChange"] == {"str": "0", "num": 0, "direction": None}
        assert sol["prevBalances"] == {"str": "3", "num": 3.0}

        assert usdc["currentBalances"] == {"str": "150", "num": 150}
        assert usdc["prevBalances"] == {"str": "150", "num": 150}
        assert usdc["balanceChange"] == {"str": "50", "num": 50, "direction": "+"}

        assert bonk["currentBalances"] == {"str": "5", "num": 5}
        assert bonk["note"] == "keep me"

        report = publisher.reports[0]
        assert report.total_native == 3.0
        assert report.total_token == 150
        assert report.fiat_valuation == 210.0
        assert report.updated_at == saved["last_updated"]
        assert [f.name for f in report.account_fields] == ["Hot Wallet:", "Ops USDC:"]

    def test_change_resets_on_next_quiet_cycle(self, state_file, reader, publisher):
        monitor = make_monitor(state_file, reader, publisher)

        monitor.run_cycle()
        monitor.run_cycle()

        usdc = StateStore(state_file).load().accounts[1]
        assert usdc.balance_change.direction is None
        assert usdc.balance_change.num == 0
        assert usdc.prev_balances.num == 150
        assert monitor.cycles_run == 2

    def test_query_failure_aborts_without_side_effects(self, state_file, publisher):
        before = state_file.read_bytes()
        monitor = make_monitor(state_file, FakeReader(fail_address=TOKEN_ADDR), publisher)

        result = monitor.run_cycle()

        assert result.status == STATUS_ABORTED
        assert not result.persisted
        assert state_file.read_bytes() == before
        assert publisher.reports == []
        assert publisher.statuses[0][0] == "cycle_failed"

    def test_corrupt_state_aborts(self, state_file, reader, publisher):
        state_file.write_text("[]", encoding="utf-8")
        monitor = make_monitor(state_file, reader, publisher)

        result = monitor.run_cycle()

        assert result.status == STATUS_ABORTED
        assert reader.calls == 0
        assert publisher.reports == []

    def test_write_failure_aborts(self, state_file, reader, publisher, monkeypatch):
        before = state_file.read_bytes()

        def boom(src, dst):
            raise OSError("read-only file system")

        monkeypatch.setattr("treasury_monitor.monitor.state.os.replace", boom)
        monitor = make_monitor(state_file, reader, publisher)

        result = monitor.run_cycle()

        assert result.status == STATUS_ABORTED
        assert state_file.read_bytes() == before
        assert publisher.reports == []

    def test_account_added_mid_cycle_is_kept(self, state_file, publisher):
        reader = FakeReader(delay=0.5)
        monitor = make_monitor(state_file, reader, publisher)
        results = []

        worker = threading.Thread(target=lambda: results.append(monitor.run_cycle()))
        worker.start()
        assert wait_for(lambda: reader.calls == 1)

        script_store = StateStore(state_file)
        script_store.persist(add_account(script_store.load(), "NewAddr", AccountKind.NATIVE, "New"))
        worker.join(timeout=5)

        assert results[0].status == STATUS_ABORTED
        assert isinstance(results[0].error, StateConflict)
        addresses = [acc.address for acc in StateStore(state_file).load().accounts]
        assert addresses == [NATIVE_ADDR, TOKEN_ADDR, OTHER_ADDR, "NewAddr"]
        assert publisher.reports == []

        assert monitor.run_cycle().status == STATUS_PUBLISHED
        assert [f.name for f in publisher.reports[0].account_fields][-1] == "New:"

    def test_publish_failure_keeps_persisted_state(self, state_file, reader):
        publisher = RecordingPublisher(fail=True)
        monitor = make_monitor(state_file, reader, publisher)

        result = monitor.run_cycle()

        assert result.status == STATUS_PUBLISH_FAILED
        assert result.persisted
        usdc = StateStore(state_file).load().accounts[1]
        assert usdc.current_balances.num == 150

    def test_inert_account_untouched(self, state_file, reader, publisher):
        before = json.loads(state_file.read_text(encoding="utf-8"))["accounts"][2]
        make_monitor(state_file, reader, publisher).run_cycle()

        after = json.loads(state_file.read_text(encoding="utf-8"))["accounts"][2]
        assert after == before
        assert after["address"] == OTHER_ADDR


class TestScheduling:
    """Test non-overlap and the loop"""

    def test_trigger_skipped_while_cycle_running(self, state_file, publisher):
        reader = FakeReader(delay=0.3)
        monitor = make_monitor(state_file, reader, publisher)

        worker = threading.Thread(target=monitor.run_cycle)
        worker.start()
        assert wait_for(lambda: monitor.cycle_in_progress)

        result = monitor.trigger()
        worker.join(timeout=5)

        assert result.status == STATUS_SKIPPED
        assert reader.calls == 1
        assert monitor.cycles_run == 1

    def test_trigger_runs_when_idle(self, state_file, reader, publisher):
        monitor = make_monitor(state_file, reader, publisher)

        assert monitor.trigger().status == STATUS_PUBLISHED

    def test_run_cycles_never_overlap(self, state_file, publisher, monkeypatch):
        reader = FakeReader(delay=0.05)
        monitor = make_monitor(state_file, reader, publisher, interval_minutes=0.0001)
        monkeypatch.setattr(monitor, "_install_signal_handlers", lambda: None)

        monitor.run(max_cycles=3)

        assert reader.calls == 3
        assert reader.max_active == 1
        assert [s for s, _ in publisher.statuses] == ["started", "stopped"]
        assert publisher.presence == [("Treasury", "Watching Treasury Balances")]

    def test_unexpected_error_does_not_stop_loop(self, state_file, publisher, monkeypatch):
        class ExplodingReader:
            calls = 0

            def fetch_balances(self, accounts):
                ExplodingReader.calls += 1
                raise RuntimeError("bug")

        monitor = make_monitor(state_file, ExplodingReader(), publisher, interval_minutes=0.0001)
        monkeypatch.setattr(monitor, "_install_signal_handlers", lambda: None)

        monitor.run(max_cycles=2)

        assert ExplodingReader.calls == 2
        assert ("error", "Unexpected error: RuntimeError") in publisher.statuses

    def test_stop_interrupts_sleep(self, state_file, reader, publisher):
        monitor = make_monitor(state_file, reader, publisher, interval_minutes=10)

        worker = threading.Thread(target=monitor.run)
        worker.start()
        assert wait_for(lambda: monitor.cycles_run == 1)

        monitor.stop()
        worker.join(timeout=5)

        assert not worker.is_alive()
        assert not monitor.running
