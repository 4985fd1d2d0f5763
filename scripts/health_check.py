#!/usr/bin/env python3
"""
Health check script for the Treasury Balance Monitor.

Returns exit code 0 if healthy, non-zero otherwise.
Used by container health checks to determine service health.

Checks:
1. Balances file loads and validates
2. Last cycle persisted recently (< 3 intervals)
"""

import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from treasury_monitor.config import load_settings
from treasury_monitor.errors import ConfigError, StateCorrupt
from treasury_monitor.monitor.state import StateStore

# Missed cycles tolerated before reporting unhealthy
MAX_MISSED_INTERVALS = 3


def check_health() -> bool:
    """
    Perform health checks.

    Returns:
        True if healthy, False otherwise
    """
    try:
        settings = load_settings()
    except ConfigError as e:
        print(f"FAIL: Configuration error: {e}")
        return False

    # Check 1: State file
    try:
        state = StateStore(settings.balances_file).load()
    except StateCorrupt as e:
        print(f"FAIL: {e}")
        return False

    if not state.accounts:
        print("WARN: No accounts tracked yet")
        return True

    # Check 2: Freshness
    max_age = settings.interval_seconds * MAX_MISSED_INTERVALS
    age = time.time() - state.last_updated
    if age > max_age:
        print(f"FAIL: Balances not updated for {age:.0f}s (> {max_age:.0f}s)")
        return False

    tracked = sum(1 for acc in state.accounts if acc.is_tracked)
    print(f"OK: {tracked} tracked accounts, last cycle {age:.0f}s ago")
    return True


def main():
    """Run health check and exit with appropriate code."""
    try:
        healthy = check_health()
        sys.exit(0 if healthy else 1)
    except Exception as e:
        print(f"FAIL: Unexpected error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
