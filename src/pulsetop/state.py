"""Shared telemetry state for pulsetop."""

import logging
import threading

from pulsetop.models import NetworkSnapshot, SystemSnapshot, TelemetryView

logger = logging.getLogger(__name__)


class TelemetryState:
    """
    Latest SystemSnapshot, NetworkSnapshot and the pause flag.

    Every read and write goes through one lock that is never handed out.
    Snapshots are immutable, so copying in or out is a reference swap and
    the critical sections stay short. Writers use a bounded acquire and
    report failure instead of blocking a sampler indefinitely.
    """

    def __init__(self, lock_timeout: float = 0.5, paused: bool = False) -> None:
        """
        Initialize the TelemetryState.

        Args:
            lock_timeout: Longest a writer waits for the lock (seconds).
            paused: Initial value of the pause flag.
        """
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout
        self._system = SystemSnapshot.empty()
        self._network = NetworkSnapshot.empty()
        self._paused = paused

    def read_snapshot(self) -> TelemetryView:
        """Return both snapshots and the pause flag from one critical section."""
        with self._lock:
            return TelemetryView(
                system=self._system,
                network=self._network,
                paused=self._paused,
            )

    def publish_system(self, snapshot: SystemSnapshot) -> bool:
        """Replace the system snapshot. Returns False if the lock was not acquired."""
        if not self._lock.acquire(timeout=self._lock_timeout):
            return False
        try:
            self._system = snapshot
        finally:
            self._lock.release()
        return True

    def publish_network(self, snapshot: NetworkSnapshot) -> bool:
        """Replace the network snapshot. Returns False if the lock was not acquired."""
        if not self._lock.acquire(timeout=self._lock_timeout):
            return False
        try:
            self._network = snapshot
        finally:
            self._lock.release()
        return True

    def is_paused(self) -> bool:
        """Read the pause flag; an unavailable lock reads as not paused."""
        if not self._lock.acquire(timeout=self._lock_timeout):
            return False
        try:
            return self._paused
        finally:
            self._lock.release()

    def toggle_pause(self) -> bool:
        """Flip the pause flag and return its new value."""
        with self._lock:
            self._paused = not self._paused
            paused = self._paused
        logger.info("sampling %s", "paused" if paused else "resumed")
        return paused

    def set_paused(self, value: bool) -> None:
        with self._lock:
            self._paused = value
