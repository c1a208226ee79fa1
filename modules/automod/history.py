from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Hashable, Optional

from modules.utils.time import now_ms

from .models import MessageObservation

__all__ = [
    "AuthorKey",
    "SweepReport",
    "HistoryStore",
    "RetentionSweeper",
    "AuthorLockRegistry",
]

_logger = logging.getLogger(__name__)

AuthorKey = tuple[str, str]

DEFAULT_MAX_ENTRIES = 10
DEFAULT_MAX_AGE_SECONDS = 24 * 60 * 60
DEFAULT_VIOLATION_MAX_AGE_SECONDS = 7 * 24 * 60 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 60 * 60
SWEEP_BATCH_SIZE = 500


@dataclass(slots=True)
class _ViolationEntry:
    count: int = 0
    last_violation_ms: int = 0


@dataclass(frozen=True, slots=True)
class SweepReport:
    pruned_observations: int = 0
    removed_authors: int = 0
    removed_counters: int = 0

    def __add__(self, other: "SweepReport") -> "SweepReport":
        return SweepReport(
            self.pruned_observations + other.pruned_observations,
            self.removed_authors + other.removed_authors,
            self.removed_counters + other.removed_counters,
        )


class HistoryStore:
    """Bounded per-author message history and violation counters.

    Observations are capped at ``max_entries`` per author (oldest evicted first)
    and dropped by :meth:`sweep` once older than ``max_age_seconds``. Violation
    counters live independently of observations so a quiet author keeps their
    count until it has been idle for ``violation_max_age_seconds``.
    """

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS,
        violation_max_age_seconds: float = DEFAULT_VIOLATION_MAX_AGE_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.max_age_ms = int(max_age_seconds * 1000)
        self.violation_max_age_ms = int(violation_max_age_seconds * 1000)
        self._clock = clock
        self._observations: dict[AuthorKey, deque[MessageObservation]] = {}
        self._violations: dict[AuthorKey, _ViolationEntry] = {}

    def now_ms(self) -> int:
        return now_ms(self._clock)

    # observations

    def record(self, tenant_id: str, author_id: str, observation: MessageObservation) -> None:
        key = (tenant_id, author_id)
        entries = self._observations.get(key)
        if entries is None:
            entries = self._observations[key] = deque(maxlen=self.max_entries)
        entries.append(observation)

    def window(self, tenant_id: str, author_id: str, since_ms: int) -> list[MessageObservation]:
        entries = self._observations.get((tenant_id, author_id))
        if not entries:
            return []
        return [obs for obs in entries if obs.timestamp_ms > since_ms]

    def observations(self, tenant_id: str, author_id: str) -> list[MessageObservation]:
        return list(self._observations.get((tenant_id, author_id), ()))

    # violation counters

    def get_violations(self, tenant_id: str, author_id: str) -> int:
        entry = self._violations.get((tenant_id, author_id))
        return entry.count if entry else 0

    def increment_violations(self, tenant_id: str, author_id: str) -> int:
        key = (tenant_id, author_id)
        entry = self._violations.get(key)
        if entry is None:
            entry = self._violations[key] = _ViolationEntry()
        entry.count += 1
        entry.last_violation_ms = self.now_ms()
        return entry.count

    def reset_violations(self, tenant_id: str, author_id: str) -> bool:
        return self._violations.pop((tenant_id, author_id), None) is not None

    def violation_keys_for_author(self, author_id: str) -> list[AuthorKey]:
        return [key for key in self._violations if key[1] == author_id]

    # aggregates

    def total_violations(self) -> int:
        return sum(entry.count for entry in self._violations.values())

    def users_with_violations(self) -> int:
        return sum(1 for entry in self._violations.values() if entry.count > 0)

    def author_count(self) -> int:
        return len(self._observations)

    def observation_count(self) -> int:
        return sum(len(entries) for entries in self._observations.values())

    def clear(self) -> None:
        self._observations.clear()
        self._violations.clear()

    # retention

    def _prune_observations(self, key: AuthorKey, cutoff_ms: int) -> tuple[int, bool]:
        entries = self._observations.get(key)
        if entries is None:
            return 0, False
        kept = [obs for obs in entries if obs.timestamp_ms >= cutoff_ms]
        pruned = len(entries) - len(kept)
        if not kept:
            del self._observations[key]
            return pruned, True
        if pruned:
            self._observations[key] = deque(kept, maxlen=self.max_entries)
        return pruned, False

    def _prune_counter(self, key: AuthorKey, idle_cutoff_ms: int) -> bool:
        entry = self._violations.get(key)
        if entry is None:
            return False
        if entry.count <= 0 or entry.last_violation_ms < idle_cutoff_ms:
            del self._violations[key]
            return True
        return False

    def _sweep_keys(
        self,
        observation_keys: list[AuthorKey],
        counter_keys: list[AuthorKey],
        now: int,
    ) -> SweepReport:
        cutoff = now - self.max_age_ms
        idle_cutoff = now - self.violation_max_age_ms
        pruned = removed_authors = removed_counters = 0
        for key in observation_keys:
            count, removed = self._prune_observations(key, cutoff)
            pruned += count
            removed_authors += removed
        for key in counter_keys:
            removed_counters += self._prune_counter(key, idle_cutoff)
        return SweepReport(pruned, removed_authors, removed_counters)

    def sweep(self, now: Optional[int] = None) -> SweepReport:
        """Drop stale observations, empty histories and stale counters."""
        now = self.now_ms() if now is None else now
        return self._sweep_keys(list(self._observations), list(self._violations), now)

    async def sweep_async(self, batch_size: int = SWEEP_BATCH_SIZE) -> SweepReport:
        """Like :meth:`sweep` but yields to the event loop between batches.

        Keys are snapshotted up front and each one is re-checked against the
        live maps when visited, so entries written meanwhile win.
        """
        now = self.now_ms()
        observation_keys = list(self._observations)
        counter_keys = list(self._violations)
        report = SweepReport()
        for start in range(0, max(len(observation_keys), len(counter_keys)), batch_size):
            report += self._sweep_keys(
                observation_keys[start : start + batch_size],
                counter_keys[start : start + batch_size],
                now,
            )
            await asyncio.sleep(0)
        return report


class RetentionSweeper:
    """Runs :meth:`HistoryStore.sweep_async` on a fixed interval."""

    def __init__(self, store: HistoryStore, *, interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS) -> None:
        self._store = store
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self.last_report: SweepReport | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._worker(), name="automod-retention-sweeper")

    def run_once(self) -> SweepReport:
        report = self._store.sweep()
        self._log_report(report, forced=True)
        return report

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def _worker(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                report = await self._store.sweep_async()
            except asyncio.CancelledError:
                raise
            except Exception:  # pragma: no cover - best-effort logging
                _logger.exception("Auto moderation history sweep failed")
                continue
            self._log_report(report, forced=False)

    def _log_report(self, report: SweepReport, *, forced: bool) -> None:
        self.last_report = report
        _logger.debug(
            "Cleaned up auto moderation data (forced=%s): %s observations, %s authors, %s counters",
            forced,
            report.pruned_observations,
            report.removed_authors,
            report.removed_counters,
        )


@dataclass(slots=True)
class _LockEntry:
    lock: asyncio.Lock
    refs: int = 0


class AuthorLockRegistry:
    """Reference-counted ``asyncio.Lock`` per key; idle locks are discarded."""

    def __init__(self) -> None:
        self._entries: dict[Hashable, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = _LockEntry(asyncio.Lock())
        entry.refs += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.refs -= 1
            if entry.refs == 0 and self._entries.get(key) is entry:
                del self._entries[key]

    def clear(self) -> None:
        self._entries = {key: entry for key, entry in self._entries.items() if entry.refs}
