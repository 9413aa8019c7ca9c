"""
In-memory TTL cache for per-user permission override rules.

Entries are keyed by user id and replaced wholesale on every put. Expired
entries read as a miss and are dropped by a background sweeper thread.
WARNING: single-process only, contents are lost on restart.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from access_control.config import DEFAULT_CACHE_TTL_MS, DEFAULT_SWEEP_INTERVAL_MS


@dataclass(frozen=True)
class CacheEntry:
    """Cached rule list for one user"""
    rules: Tuple[Any, ...]
    cached_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class PermissionCache:
    """Thread-safe TTL cache of override rules keyed by user id"""

    def __init__(
        self,
        ttl: timedelta = timedelta(milliseconds=DEFAULT_CACHE_TTL_MS),
        sweep_interval: timedelta = timedelta(milliseconds=DEFAULT_SWEEP_INTERVAL_MS),
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if sweep_interval <= timedelta(0):
            raise ValueError("sweep_interval must be positive")

        self.ttl = ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        # Bumped by every invalidation; a put carrying an older version is dropped
        self._versions: Dict[str, int] = {}
        self._epoch = 0
        self._counter = 0
        self.lock = threading.Lock()

        self._stop_event = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        logger.debug(
            f"[CACHE] Permission cache initialized (ttl={ttl}, sweep_interval={sweep_interval})"
        )

    # ==================== READ / WRITE ====================

    def get(self, user_id: str) -> Optional[List[Any]]:
        """Return cached rules for user, or None on miss/expiry"""
        now = self._clock()
        with self.lock:
            entry = self._entries.get(user_id)
            if entry is None:
                logger.debug(f"[CACHE] Miss for user {user_id}")
                return None
            if entry.is_expired(now):
                logger.debug(f"[CACHE] Expired entry for user {user_id}")
                return None
            rules = list(entry.rules)

        logger.debug(
            f"[CACHE] Hit for user {user_id} "
            f"(age={(now - entry.cached_at).total_seconds():.1f}s, rules={len(rules)})"
        )
        return rules

    def version(self, user_id: str) -> Tuple[int, int]:
        """
        Invalidation version for a user.

        Read it before fetching rules from storage and hand it to put(); if
        the user was invalidated in between, the fetched rules are stale and
        put() drops them.
        """
        with self.lock:
            return self._epoch, self._versions.get(user_id, 0)

    def put(
        self,
        user_id: str,
        rules: Sequence[Any],
        version: Optional[Tuple[int, int]] = None
    ) -> Optional[CacheEntry]:
        """
        Store rules for user, replacing any previous entry.

        Returns the stored entry, or None when `version` is stale.
        """
        now = self._clock()
        entry = CacheEntry(
            rules=tuple(rules),
            cached_at=now,
            expires_at=now + self.ttl,
        )
        with self.lock:
            if version is not None and version != (self._epoch, self._versions.get(user_id, 0)):
                stale = True
            else:
                stale = False
                self._entries[user_id] = entry

        if stale:
            logger.debug(f"[CACHE] Dropped stale rules for user {user_id} (invalidated during fetch)")
            return None

        logger.debug(f"[CACHE] Stored {len(entry.rules)} rules for user {user_id}")
        return entry

    # ==================== INVALIDATION ====================

    def invalidate(self, user_id: str) -> bool:
        """Drop the entry for one user. Returns True if one was removed."""
        with self.lock:
            removed = self._entries.pop(user_id, None) is not None
            self._counter += 1
            self._versions[user_id] = self._counter

        if removed:
            logger.debug(f"[CACHE] Invalidated permissions for user {user_id}")
        return removed

    def invalidate_all(self) -> int:
        """Clear the whole cache. Returns the number of entries removed."""
        with self.lock:
            count = len(self._entries)
            self._entries.clear()
            self._versions.clear()
            self._epoch += 1

        logger.info(f"[CACHE] All permission cache entries invalidated (previous size: {count})")
        return count

    def sweep_expired(self, now: Optional[datetime] = None) -> int:
        """Remove every entry whose expiry is at or before now"""
        now = now or self._clock()
        with self.lock:
            expired = [uid for uid, entry in self._entries.items() if entry.is_expired(now)]
            for uid in expired:
                del self._entries[uid]
            remaining = len(self._entries)

        if expired:
            logger.debug(f"[CACHE] Sweep removed {len(expired)} entries, {remaining} remaining")
        return len(expired)

    # ==================== INTROSPECTION ====================

    def stats(self) -> Dict[str, int]:
        with self.lock:
            size = len(self._entries)
        return {
            "size": size,
            "ttl_ms": int(self.ttl.total_seconds() * 1000),
            "sweep_interval_ms": int(self.sweep_interval.total_seconds() * 1000),
        }

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    # ==================== BACKGROUND SWEEP ====================

    @property
    def sweeper_running(self) -> bool:
        return self._sweeper is not None and self._sweeper.is_alive()

    def start_sweeper(self) -> None:
        """Start the periodic sweep thread (no-op if already running)"""
        if self.sweeper_running:
            return

        self._stop_event.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop,
            name="permission-cache-sweeper",
            daemon=True,
        )
        self._sweeper.start()
        logger.info(f"[CACHE] Sweeper started (interval={self.sweep_interval})")

    def stop_sweeper(self, timeout: float = 5.0) -> None:
        if self._sweeper is None:
            return
        self._stop_event.set()
        self._sweeper.join(timeout=timeout)
        self._sweeper = None
        logger.info("[CACHE] Sweeper stopped")

    def _sweep_loop(self) -> None:
        interval = self.sweep_interval.total_seconds()
        while not self._stop_event.wait(interval):
            try:
                self.sweep_expired()
            except Exception as e:
                logger.error(f"[CACHE] Sweep failed: {type(e).__name__}: {e}")

    def __enter__(self):
        self.start_sweeper()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop_sweeper()
