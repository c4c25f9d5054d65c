"""Rollup Manager - Owns the rollup cache for one logical session.

The engine is pure and takes its cache as an argument. This manager holds
exactly one cache between calls, serializes updates with a lock (single
writer per cache) and notifies listeners after each update.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
import threading
from typing import TYPE_CHECKING, Any

from .. import const
from ..engines.rollup_engine import RollupEngine, empty_cache
from ..options import validate_options

if TYPE_CHECKING:
    from ..type_defs import AllPeriodsAggregate, RollupCache, RollupOptions

RollupListener = Callable[["AllPeriodsAggregate"], None]


class RollupManager:
    """Stateful wrapper that threads the rollup cache between updates.

    Example:
        manager = RollupManager()
        unsubscribe = manager.add_listener(on_rollup)
        data = manager.update(log_store.all_days())
    """

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        """Initialize manager.

        Args:
            options: Engine options, validated immediately

        Raises:
            InvalidOptionsError: options fail validation.
        """
        self._options: RollupOptions = validate_options(options)
        self._cache: RollupCache = empty_cache()
        self._data: AllPeriodsAggregate | None = None
        self._lock = threading.Lock()
        self._listeners: list[RollupListener] = []

    @property
    def options(self) -> RollupOptions:
        """Validated options used for every update."""
        return self._options

    @property
    def data(self) -> AllPeriodsAggregate | None:
        """Aggregate set from the latest update, or None before the first."""
        return self._data

    def update(self, records: Iterable[Mapping[str, Any]]) -> AllPeriodsAggregate:
        """Recompute from a new log snapshot and notify listeners.

        Args:
            records: Every day record of the log, in any order

        Returns:
            The new aggregate set
        """
        with self._lock:
            data, self._cache = RollupEngine.recompute(
                records, self._cache, self._options
            )
            self._data = data
            listeners = list(self._listeners)

        const.LOGGER.debug(
            "RollupManager: Updated %d day(s), notifying %d listener(s)",
            len(data["days"]),
            len(listeners),
        )
        for listener in listeners:
            listener(data)
        return data

    def reset(self) -> None:
        """Drop the cache so the next update rebuilds everything."""
        with self._lock:
            self._cache = empty_cache()
            self._data = None
        const.LOGGER.debug("RollupManager: Cache cleared")

    def add_listener(self, listener: RollupListener) -> Callable[[], None]:
        """Register a callback run after every update.

        Returns:
            Callable that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove
