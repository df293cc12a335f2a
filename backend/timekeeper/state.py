from __future__ import annotations

import logging
from threading import RLock
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .clock import Clock, SystemClock
from .commands import Command, CommandProcessor, CommandResult
from .config import Settings
from .models import TimeTrackerState
from .snapshot import deserialize, serialize
from .storage import SnapshotStore, build_store

logger = logging.getLogger(__name__)

STORAGE_ERRORS = (OSError, SQLAlchemyError, ValidationError, ValueError)


class TrackerContext:
    """Owns the tracker state for one application lifetime.

    Command cycles run one at a time under the lock; readers get detached
    copies. Storage failures are logged and never stop the tracker.
    """

    def __init__(
        self,
        clock: Clock,
        store: Optional[SnapshotStore] = None,
        *,
        rounding_enabled: bool = True,
        rounding_granularity: float = 0.25,
    ) -> None:
        self._lock = RLock()
        self.store = store
        self.is_dark_mode = False
        self.processor = CommandProcessor(
            TimeTrackerState(
                rounding_enabled=rounding_enabled,
                rounding_granularity_hours=rounding_granularity,
            ),
            clock,
        )

    @classmethod
    def from_settings(cls, config: Settings) -> "TrackerContext":
        return cls(
            SystemClock(config.timezone),
            build_store(config),
            rounding_enabled=config.default_rounding_enabled,
            rounding_granularity=config.default_rounding_granularity,
        )

    @property
    def state(self) -> TimeTrackerState:
        with self._lock:
            return self.processor.snapshot()

    @property
    def timezone(self) -> Optional[str]:
        """Zone name of the clock this context captures times with."""
        return getattr(self.processor.clock, "timezone", None)

    def load(self) -> bool:
        """Replace the state with the stored document, if there is one."""
        if self.store is None:
            return False
        try:
            document = self.store.load()
        except STORAGE_ERRORS:
            logger.warning("Could not load stored tracker settings", exc_info=True)
            return False
        if document is None:
            return False
        with self._lock:
            self.processor.state = deserialize(document)
            self.is_dark_mode = document.is_dark_mode
        logger.info("Restored %d tags from storage", len(document.tag_names))
        return True

    def execute(self, *commands: Command) -> List[CommandResult]:
        with self._lock:
            self.processor.submit(*commands)
            results = self.processor.run_cycle()
            if any(result.applied for result in results):
                self.save()
            return results

    def set_dark_mode(self, enabled: bool) -> None:
        with self._lock:
            self.is_dark_mode = bool(enabled)
            self.save()

    def save(self) -> bool:
        if self.store is None:
            return False
        with self._lock:
            document = serialize(self.processor.state, is_dark_mode=self.is_dark_mode)
        try:
            self.store.save(document)
        except STORAGE_ERRORS:
            logger.warning("Could not persist tracker settings", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.save()
