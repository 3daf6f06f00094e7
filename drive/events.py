"""Progress and status callback registration."""

import logging
from typing import Callable, List, Optional

from common.types import Address, ProgressEvent, StatusEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]
StatusCallback = Callable[[StatusEvent], None]


class EventHub:
    """Fan-out of progress and status events to registered callbacks."""

    def __init__(self):
        self._progress: List[ProgressCallback] = []
        self._status: List[StatusCallback] = []

    def on_progress(self, callback: ProgressCallback) -> Callable[[], None]:
        """Register a progress callback; returns a function that unregisters it."""
        self._progress.append(callback)
        return lambda: self._progress.remove(callback)

    def on_status(self, callback: StatusCallback) -> Callable[[], None]:
        """Register a status callback; returns a function that unregisters it."""
        self._status.append(callback)
        return lambda: self._status.remove(callback)

    def progress(self, loaded: int, total: int) -> None:
        event = ProgressEvent(loaded=loaded, total=total)
        for callback in list(self._progress):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Progress callback failed: {e}", exc_info=True)

    def status(self, status: str, message: str, address: Optional[Address] = None) -> None:
        event = StatusEvent(status=status, message=message, address=address)
        logger.debug(f"Status change [status={status}]: {message}")
        for callback in list(self._status):
            try:
                callback(event)
            except Exception as e:
                logger.warning(f"Status callback failed: {e}", exc_info=True)
