"""
In-process notifier that keeps delivered nudges for display.
"""

import logging
import threading
from collections import deque
from typing import Any, Deque, List

from ..core.interfaces import Notifier

logger = logging.getLogger(__name__)


class RecordingNotifier(Notifier):
    """Logs each notice and keeps the most recent ones."""

    def __init__(self, max_notices: int = 100):
        self._notices: Deque[Any] = deque(maxlen=max_notices)
        self._lock = threading.Lock()

    def notify(self, notice: Any) -> None:
        with self._lock:
            self._notices.append(notice)
        logger.info("Notice delivered: %s", notice)

    @property
    def notices(self) -> List[Any]:
        with self._lock:
            return list(self._notices)
