"""User-facing notifications for request outcomes.

The engine reports successes and failures through a Notifier. Applications
plug in their own (a CLI printer, a UI toast bridge); the default writes to
the log.
"""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingNotifier:
    """Notifier that emits every notification as a log record."""

    def __init__(self, name: str = "storefront_client.notify") -> None:
        self._logger = logging.getLogger(name)

    def success(self, message: str) -> None:
        self._logger.info(message)

    def error(self, message: str) -> None:
        self._logger.warning(message)
