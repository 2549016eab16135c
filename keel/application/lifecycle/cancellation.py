"""
Cooperative cancellation for in-flight deployments.

Cancelling stops new hooks from being issued. A hook that is already
running is never interrupted by cancellation, only by its own timeout.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class CancellationToken:
    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._cancelled:
            logger.warning("Deployment cancellation requested: %s", reason)
        self._cancelled = True
        self._reason = self._reason or reason
