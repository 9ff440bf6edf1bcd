"""Background thread that periodically purges expired verification codes."""

import logging
import threading
from typing import Optional

from ...application.services.verification_code_service import VerificationCodeService

logger = logging.getLogger(__name__)


class ExpiredCodeSweeper:
    def __init__(self, verification: VerificationCodeService, interval_seconds: float = 60.0):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.verification = verification
        self.interval_seconds = interval_seconds
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _loop(self) -> None:
        logger.info("Expired code sweeper loop started")
        while not self._stop.wait(self.interval_seconds):
            self.run_once()
        logger.info("Expired code sweeper loop stopped")

    def run_once(self) -> int:
        try:
            return self.verification.sweep_expired()
        except Exception as e:
            logger.error(f"Error sweeping expired verification codes: {e}")
            return 0

    def start(self) -> None:
        if self.running:
            logger.warning("Expired code sweeper already running")
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name="expired-code-sweeper",
        )
        self._thread.start()
        logger.info(f"Expired code sweeper started (interval {self.interval_seconds}s)")

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Expired code sweeper stopped")
