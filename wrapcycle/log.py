"""Logging setup and the cycle logger."""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


class CycleLogger:
    """Progress logger for cycles and steps.

    Thin adapter over a stdlib logger exposing the four severities the
    sequence and scheduler report with.
    """

    BANNER = "=" * 20

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._logger = logger or logging.getLogger("wrapcycle")

    def info(self, message: str) -> None:
        self._logger.info(message)

    def success(self, message: str) -> None:
        self._logger.info(f"[SUCCESS] {message}")

    def error(self, message: str) -> None:
        self._logger.error(message)

    def header(self, message: str) -> None:
        self._logger.info(f"{self.BANNER} {message} {self.BANNER}")
