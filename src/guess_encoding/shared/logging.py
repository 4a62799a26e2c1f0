"""Structured logging utilities for encoding probing and transliteration.

Every record carries the emitting component and an optional correlation ID so
that reports from several probes running side by side can be told apart.
"""

import logging
from typing import Any, Dict, Optional


class CorrelationLogger:
    """Logger that stamps each record with its component and correlation ID."""

    def __init__(
        self,
        name: str,
        correlation_id: Optional[str] = None,
        component: Optional[str] = None
    ) -> None:
        """Initialize correlation logger.

        Args:
            name: Logger name (typically __name__)
            correlation_id: Optional correlation ID shared by one probe or conversion
            component: Component name; defaults to the last part of ``name``
        """
        self.logger = logging.getLogger(name)
        self.correlation_id = correlation_id
        self.component = component or name.rsplit(".", 1)[-1]

    def _log(
        self,
        level: int,
        message: str,
        extra: Optional[Dict[str, Any]],
        exc_info: bool,
    ) -> None:
        # Skip building the extra dict for records nobody will see
        if not self.logger.isEnabledFor(level):
            return
        fields = {"component": self.component, "correlation_id": self.correlation_id}
        fields.update(extra or {})
        self.logger.log(level, message, extra=fields, exc_info=exc_info)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Log a probe or conversion milestone."""
        self._log(logging.DEBUG, message, extra, False)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Log a recovered stream anomaly such as a truncated sequence."""
        self._log(logging.INFO, message, extra, False)

    def warning(
        self,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False
    ) -> None:
        """Log an unmapped code point or a file that could not be probed."""
        self._log(logging.WARNING, message, extra, exc_info)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None) -> None:
        """Log a failing byte source, with the active exception attached."""
        self._log(logging.ERROR, message, extra, True)


def get_logger(
    name: str,
    correlation_id: Optional[str] = None,
    component: Optional[str] = None
) -> CorrelationLogger:
    """Get a correlation-aware logger instance.

    Args:
        name: Logger name (typically __name__)
        correlation_id: Optional correlation ID for log records
        component: Component name for structured logging

    Returns:
        CorrelationLogger instance
    """
    return CorrelationLogger(name, correlation_id, component)
