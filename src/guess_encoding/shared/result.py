"""Result objects and diagnostic types shared by the prober and transliterator."""

import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional


class DiagnosticSeverity(Enum):
    """Severity levels for diagnostic entries."""

    INFO = auto()       # Anomalies the prober recovered from locally


@dataclass
class DiagnosticEntry:
    """Single diagnostic entry with context information."""

    severity: DiagnosticSeverity
    message: str
    component: str
    position: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    timestamp: float = field(default_factory=time.time)
    correlation_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate diagnostic entry."""
        if not self.message:
            raise ValueError("Diagnostic message cannot be empty")
        if not self.component:
            raise ValueError("Diagnostic component cannot be empty")


@dataclass
class PerformanceMetrics:
    """Throughput figures for a single probe or transliteration run."""

    processing_time_ms: float = 0.0
    bytes_processed: int = 0
    characters_processed: int = 0

    @property
    def bytes_per_second(self) -> float:
        """Calculate bytes processed per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.bytes_processed * 1000.0) / self.processing_time_ms

    @property
    def characters_per_second(self) -> float:
        """Calculate characters processed per second."""
        if self.processing_time_ms <= 0:
            return 0.0
        return (self.characters_processed * 1000.0) / self.processing_time_ms
