"""Shared utilities for encoding probing and transliteration.

This module provides configuration objects, result and diagnostic types, and
the correlation-aware logger used across all layers.
"""

from .result import (
    DiagnosticEntry,
    DiagnosticSeverity,
    PerformanceMetrics,
)
from .config import (
    ConfigError,
    ConfigValidationError,
    GuessEncodingConfig,
    ProbeConfig,
    TransliterationConfig,
)
from .logging import (
    CorrelationLogger,
    get_logger,
)

__all__ = [
    "DiagnosticEntry",
    "DiagnosticSeverity",
    "PerformanceMetrics",
    "ConfigError",
    "ConfigValidationError",
    "GuessEncodingConfig",
    "ProbeConfig",
    "TransliterationConfig",
    "CorrelationLogger",
    "get_logger",
]
