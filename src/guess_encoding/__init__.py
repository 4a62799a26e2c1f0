"""Guess Encoding.

Classify byte streams as ASCII, UTF-8, Latin-1 or a mixture of them, and
transliterate non-ASCII text into a readable ASCII approximation. Meant for
salvaging text whose declared charset cannot be trusted.

Progressive API Disclosure:
- Level 1: Simple functions - probe_file(), probe_bytes(), utf8toascii(),
  to_utf8(), to_ascii()
- Level 2: Configured components - EncodingProber, CodepointTransliterator
"""

__version__ = "0.3.0"
__author__ = "Guess Encoding Team"

# Progressive API disclosure - Level 1: Simple functions
# Progressive API disclosure - Level 2: Configured components
from .character import (
    CodepointTransliterator,
    EncodingProber,
    EncodingVerdict,
    ProbeCounters,
    ProbeResult,
    RepairResult,
    TransliterationResult,
    UnreadableSourceError,
    probe_bytes,
    probe_file,
    to_ascii,
    to_utf8,
    utf8toascii,
)

# Configuration classes for advanced usage
from .shared.config import GuessEncodingConfig, ProbeConfig, TransliterationConfig

__all__ = [
    # Version and metadata
    "__author__",
    "__version__",

    # Level 1: Simple functions
    "probe_file",
    "probe_bytes",
    "utf8toascii",
    "to_utf8",
    "to_ascii",

    # Level 2: Configured components
    "EncodingProber",
    "CodepointTransliterator",

    # Result objects and data structures
    "EncodingVerdict",
    "ProbeCounters",
    "ProbeResult",
    "RepairResult",
    "TransliterationResult",
    "UnreadableSourceError",

    # Configuration classes for advanced usage
    "GuessEncodingConfig",
    "ProbeConfig",
    "TransliterationConfig",
]
