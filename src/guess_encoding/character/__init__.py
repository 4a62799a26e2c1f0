"""Character processing layer for encoding probing and transliteration.

This module provides the byte-level encoding prober, the code point
transliterator, and repair of streams that mix UTF-8 and Latin-1, all following
the never-fail philosophy.
"""

from .encoding import (
    TYPICAL_LATIN1,
    EncodingProber,
    EncodingVerdict,
    ProbeCounters,
    ProbeResult,
    UTF8DecodeState,
    derive_verdict,
    probe_bytes,
    probe_file,
)
from .source import UnreadableSourceError, iter_chunks
from .stream import MixedEncodingDecoder, RepairResult, to_ascii, to_utf8
from .transliteration import (
    NAME_RULES,
    TRANSLITERATION_TABLE,
    CodepointTransliterator,
    TransliterationResult,
    UnmappedCodePoint,
    utf8toascii,
)

__all__ = [
    # Modules
    "encoding",
    "transliteration",
    "stream",
    "source",
    # Prober
    "TYPICAL_LATIN1",
    "EncodingProber",
    "EncodingVerdict",
    "ProbeCounters",
    "ProbeResult",
    "UTF8DecodeState",
    "derive_verdict",
    "probe_bytes",
    "probe_file",
    # Transliterator
    "NAME_RULES",
    "TRANSLITERATION_TABLE",
    "CodepointTransliterator",
    "TransliterationResult",
    "UnmappedCodePoint",
    "utf8toascii",
    # Mixed encoding repair
    "MixedEncodingDecoder",
    "RepairResult",
    "to_ascii",
    "to_utf8",
    # Sources
    "UnreadableSourceError",
    "iter_chunks",
]
