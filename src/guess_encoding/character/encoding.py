"""Byte-level encoding prober with never-fail guarantee.

This module implements a single-pass finite state scanner that tells ASCII,
UTF-8 and Latin-1 apart without trusting any declared charset. Every byte is
classified into one of four counters; malformed UTF-8 is never an error, it is
either recovered as a pair of Latin-1 bytes or counted as invalid.

Reading the counters:

- ``utf8_valid`` positive and nothing else non-ASCII: the stream is UTF-8.
- Only ``utf8_invalid`` and/or ``latin1_typical`` positive: the stream is Latin-1.
- All three zero: plain ASCII.
- Anything else is a mixture, which is common in real files.
"""

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from ..shared.config import ProbeConfig
from ..shared.logging import get_logger
from ..shared.result import DiagnosticEntry, DiagnosticSeverity, PerformanceMetrics
from .source import InputType, UnreadableSourceError, describe_source, iter_chunks

# UTF-8 byte constants
ASCII_MAX = 0x80
UTF8_CONTINUATION_MASK = 0xC0
UTF8_CONTINUATION_PATTERN = 0x80

# (mask, pattern, sequence length) for lead bytes 110xxxxx, 1110xxxx, 11110xxx
UTF8_LEAD_PATTERNS = (
    (0xE0, 0xC0, 2),
    (0xF0, 0xE0, 3),
    (0xF8, 0xF0, 4),
)

# Bytes in the 128..255 range that show up a lot in Latin-1 encoded European
# text: accented letters, guillemets, section sign, currency and the like.
TYPICAL_LATIN1 = frozenset(
    [164, 169, 171, 174, 176, 177, 178, 179, 181, 185, 187, 189]
    + list(range(191, 198))
    + list(range(199, 221))
    + list(range(223, 247))
    + list(range(249, 254))
)


class EncodingVerdict(Enum):
    """Enumeration of probe verdicts."""
    ASCII = "ascii"
    UTF8 = "utf-8"
    LATIN1 = "latin-1"
    MIXED = "mixed"


@dataclass
class ProbeCounters:
    """Byte event counters accumulated over one stream.

    A complete or aborted multi-byte sequence counts as a single event, every
    other byte as one event each.
    """
    utf8_valid: int = 0
    utf8_invalid: int = 0
    latin1_typical: int = 0
    ascii: int = 0

    @property
    def total_events(self) -> int:
        """Total number of classified byte events."""
        return self.utf8_valid + self.utf8_invalid + self.latin1_typical + self.ascii

    def copy(self) -> "ProbeCounters":
        """Return an independent snapshot of the counters."""
        return ProbeCounters(**asdict(self))

    def to_dict(self) -> Dict[str, int]:
        """Convert counters to a plain dictionary."""
        return asdict(self)


@dataclass
class UTF8DecodeState:
    """State of a multi-byte sequence being scanned.

    Attributes:
        remaining: Continuation bytes still expected (0 when outside a sequence)
        size: Total length of the sequence announced by the lead byte
        lead: Value of the lead byte
    """
    remaining: int = 0
    size: int = 0
    lead: int = 0

    @property
    def active(self) -> bool:
        """Whether the scanner is inside a multi-byte sequence."""
        return self.remaining > 0

    @property
    def consumed(self) -> int:
        """Number of bytes of the current sequence seen so far."""
        return self.size - self.remaining

    def start(self, lead: int, size: int) -> None:
        """Enter a sequence announced by ``lead``."""
        self.lead = lead
        self.size = size
        self.remaining = size - 1

    def reset(self) -> None:
        """Leave the current sequence."""
        self.remaining = self.size = self.lead = 0


def derive_verdict(counters: ProbeCounters) -> EncodingVerdict:
    """Derive the encoding verdict from probe counters.

    Args:
        counters: Counters produced by a probe

    Returns:
        EncodingVerdict for the probed stream
    """
    suspicious = counters.utf8_invalid + counters.latin1_typical

    if counters.utf8_valid == 0 and suspicious == 0:
        return EncodingVerdict.ASCII
    if counters.utf8_valid > 0 and suspicious == 0:
        return EncodingVerdict.UTF8
    if counters.utf8_valid == 0:
        return EncodingVerdict.LATIN1
    return EncodingVerdict.MIXED


@dataclass
class ProbeResult:
    """Result of probing one byte stream.

    Attributes:
        name: Label of the probed source, used for reporting only
        counters: Final byte event counters
        verdict: Encoding verdict derived from the counters
        bytes_consumed: Number of bytes read from the source
        truncated: Whether the stream ended inside a multi-byte sequence
        limit_reached: Whether probing stopped at the configured byte limit
        metrics: Timing and throughput figures
        diagnostics: Notable events encountered while probing
    """
    name: str
    counters: ProbeCounters
    verdict: EncodingVerdict
    bytes_consumed: int = 0
    truncated: bool = False
    limit_reached: bool = False
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)

    def report(self) -> str:
        """Render the one-line probe report."""
        c = self.counters
        return (
            f"{self.name}: utf8_valid={c.utf8_valid} utf8_invalid={c.utf8_invalid} "
            f"latin1_typ={c.latin1_typical} ascii={c.ascii}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert result to a JSON-friendly dictionary."""
        return {
            "name": self.name,
            "verdict": self.verdict.value,
            "counters": self.counters.to_dict(),
            "bytes_consumed": self.bytes_consumed,
            "truncated": self.truncated,
            "limit_reached": self.limit_reached,
            "processing_time_ms": self.metrics.processing_time_ms,
        }


class EncodingProber:
    """Incremental encoding prober.

    Bytes can be fed in arbitrary chunks; the decode state carries over chunk
    boundaries so the outcome never depends on how the stream was split. Each
    prober owns its counters, the only shared data is the immutable
    ``TYPICAL_LATIN1`` set.

    Example:
        >>> prober = EncodingProber(name="mail.txt")
        >>> prober.feed(b"J\\xc3\\xbcrgen")
        7
        >>> prober.close().report()
        'mail.txt: utf8_valid=1 utf8_invalid=0 latin1_typ=0 ascii=5'
    """

    def __init__(
        self,
        config: Optional[ProbeConfig] = None,
        name: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Initialize the prober.

        Args:
            config: Probe configuration (uses default if None)
            name: Label used in reports and log records
            correlation_id: Optional correlation ID for log records
        """
        self.config = config or ProbeConfig()
        self.name = name or "<stream>"
        self.counters = ProbeCounters()
        self.bytes_consumed = 0
        self.limit_reached = False
        self._state = UTF8DecodeState()
        self._ascii_lower_bound = self.config.ascii_lower_bound
        self._diagnostics: List[DiagnosticEntry] = []
        self._closed = False
        self._start_time = time.perf_counter()
        self._correlation_id = correlation_id
        self._logger = get_logger(__name__, correlation_id, "encoding_prober")

        self._logger.debug("Probing started", extra={"source": self.name})

    @property
    def closed(self) -> bool:
        """Whether ``close()`` has been called."""
        return self._closed

    def feed(self, data: Union[bytes, bytearray, memoryview, Iterable[int]]) -> int:
        """Classify the bytes in ``data``.

        Args:
            data: Next bytes of the stream

        Returns:
            Number of bytes accepted; less than ``len(data)`` only when the
            configured byte limit was hit

        Raises:
            ValueError: If the prober has already been closed
        """
        if self._closed:
            raise ValueError("Cannot feed a closed prober")

        if not isinstance(data, (bytes, bytearray, memoryview)):
            data = bytes(data)

        max_bytes = self.config.max_bytes
        if max_bytes is not None:
            allowance = max_bytes - self.bytes_consumed
            if allowance < len(data):
                data = data[:max(allowance, 0)]
                self.limit_reached = True

        for value in data:
            self._classify(value)

        self.bytes_consumed += len(data)
        return len(data)

    def close(self) -> ProbeResult:
        """Finish the stream and return the probe result.

        A sequence still open at this point is truncated; depending on
        ``ProbeConfig.count_truncated_sequence`` it is counted as one
        ``utf8_invalid`` event or dropped. A sequence cut by ``max_bytes`` is
        always dropped.
        """
        if self._closed:
            raise ValueError("Prober already closed")
        self._closed = True

        truncated = self._state.active
        if truncated:
            self._handle_truncated_sequence()

        if self.limit_reached:
            self._logger.info(
                "Byte limit reached, probe result covers a prefix only",
                extra={"source": self.name, "max_bytes": self.config.max_bytes},
            )

        elapsed_ms = (time.perf_counter() - self._start_time) * 1000.0
        result = ProbeResult(
            name=self.name,
            counters=self.counters.copy(),
            verdict=derive_verdict(self.counters),
            bytes_consumed=self.bytes_consumed,
            truncated=truncated,
            limit_reached=self.limit_reached,
            metrics=PerformanceMetrics(
                processing_time_ms=elapsed_ms,
                bytes_processed=self.bytes_consumed,
            ),
            diagnostics=list(self._diagnostics),
        )

        self._logger.debug(
            "Probing finished",
            extra={"source": self.name, "verdict": result.verdict.value,
                   **result.counters.to_dict()},
        )
        return result

    def _is_ascii(self, value: int) -> bool:
        return self._ascii_lower_bound <= value < ASCII_MAX

    def _classify(self, value: int) -> None:
        """Advance the state machine by one byte."""
        state = self._state

        if state.active:
            if value & UTF8_CONTINUATION_MASK == UTF8_CONTINUATION_PATTERN:
                state.remaining -= 1
                if not state.remaining:
                    self.counters.utf8_valid += 1
                    state.reset()
                return

            if self._recover_broken_sequence(value):
                return

        self._classify_outside(value)

    def _classify_outside(self, value: int) -> None:
        """Classify a byte that is not part of an open sequence."""
        if self._is_ascii(value):
            self.counters.ascii += 1
            return

        for mask, pattern, size in UTF8_LEAD_PATTERNS:
            if value & mask == pattern:
                self._state.start(value, size)
                return

        if value in TYPICAL_LATIN1:
            self.counters.latin1_typical += 1
        else:
            self.counters.utf8_invalid += 1

    def _recover_broken_sequence(self, value: int) -> bool:
        """Account for a sequence interrupted by the non-continuation ``value``.

        A lead byte from the typical Latin-1 set followed directly by a byte
        that is not a continuation is most likely two independent Latin-1
        characters, or a Latin-1 character followed by ASCII.

        Returns:
            True if ``value`` was accounted for, False if it still has to be
            classified on its own
        """
        state = self._state
        lead, consumed = state.lead, state.consumed
        state.reset()

        if consumed == 1 and lead in TYPICAL_LATIN1:
            if self._is_ascii(value):
                self.counters.latin1_typical += 1
                self.counters.ascii += 1
                return True
            if value in TYPICAL_LATIN1:
                self.counters.latin1_typical += 2
                return True

        self.counters.utf8_invalid += 1
        return False

    def _handle_truncated_sequence(self) -> None:
        state = self._state
        # Sequences cut by the byte limit are never counted
        counted = self.config.count_truncated_sequence and not self.limit_reached
        details = {
            "lead": state.lead,
            "size": state.size,
            "consumed": state.consumed,
            "counted": counted,
        }

        if counted:
            self.counters.utf8_invalid += 1

        self._diagnostics.append(DiagnosticEntry(
            severity=DiagnosticSeverity.INFO,
            message=(
                f"Stream ended inside a {state.size}-byte sequence "
                f"(lead 0x{state.lead:02x}, {state.consumed} byte(s) seen)"
            ),
            component="encoding_prober",
            position=self.bytes_consumed,
            details=details,
            correlation_id=self._correlation_id,
        ))
        self._logger.info(
            "Truncated multi-byte sequence at end of stream",
            extra={"source": self.name, **details},
        )
        state.reset()


def probe_file(
    fd: InputType,
    name: Optional[str] = None,
    config: Optional[ProbeConfig] = None,
    correlation_id: Optional[str] = None,
) -> ProbeResult:
    """Probe a byte source and report how its bytes are encoded.

    Args:
        fd: Byte source; only sequential reads are required
        name: Label for the report (defaults to the source's ``name``)
        config: Probe configuration (uses default if None)
        correlation_id: Optional correlation ID for log records

    Returns:
        ProbeResult with counters and verdict

    Raises:
        UnreadableSourceError: If reading the source fails; ``partial`` holds
            the counters accumulated up to that point
        TypeError: If the source yields text instead of bytes
    """
    config = config or ProbeConfig()
    label = name or describe_source(fd)
    prober = EncodingProber(config, name=label, correlation_id=correlation_id)

    try:
        for chunk in iter_chunks(fd, config.chunk_size):
            prober.feed(chunk)
            if prober.limit_reached:
                break
    except UnreadableSourceError:
        raise
    except OSError as e:
        logger = get_logger(__name__, correlation_id, "encoding_prober")
        logger.error(
            "Byte source failed during probing",
            extra={"source": label, "bytes_consumed": prober.bytes_consumed},
        )
        raise UnreadableSourceError(
            f"Could not read {label}: {e}", partial=prober.counters.copy()
        ) from e

    return prober.close()


def probe_bytes(
    data: Union[bytes, bytearray, memoryview],
    name: str = "<bytes>",
    config: Optional[ProbeConfig] = None,
) -> ProbeResult:
    """Probe an in-memory byte string."""
    return probe_file(data, name=name, config=config)
