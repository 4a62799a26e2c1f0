"""Repair of byte streams that mix UTF-8 and Latin-1.

Files assembled by copy and paste or by tools with the wrong idea about their
input often carry genuine UTF-8 next to stray Latin-1 bytes. ``to_utf8`` keeps
every complete UTF-8 sequence and reads every other byte above 0x7F as Latin-1;
``to_ascii`` additionally transliterates the result. Both report which output
offsets came from which source encoding.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..shared.config import TransliterationConfig
from ..shared.logging import get_logger
from .encoding import ASCII_MAX, UTF8_CONTINUATION_MASK, UTF8_CONTINUATION_PATTERN, UTF8_LEAD_PATTERNS
from .source import DEFAULT_CHUNK_SIZE, InputType, UnreadableSourceError, describe_source, iter_chunks
from .transliteration import CodepointTransliterator, UnmappedCodePoint, character_name

UTF8_KEY = "utf8"
LATIN1_KEY = "latin1"


@dataclass
class RepairResult:
    """Result of repairing a mixed-encoding stream.

    Attributes:
        text: Repaired text
        mapping: Per source encoding, where its non-ASCII characters ended up.
            For ``to_utf8`` a list of output offsets; for ``to_ascii`` a list of
            ``[code_point, replacement_length, [offsets]]`` entries.
        unmapped: Code points without an ASCII replacement (``to_ascii`` only)
    """
    text: str
    mapping: Dict[str, List[Any]] = field(default_factory=dict)
    unmapped: List[UnmappedCodePoint] = field(default_factory=list)

    @property
    def encodings(self) -> List[str]:
        """Source encodings found besides ASCII."""
        return sorted(self.mapping)


class MixedEncodingDecoder:
    """Incremental decoder reading UTF-8 where possible and Latin-1 otherwise."""

    def __init__(self) -> None:
        self._pending = bytearray()
        self._needed = 0
        self._out: List[str] = []
        self._length = 0
        self.mapping: Dict[str, List[int]] = {}

    def feed(self, data: bytes) -> None:
        """Decode the next bytes of the stream."""
        for value in data:
            if self._needed:
                if value & UTF8_CONTINUATION_MASK == UTF8_CONTINUATION_PATTERN:
                    self._pending.append(value)
                    self._needed -= 1
                    if not self._needed:
                        self._finish_sequence()
                    continue
                self._flush_pending_as_latin1()

            if value < ASCII_MAX:
                self._emit(chr(value))
                continue

            for mask, pattern, size in UTF8_LEAD_PATTERNS:
                if value & mask == pattern:
                    self._pending.append(value)
                    self._needed = size - 1
                    break
            else:
                self._emit(chr(value), LATIN1_KEY)

    def close(self) -> Tuple[str, Dict[str, List[int]]]:
        """Flush any open sequence and return (text, offsets per encoding)."""
        self._flush_pending_as_latin1()
        return "".join(self._out), dict(sorted(self.mapping.items()))

    def _emit(self, char: str, encoding: Optional[str] = None) -> None:
        if encoding is not None:
            self.mapping.setdefault(encoding, []).append(self._length)
        self._out.append(char)
        self._length += 1

    def _finish_sequence(self) -> None:
        try:
            # Overlong forms and surrogates are rejected here
            char = self._pending.decode("utf-8")
        except UnicodeDecodeError:
            self._flush_pending_as_latin1()
            return
        self._pending.clear()
        self._emit(char, UTF8_KEY)

    def _flush_pending_as_latin1(self) -> None:
        for value in self._pending:
            self._emit(chr(value), LATIN1_KEY)
        self._pending.clear()
        self._needed = 0


def to_utf8(source: InputType, chunk_size: int = DEFAULT_CHUNK_SIZE) -> RepairResult:
    """Decode a mixed UTF-8/Latin-1 byte stream to text.

    Example:
        >>> result = to_utf8(b"J\\xfcrgen \\xc3\\xbc\\n")
        >>> result.text
        'Jürgen ü\\n'
        >>> result.mapping
        {'latin1': [1], 'utf8': [7]}
    """
    decoder = MixedEncodingDecoder()
    try:
        for chunk in iter_chunks(source, chunk_size):
            decoder.feed(chunk)
    except OSError as e:
        text, mapping = decoder.close()
        raise UnreadableSourceError(
            f"Could not read {describe_source(source)}: {e}",
            partial=RepairResult(text, mapping),
        ) from e

    text, mapping = decoder.close()
    return RepairResult(text, mapping)


def to_ascii(
    source: InputType,
    config: Optional[TransliterationConfig] = None,
) -> RepairResult:
    """Decode a mixed UTF-8/Latin-1 byte stream and transliterate it to ASCII.

    Offsets in the returned mapping refer to the ASCII output, where
    multi-character replacements shift everything after them.

    Example:
        >>> result = to_ascii(b"J\\xfcrgen \\xc3\\xbc\\n")
        >>> result.text
        'Juergen ue\\n'
        >>> result.mapping
        {'latin1': [[252, 2, [1]]], 'utf8': [[252, 2, [8]]]}
    """
    config = config or TransliterationConfig()
    repaired = to_utf8(source, config.chunk_size)
    transliterator = CodepointTransliterator(config)
    logger = get_logger(__name__, None, "mixed_encoding_repair")

    origin = {
        offset: encoding
        for encoding, offsets in repaired.mapping.items()
        for offset in offsets
    }

    out: List[str] = []
    length = 0
    unmapped: List[UnmappedCodePoint] = []
    # encoding -> code point -> [code_point, replacement_length, offsets]
    entries: Dict[str, "OrderedDict[int, List[Any]]"] = {}

    for index, char in enumerate(repaired.text):
        encoding = origin.get(index)
        if encoding is None:
            out.append(char)
            length += 1
            continue

        code_point = ord(char)
        replacement = transliterator.replacement_for(code_point)
        if replacement is None:
            entry = UnmappedCodePoint(code_point, character_name(code_point), index)
            unmapped.append(entry)
            if config.log_unmapped:
                logger.warning(
                    entry.log_line(),
                    extra={"code_point": code_point, "encoding": encoding},
                )
            replacement = transliterator.transliterate_char(char)

        per_encoding = entries.setdefault(encoding, OrderedDict())
        record = per_encoding.setdefault(code_point, [code_point, len(replacement), []])
        record[2].append(length)

        out.append(replacement)
        length += len(replacement)

    mapping = {
        encoding: list(per_encoding.values())
        for encoding, per_encoding in sorted(entries.items())
    }
    return RepairResult("".join(out), mapping, unmapped)
