"""Code point transliteration to readable ASCII.

Text is decoded one code point at a time. ASCII passes through untouched;
everything else is looked up by its Unicode character name, first in a curated
table and then through a short list of structural name rules. Code points
nothing matches are emitted as a visible placeholder and reported, so the
output is always complete even when some substitutions are missing.
"""

import codecs
import time
import unicodedata
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterator, List, Mapping, Optional, TextIO, Tuple, Union

from ..shared.config import TransliterationConfig
from ..shared.logging import get_logger
from ..shared.result import PerformanceMetrics
from .source import InputType, UnreadableSourceError, describe_source, iter_chunks

ASCII_MAX = 0x80
CACHE_SIZE_LIMIT = 4096

NameRule = Callable[[str], Optional[str]]

_TABLE: Dict[str, str] = {
    # Spaces and invisible characters
    "NO-BREAK SPACE": " ",
    "EN QUAD": " ",
    "EM QUAD": " ",
    "EN SPACE": " ",
    "EM SPACE": " ",
    "THREE-PER-EM SPACE": " ",
    "FOUR-PER-EM SPACE": " ",
    "SIX-PER-EM SPACE": " ",
    "FIGURE SPACE": " ",
    "PUNCTUATION SPACE": " ",
    "THIN SPACE": " ",
    "HAIR SPACE": " ",
    "NARROW NO-BREAK SPACE": " ",
    "MEDIUM MATHEMATICAL SPACE": " ",
    "IDEOGRAPHIC SPACE": " ",
    "SOFT HYPHEN": "",
    "ZERO WIDTH SPACE": "",
    "ZERO WIDTH NON-JOINER": "",
    "ZERO WIDTH JOINER": "",
    "WORD JOINER": "",
    "ZERO WIDTH NO-BREAK SPACE": "",
    "LEFT-TO-RIGHT MARK": "",
    "RIGHT-TO-LEFT MARK": "",

    # Quotation marks
    "LEFT SINGLE QUOTATION MARK": "'",
    "RIGHT SINGLE QUOTATION MARK": "'",
    "SINGLE LOW-9 QUOTATION MARK": ",",
    "SINGLE HIGH-REVERSED-9 QUOTATION MARK": "'",
    "LEFT DOUBLE QUOTATION MARK": '"',
    "RIGHT DOUBLE QUOTATION MARK": '"',
    "DOUBLE LOW-9 QUOTATION MARK": ",,",
    "DOUBLE HIGH-REVERSED-9 QUOTATION MARK": '"',
    "LEFT-POINTING DOUBLE ANGLE QUOTATION MARK": "<<",
    "RIGHT-POINTING DOUBLE ANGLE QUOTATION MARK": ">>",
    "SINGLE LEFT-POINTING ANGLE QUOTATION MARK": "<",
    "SINGLE RIGHT-POINTING ANGLE QUOTATION MARK": ">",
    "PRIME": "'",
    "DOUBLE PRIME": "''",
    "TRIPLE PRIME": "'''",
    "ACUTE ACCENT": "'",
    "GRAVE ACCENT": "`",
    "MODIFIER LETTER APOSTROPHE": "'",
    "MODIFIER LETTER PRIME": "'",
    "MODIFIER LETTER CIRCUMFLEX ACCENT": "^",
    "SMALL TILDE": "~",

    # Dashes and other punctuation
    "HYPHEN": "-",
    "NON-BREAKING HYPHEN": "-",
    "FIGURE DASH": "-",
    "EN DASH": "-",
    "EM DASH": "--",
    "HORIZONTAL BAR": "--",
    "MINUS SIGN": "-",
    "DOUBLE VERTICAL LINE": "||",
    "DOUBLE LOW LINE": "_",
    "HORIZONTAL ELLIPSIS": "...",
    "TWO DOT LEADER": "..",
    "ONE DOT LEADER": ".",
    "MIDDLE DOT": ".",
    "BULLET": "*",
    "TRIANGULAR BULLET": "*",
    "HYPHEN BULLET": "-",
    "BULLET OPERATOR": "*",
    "DAGGER": "+",
    "DOUBLE DAGGER": "++",
    "PER MILLE SIGN": "o/oo",
    "INVERTED EXCLAMATION MARK": "!",
    "INVERTED QUESTION MARK": "?",
    "DOUBLE EXCLAMATION MARK": "!!",
    "INTERROBANG": "?!",
    "FRACTION SLASH": "/",
    "DIVISION SLASH": "/",
    "BROKEN BAR": "|",
    "SECTION SIGN": "SS",
    "PILCROW SIGN": "P",
    "DIAERESIS": '"',
    "MACRON": "-",
    "CEDILLA": ",",
    "FEMININE ORDINAL INDICATOR": "a",
    "MASCULINE ORDINAL INDICATOR": "o",
    "NOT SIGN": "!",

    # Currency
    "CENT SIGN": "c",
    "POUND SIGN": "GBP",
    "CURRENCY SIGN": "$",
    "YEN SIGN": "JPY",
    "EURO SIGN": "EUR",
    "EURO-CURRENCY SIGN": "EUR",
    "FRENCH FRANC SIGN": "FRF",
    "LIRA SIGN": "ITL",
    "PESETA SIGN": "Pts",
    "RUPEE SIGN": "Rs",
    "INDIAN RUPEE SIGN": "INR",
    "WON SIGN": "KRW",
    "NEW SHEQEL SIGN": "ILS",
    "RUBLE SIGN": "RUB",

    # Symbols
    "COPYRIGHT SIGN": "(C)",
    "REGISTERED SIGN": "(R)",
    "SOUND RECORDING COPYRIGHT": "(P)",
    "TRADE MARK SIGN": "(TM)",
    "SERVICE MARK": "(SM)",
    "DEGREE SIGN": "deg",
    "DEGREE CELSIUS": "degC",
    "DEGREE FAHRENHEIT": "degF",
    "MICRO SIGN": "u",
    "PLUS-MINUS SIGN": "+-",
    "MULTIPLICATION SIGN": "x",
    "DIVISION SIGN": "/",
    "SUPERSCRIPT ZERO": "^0",
    "SUPERSCRIPT ONE": "^1",
    "SUPERSCRIPT TWO": "^2",
    "SUPERSCRIPT THREE": "^3",
    "SUPERSCRIPT FOUR": "^4",
    "SUBSCRIPT ZERO": "_0",
    "SUBSCRIPT ONE": "_1",
    "SUBSCRIPT TWO": "_2",
    "SUBSCRIPT THREE": "_3",
    "NUMERO SIGN": "No.",
    "CARE OF": "c/o",
    "ESTIMATED SYMBOL": "e",
    "INFINITY": "inf",
    "ALMOST EQUAL TO": "~=",
    "NOT EQUAL TO": "!=",
    "LESS-THAN OR EQUAL TO": "<=",
    "GREATER-THAN OR EQUAL TO": ">=",
    "MUCH LESS-THAN": "<<",
    "MUCH GREATER-THAN": ">>",
    "SQUARE ROOT": "sqrt",
    "N-ARY SUMMATION": "SUM",
    "N-ARY PRODUCT": "PROD",
    "INCREMENT": "delta",
    "LEFTWARDS ARROW": "<-",
    "RIGHTWARDS ARROW": "->",
    "UPWARDS ARROW": "^",
    "DOWNWARDS ARROW": "v",
    "LEFT RIGHT ARROW": "<->",
    "LEFTWARDS DOUBLE ARROW": "<=",
    "RIGHTWARDS DOUBLE ARROW": "=>",
    "LEFT RIGHT DOUBLE ARROW": "<=>",
    "BLACK RIGHT-POINTING TRIANGLE": ">",
    "BLACK LEFT-POINTING TRIANGLE": "<",

    # Fractions
    "VULGAR FRACTION ONE QUARTER": "1/4",
    "VULGAR FRACTION ONE HALF": "1/2",
    "VULGAR FRACTION THREE QUARTERS": "3/4",
    "VULGAR FRACTION ONE THIRD": "1/3",
    "VULGAR FRACTION TWO THIRDS": "2/3",
    "VULGAR FRACTION ONE FIFTH": "1/5",
    "VULGAR FRACTION ONE SIXTH": "1/6",
    "VULGAR FRACTION ONE EIGHTH": "1/8",
    "VULGAR FRACTION THREE EIGHTHS": "3/8",
    "VULGAR FRACTION FIVE EIGHTHS": "5/8",
    "VULGAR FRACTION SEVEN EIGHTHS": "7/8",

    # Letters whose plain base letter would lose too much
    "LATIN CAPITAL LETTER A WITH DIAERESIS": "Ae",
    "LATIN CAPITAL LETTER O WITH DIAERESIS": "Oe",
    "LATIN CAPITAL LETTER U WITH DIAERESIS": "Ue",
    "LATIN SMALL LETTER A WITH DIAERESIS": "ae",
    "LATIN SMALL LETTER O WITH DIAERESIS": "oe",
    "LATIN SMALL LETTER U WITH DIAERESIS": "ue",
    "LATIN CAPITAL LETTER A WITH RING ABOVE": "Aa",
    "LATIN SMALL LETTER A WITH RING ABOVE": "aa",
    "LATIN CAPITAL LETTER O WITH STROKE": "Oe",
    "LATIN SMALL LETTER O WITH STROKE": "oe",
    "LATIN SMALL LETTER SHARP S": "ss",
    "LATIN CAPITAL LETTER SHARP S": "SS",
    "LATIN CAPITAL LETTER ETH": "D",
    "LATIN SMALL LETTER ETH": "d",
    "LATIN CAPITAL LETTER THORN": "Th",
    "LATIN SMALL LETTER THORN": "th",
    "LATIN CAPITAL LETTER D WITH STROKE": "D",
    "LATIN SMALL LETTER D WITH STROKE": "d",
    "LATIN CAPITAL LETTER L WITH STROKE": "L",
    "LATIN SMALL LETTER L WITH STROKE": "l",
    "LATIN SMALL LETTER DOTLESS I": "i",
    "LATIN CAPITAL LETTER I WITH DOT ABOVE": "I",
    "LATIN SMALL LETTER KRA": "q",
    "LATIN SMALL LETTER LONG S": "s",
    "LATIN CAPITAL LETTER ENG": "NG",
    "LATIN SMALL LETTER ENG": "ng",
    "LATIN SMALL LETTER N PRECEDED BY APOSTROPHE": "'n",

    # Ligatures
    "LATIN CAPITAL LETTER AE": "AE",
    "LATIN SMALL LETTER AE": "ae",
    "LATIN CAPITAL LIGATURE OE": "OE",
    "LATIN SMALL LIGATURE OE": "oe",
    "LATIN CAPITAL LIGATURE IJ": "IJ",
    "LATIN SMALL LIGATURE IJ": "ij",
    "LATIN SMALL LIGATURE FF": "ff",
    "LATIN SMALL LIGATURE FI": "fi",
    "LATIN SMALL LIGATURE FL": "fl",
    "LATIN SMALL LIGATURE FFI": "ffi",
    "LATIN SMALL LIGATURE FFL": "ffl",
    "LATIN SMALL LIGATURE LONG S T": "st",
    "LATIN SMALL LIGATURE ST": "st",

    # Dingbats
    "CHECK MARK": "v",
    "HEAVY CHECK MARK": "v",
    "BALLOT BOX": "[ ]",
    "BALLOT BOX WITH CHECK": "[v]",
    "BALLOT BOX WITH X": "[x]",
    "BALLOT X": "x",
    "HEAVY BALLOT X": "x",
    "MULTIPLICATION X": "x",
    "HEAVY MULTIPLICATION X": "x",
    "BLACK STAR": "*",
    "WHITE STAR": "*",
    "BLACK SQUARE": "#",
    "WHITE SQUARE": "[]",
    "BLACK CIRCLE": "o",
    "WHITE CIRCLE": "o",
    "BLACK DIAMOND": "<>",
    "WHITE DIAMOND": "<>",
    "LOZENGE": "<>",
    "BLACK SPADE SUIT": "spades",
    "BLACK CLUB SUIT": "clubs",
    "BLACK HEART SUIT": "hearts",
    "BLACK DIAMOND SUIT": "diamonds",
    "WHITE SMILING FACE": ":-)",
    "WHITE FROWNING FACE": ":-(",
    "BLACK TELEPHONE": "tel.",
    "TELEPHONE SIGN": "Tel.",
    "ENVELOPE": "email",
    "SCISSORS": "8<",
    "BLACK SCISSORS": "8<",
    "HEAVY WIDE-HEADED RIGHTWARDS ARROW": "->",
}

TRANSLITERATION_TABLE: Mapping[str, str] = MappingProxyType(_TABLE)

LATIN_SCRIPTS = frozenset({"LATIN"})
# Longest base letter word accepted: a single letter or a digraph like DZ
MAX_LATIN_LETTER_LENGTH = 2
PLACEHOLDER_SCRIPTS = frozenset({"ARABIC", "GREEK"})


def character_name(code_point: int) -> str:
    """Return the Unicode name of ``code_point`` or an empty string if it has none."""
    return unicodedata.name(chr(code_point), "")


def _parse_letter_name(name: str, scripts: frozenset) -> Optional[Tuple[bool, str]]:
    """Split ``<SCRIPT> [SMALL|CAPITAL] LETTER [qualifiers] <X> ...``.

    Qualifiers are ``FINAL``, ``SMALL CAPITAL`` and ``INVERTED``; anything after
    the letter word (``WITH ACUTE``, ...) is ignored.

    Returns:
        Tuple of (small, letter word) or None if the name has another shape
    """
    words = name.split()
    if len(words) < 3 or words[0] not in scripts:
        return None

    i = 1
    small = False
    if words[i] in ("SMALL", "CAPITAL"):
        small = words[i] == "SMALL"
        i += 1
    if i >= len(words) or words[i] != "LETTER":
        return None
    i += 1

    while i < len(words):
        if words[i] in ("FINAL", "INVERTED"):
            i += 1
        elif words[i:i + 2] == ["SMALL", "CAPITAL"]:
            i += 2
        else:
            break

    if i >= len(words) or words[i] == "WITH":
        return None
    return small, words[i]


def exact_name_rule(name: str) -> Optional[str]:
    """Look ``name`` up in the curated table."""
    return TRANSLITERATION_TABLE.get(name)


def latin_letter_rule(name: str) -> Optional[str]:
    """Reduce a Latin letter to its base letter, keeping case.

    Only single letters and digraphs such as ``DZ`` qualify; descriptive
    names like ``TURNED A`` or ``SCHWA`` are left to the placeholder.
    """
    parsed = _parse_letter_name(name, LATIN_SCRIPTS)
    if parsed is None:
        return None
    small, letter = parsed
    if len(letter) > MAX_LATIN_LETTER_LENGTH or not letter.isalpha():
        return None
    return letter.lower() if small else letter.upper()


def script_letter_rule(name: str) -> Optional[str]:
    """Spell out Greek and Arabic letters as ``-name-``."""
    parsed = _parse_letter_name(name, PLACEHOLDER_SCRIPTS)
    if parsed is None:
        return None
    small, letter = parsed
    return f"-{letter.lower() if small else letter.upper()}-"


# Tried in order until one returns a replacement
NAME_RULES: Tuple[NameRule, ...] = (
    exact_name_rule,
    latin_letter_rule,
    script_letter_rule,
)


@dataclass
class UnmappedCodePoint:
    """A code point that had no replacement.

    Attributes:
        code_point: Unicode code point value
        name: Unicode character name (empty if the code point has none)
        position: Code point offset in the input
    """
    code_point: int
    name: str
    position: int

    @property
    def hex(self) -> str:
        """Code point as lower case hex, at least four digits."""
        return f"{self.code_point:04x}"

    def log_line(self) -> str:
        """Diagnostic line for this code point."""
        return f"unknown {self.hex}='{self.name}'"


@dataclass
class TransliterationResult:
    """Result of transliterating one stream.

    Attributes:
        text: Transliterated text; empty when output went to a sink
        unmapped: Code points that fell through to the placeholder
        characters_processed: Number of code points read
        characters_replaced: Number of non-ASCII code points substituted
        metrics: Timing and throughput figures
    """
    text: str
    unmapped: List[UnmappedCodePoint] = field(default_factory=list)
    characters_processed: int = 0
    characters_replaced: int = 0
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)

    @property
    def diagnostics_log(self) -> str:
        """One ``unknown <hex>='<name>'`` line per unmapped code point."""
        return "".join(f"{entry.log_line()}\n" for entry in self.unmapped)

    @property
    def complete(self) -> bool:
        """Whether every code point had a replacement."""
        return not self.unmapped


class CodepointTransliterator:
    """Transliterate UTF-8 input to ASCII, one code point at a time.

    The built-in table and rules are immutable, so one instance may be shared
    between threads; each ``transliterate()`` call keeps its own log.
    """

    def __init__(
        self,
        config: Optional[TransliterationConfig] = None,
        correlation_id: Optional[str] = None,
    ) -> None:
        """Initialize transliterator with configuration.

        Args:
            config: Transliteration configuration (uses default if None)
            correlation_id: Optional correlation ID for log records
        """
        self.config = config or TransliterationConfig()
        self._custom_mappings = MappingProxyType(dict(self.config.custom_mappings))
        self._cache: Dict[int, Optional[str]] = {}
        self._logger = get_logger(__name__, correlation_id, "transliterator")

    def replacement_for(self, code_point: int) -> Optional[str]:
        """Return the replacement for ``code_point`` or None if it is unmapped."""
        if code_point < ASCII_MAX:
            return chr(code_point)

        if code_point in self._cache:
            return self._cache[code_point]

        name = character_name(code_point)
        replacement = self._custom_mappings.get(name)
        if replacement is None:
            for rule in NAME_RULES:
                replacement = rule(name)
                if replacement is not None:
                    break

        if len(self._cache) < CACHE_SIZE_LIMIT:
            self._cache[code_point] = replacement
        return replacement

    def transliterate_char(self, char: str) -> str:
        """Transliterate a single character, using the placeholder if unmapped."""
        code_point = ord(char)
        replacement = self.replacement_for(code_point)
        if replacement is None:
            return self._placeholder(code_point, character_name(code_point))
        return replacement

    def transliterate(
        self,
        source: Union[str, InputType],
        sink: Optional[TextIO] = None,
    ) -> TransliterationResult:
        """Transliterate a UTF-8 byte source (or already decoded text).

        Args:
            source: UTF-8 byte source or ``str``
            sink: Optional text stream receiving the output; when given,
                ``result.text`` stays empty

        Returns:
            TransliterationResult with output text and unmapped code points

        Raises:
            UnreadableSourceError: If reading the source fails; ``partial``
                holds the text produced so far, or ``""`` when a ``sink`` was
                given, since that text has already been written to it
        """
        start_time = time.perf_counter()
        result = TransliterationResult(text="")
        pieces: List[str] = []
        bytes_processed = 0

        try:
            for text, byte_count in self._decoded_chunks(source):
                bytes_processed += byte_count
                converted = self._convert(text, result)
                if sink is not None:
                    sink.write(converted)
                else:
                    pieces.append(converted)
        except UnreadableSourceError:
            raise
        except OSError as e:
            label = describe_source(source)
            self._logger.error(
                "Byte source failed during transliteration",
                extra={"source": label, "characters_processed": result.characters_processed},
            )
            raise UnreadableSourceError(
                f"Could not read {label}: {e}", partial="".join(pieces)
            ) from e

        result.text = "".join(pieces)
        result.metrics = PerformanceMetrics(
            processing_time_ms=(time.perf_counter() - start_time) * 1000.0,
            bytes_processed=bytes_processed,
            characters_processed=result.characters_processed,
        )
        return result

    def _decoded_chunks(
        self, source: Union[str, InputType]
    ) -> Iterator[Tuple[str, int]]:
        """Yield (text, source byte count) pairs in stream order."""
        if isinstance(source, str):
            yield source, len(source.encode("utf-8", errors="surrogatepass"))
            return

        # Sequences split across chunk boundaries are held back by the decoder
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        for chunk in iter_chunks(source, self.config.chunk_size):
            yield decoder.decode(chunk), len(chunk)
        tail = decoder.decode(b"", final=True)
        if tail:
            yield tail, 0

    def _convert(self, text: str, result: TransliterationResult) -> str:
        """Convert decoded text and update counters on ``result``."""
        position = result.characters_processed
        result.characters_processed += len(text)

        if self.config.target == "utf8" or text.isascii():
            return text

        out: List[str] = []
        for offset, char in enumerate(text):
            code_point = ord(char)
            if code_point < ASCII_MAX:
                out.append(char)
                continue

            replacement = self.replacement_for(code_point)
            if replacement is None:
                name = character_name(code_point)
                replacement = self._placeholder(code_point, name)
                self._record_unmapped(
                    result, UnmappedCodePoint(code_point, name, position + offset)
                )
            result.characters_replaced += 1
            out.append(replacement)

        return "".join(out)

    def _placeholder(self, code_point: int, name: str) -> str:
        return self.config.placeholder_format.format(
            hex=f"{code_point:04x}", code_point=code_point, name=name
        )

    def _record_unmapped(
        self, result: TransliterationResult, entry: UnmappedCodePoint
    ) -> None:
        result.unmapped.append(entry)
        if self.config.log_unmapped:
            self._logger.warning(
                entry.log_line(),
                extra={"code_point": entry.code_point, "position": entry.position},
            )


def utf8toascii(
    source: Union[str, InputType],
    sink: Optional[TextIO] = None,
    config: Optional[TransliterationConfig] = None,
) -> TransliterationResult:
    """Transliterate UTF-8 input to ASCII.

    Example:
        >>> utf8toascii(b"J\\xc3\\xbcrgen").text
        'Juergen'
    """
    return CodepointTransliterator(config).transliterate(source, sink)
