"""Comprehensive tests for the byte-level encoding prober."""

import io
import logging

import pytest

from guess_encoding.character.encoding import (
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
from guess_encoding.character.source import UnreadableSourceError
from guess_encoding.shared.config import ProbeConfig


def counts(result: ProbeResult) -> tuple:
    """Return (utf8_valid, utf8_invalid, latin1_typical, ascii)."""
    c = result.counters
    return (c.utf8_valid, c.utf8_invalid, c.latin1_typical, c.ascii)


class FailingReader:
    """Binary reader that fails after handing out its data once."""

    name = "failing.bin"

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.calls = 0

    def read(self, size: int = -1) -> bytes:
        self.calls += 1
        if self.calls == 1:
            return self.data
        raise OSError("device went away")


class TestTypicalLatin1:
    """Test the typical Latin-1 byte set."""

    def test_is_immutable(self):
        """Test that the set cannot be modified."""
        assert isinstance(TYPICAL_LATIN1, frozenset)

    def test_membership(self):
        """Test representative members and non-members."""
        for value in (0xA9, 0xAB, 0xBB, 0xC4, 0xD6, 0xDC, 0xDF, 0xE4, 0xF6, 0xFC, 0xA4):
            assert value in TYPICAL_LATIN1

        for value in (0x41, 0x80, 0xA0, 0xC6, 0xDD, 0xDE, 0xF7, 0xF8, 0xFE, 0xFF):
            assert value not in TYPICAL_LATIN1

    def test_range(self):
        """Test that all members are in the 128..255 range."""
        assert all(128 <= value <= 255 for value in TYPICAL_LATIN1)


class TestUTF8DecodeState:
    """Test the multi-byte sequence state."""

    def test_initial_state_is_empty(self):
        """Test that a new state is outside any sequence."""
        state = UTF8DecodeState()
        assert not state.active
        assert (state.remaining, state.size, state.lead) == (0, 0, 0)

    def test_start_and_reset(self):
        """Test entering and leaving a sequence."""
        state = UTF8DecodeState()
        state.start(0xE2, 3)

        assert state.active
        assert state.remaining == 2
        assert state.consumed == 1
        assert state.lead == 0xE2

        state.reset()
        assert not state.active
        assert state.consumed == 0


class TestDeriveVerdict:
    """Test verdict derivation from counters."""

    def test_all_zero_is_ascii(self):
        """Test that no non-ASCII events means ASCII."""
        assert derive_verdict(ProbeCounters(ascii=10)) == EncodingVerdict.ASCII
        assert derive_verdict(ProbeCounters()) == EncodingVerdict.ASCII

    def test_only_valid_is_utf8(self):
        """Test that only valid sequences means UTF-8."""
        assert derive_verdict(ProbeCounters(utf8_valid=3, ascii=5)) == EncodingVerdict.UTF8

    def test_only_suspicious_is_latin1(self):
        """Test that invalid or Latin-1 bytes without valid UTF-8 means Latin-1."""
        assert derive_verdict(ProbeCounters(latin1_typical=2)) == EncodingVerdict.LATIN1
        assert derive_verdict(ProbeCounters(utf8_invalid=1)) == EncodingVerdict.LATIN1
        assert derive_verdict(
            ProbeCounters(utf8_invalid=1, latin1_typical=4, ascii=9)
        ) == EncodingVerdict.LATIN1

    def test_valid_with_suspicious_is_mixed(self):
        """Test that valid UTF-8 plus anything suspicious is a mixture."""
        assert derive_verdict(
            ProbeCounters(utf8_valid=1, latin1_typical=1)
        ) == EncodingVerdict.MIXED
        assert derive_verdict(
            ProbeCounters(utf8_valid=1, utf8_invalid=1)
        ) == EncodingVerdict.MIXED


class TestAsciiClassification:
    """Test classification of plain ASCII input."""

    def test_printable_ascii(self):
        """Test that bytes 8..127 are all counted as ASCII."""
        data = bytes(range(8, 128))
        result = probe_bytes(data)

        assert counts(result) == (0, 0, 0, len(data))
        assert result.verdict == EncodingVerdict.ASCII

    def test_text(self):
        """Test a typical ASCII line."""
        result = probe_bytes(b"Hello, world!\r\n\t")
        assert counts(result) == (0, 0, 0, 16)

    def test_empty_input(self):
        """Test that an empty stream is plain ASCII with zero counters."""
        result = probe_bytes(b"")

        assert counts(result) == (0, 0, 0, 0)
        assert result.verdict == EncodingVerdict.ASCII
        assert result.bytes_consumed == 0

    def test_control_bytes_are_ascii_by_default(self):
        """Test that bytes 0..7 count as ASCII with the default lower bound."""
        result = probe_bytes(b"\x00\x01\x07")
        assert counts(result) == (0, 0, 0, 3)

    def test_control_bytes_are_invalid_in_legacy_mode(self):
        """Test that bytes 0..7 count as invalid with the legacy lower bound."""
        result = probe_bytes(b"\x00\x01\x07a", config=ProbeConfig.legacy())
        assert counts(result) == (0, 3, 0, 1)
        assert result.verdict == EncodingVerdict.LATIN1


class TestUTF8Classification:
    """Test classification of well-formed UTF-8."""

    def test_two_byte_sequence_followed_by_ascii(self):
        """Test C3 BC 75: one valid sequence and one ASCII byte."""
        result = probe_bytes(b"\xc3\xbc\x75")

        assert counts(result) == (1, 0, 0, 1)
        assert result.verdict == EncodingVerdict.UTF8

    def test_sequences_of_every_length(self):
        """Test 2-, 3- and 4-byte sequences."""
        text = "Jürgen Größe 20€ 😀"
        result = probe_bytes(text.encode("utf-8"))

        non_ascii = sum(1 for char in text if ord(char) >= 128)
        ascii_count = len(text) - non_ascii

        assert counts(result) == (non_ascii, 0, 0, ascii_count)
        assert result.verdict == EncodingVerdict.UTF8

    def test_multibyte_only(self):
        """Test that utf8_valid equals the number of multi-byte characters."""
        text = "äöüßéèêœ€✓"
        result = probe_bytes(text.encode("utf-8"))
        assert counts(result) == (len(text), 0, 0, 0)

    def test_chunk_boundaries_do_not_matter(self):
        """Test that sequences split across feed() calls are still recognized."""
        data = "ü€😀x".encode("utf-8")
        prober = EncodingProber()
        for value in data:
            prober.feed(bytes([value]))

        assert counts(prober.close()) == counts(probe_bytes(data))


class TestLatin1Classification:
    """Test classification of Latin-1 and broken UTF-8."""

    def test_typical_byte_followed_by_space(self):
        """Test FC 20: 0xFC is no lead byte, 0x20 is above the ASCII lower bound."""
        result = probe_bytes(b"\xfc\x20")

        assert counts(result) == (0, 0, 1, 1)
        assert result.verdict == EncodingVerdict.LATIN1

    def test_typical_byte_followed_by_space_legacy(self):
        """Test that FC 20 is classified the same with the legacy lower bound."""
        result = probe_bytes(b"\xfc\x20", config=ProbeConfig.legacy())
        assert counts(result) == (0, 0, 1, 1)

    def test_two_typical_bytes(self):
        """Test E4 F6 (a-umlaut, o-umlaut): a lead byte broken by another Latin-1 byte."""
        result = probe_bytes(b"\xe4\xf6")

        assert counts(result) == (0, 0, 2, 0)
        assert result.verdict == EncodingVerdict.LATIN1

    def test_typical_lead_followed_by_ascii(self):
        """Test E4 20: Latin-1 lead byte followed by genuine ASCII."""
        result = probe_bytes(b"\xe4 ")
        assert counts(result) == (0, 0, 1, 1)

    def test_latin1_sentence(self):
        """Test a German sentence encoded as Latin-1."""
        data = "Grüße aus Köln".encode("latin-1")
        result = probe_bytes(data)

        assert counts(result) == (0, 0, 3, 11)
        assert result.verdict == EncodingVerdict.LATIN1

    def test_typical_lead_broken_by_untypical_byte(self):
        """Test E4 FE: neither interpretation fits, FE is then classified alone."""
        result = probe_bytes(b"\xe4\xfe")
        assert counts(result) == (0, 2, 0, 0)

    def test_untypical_lead_broken_by_ascii(self):
        """Test C6 41: invalid sequence, the ASCII byte is still counted."""
        result = probe_bytes(b"\xc6\x41")
        assert counts(result) == (0, 1, 0, 1)

    def test_breaking_byte_can_start_new_sequence(self):
        """Test E4 DD A9: DD breaks the first sequence and starts a valid one."""
        result = probe_bytes(b"\xe4\xdd\xa9")

        assert counts(result) == (1, 1, 0, 0)
        assert result.verdict == EncodingVerdict.MIXED

    def test_typical_breaking_byte_is_consumed(self):
        """Test E4 C3 BC: C3 pairs with E4 as Latin-1, leaving BC on its own."""
        result = probe_bytes(b"\xe4\xc3\xbc")
        assert counts(result) == (0, 1, 2, 0)

    def test_break_after_second_byte(self):
        """Test E2 82 41: a 3-byte sequence broken at its third byte."""
        result = probe_bytes(b"\xe2\x82\x41")
        assert counts(result) == (0, 1, 0, 1)

    def test_stray_continuation_byte(self):
        """Test that a lone continuation byte is invalid unless typical Latin-1."""
        assert counts(probe_bytes(b"\x80")) == (0, 1, 0, 0)
        assert counts(probe_bytes(b"\xa9")) == (0, 0, 1, 0)

    def test_mixed_stream(self):
        """Test UTF-8 and Latin-1 renditions of the same word in one stream."""
        data = "Jürgen".encode("utf-8") + b" " + "Jürgen".encode("latin-1")
        result = probe_bytes(data)

        assert counts(result) == (1, 0, 1, 11)
        assert result.verdict == EncodingVerdict.MIXED


class TestTruncatedStream:
    """Test end-of-stream inside a multi-byte sequence."""

    def test_truncated_sequence_counted_as_invalid(self):
        """Test that an open sequence at end of stream counts as one invalid event."""
        result = probe_bytes(b"abc\xc3")

        assert counts(result) == (0, 1, 0, 3)
        assert result.truncated
        assert len(result.diagnostics) == 1
        assert result.diagnostics[0].details["lead"] == 0xC3

    def test_truncated_three_byte_sequence(self):
        """Test that a partial 3-byte sequence counts as a single event."""
        result = probe_bytes(b"\xe2\x82")
        assert counts(result) == (0, 1, 0, 0)

    def test_truncated_sequence_dropped_in_legacy_mode(self):
        """Test that legacy mode drops the partial sequence."""
        result = probe_bytes(b"abc\xc3", config=ProbeConfig.legacy())

        assert counts(result) == (0, 0, 0, 3)
        assert result.truncated

    def test_complete_stream_not_truncated(self):
        """Test that a complete stream is not flagged."""
        result = probe_bytes(b"abc\xc3\xbc")

        assert not result.truncated
        assert result.diagnostics == []


class TestEncodingProber:
    """Test the incremental prober interface."""

    def test_feed_returns_accepted_count(self):
        """Test that feed() reports how many bytes it classified."""
        prober = EncodingProber()
        assert prober.feed(b"abc") == 3
        assert prober.bytes_consumed == 3

    def test_feed_accepts_int_iterables(self):
        """Test that feed() accepts any iterable of byte values."""
        prober = EncodingProber()
        prober.feed([0xC3, 0xBC])
        assert prober.counters.utf8_valid == 1

    def test_feed_after_close_raises(self):
        """Test that a closed prober rejects more data."""
        prober = EncodingProber()
        prober.close()

        assert prober.closed
        with pytest.raises(ValueError, match="closed"):
            prober.feed(b"a")

    def test_close_twice_raises(self):
        """Test that close() can only be called once."""
        prober = EncodingProber()
        prober.close()

        with pytest.raises(ValueError, match="already closed"):
            prober.close()

    def test_result_counters_are_a_snapshot(self):
        """Test that the returned counters are independent of the prober."""
        prober = EncodingProber()
        prober.feed(b"a")
        result = prober.close()
        prober.counters.ascii = 99

        assert result.counters.ascii == 1

    def test_max_bytes_limit(self):
        """Test that probing stops at the configured byte limit."""
        prober = EncodingProber(ProbeConfig(max_bytes=3))

        assert prober.feed(b"abcdef") == 3
        assert prober.feed(b"ghi") == 0

        result = prober.close()
        assert result.limit_reached
        assert result.bytes_consumed == 3
        assert counts(result) == (0, 0, 0, 3)

    def test_max_bytes_splitting_a_sequence(self):
        """Test that a sequence cut by the limit is flagged but not counted."""
        result = probe_bytes("aü".encode("utf-8"), config=ProbeConfig(max_bytes=2))

        assert result.truncated
        assert result.limit_reached
        assert counts(result) == (0, 0, 0, 1)
        assert result.verdict == EncodingVerdict.ASCII
        assert result.diagnostics[0].details["counted"] is False

    def test_max_bytes_keeps_utf8_verdict(self):
        """Test that a limit falling inside a sequence keeps a UTF-8 verdict."""
        data = "ü€".encode("utf-8")
        for limit in range(3, len(data)):
            result = probe_bytes(data, config=ProbeConfig(max_bytes=limit))

            assert result.counters.utf8_invalid == 0
            assert result.verdict == EncodingVerdict.UTF8

    def test_max_bytes_through_chunked_reads(self):
        """Test a limit that falls on a chunk boundary inside a sequence."""
        result = probe_file(
            io.BytesIO("aü".encode("utf-8")),
            config=ProbeConfig(max_bytes=2, chunk_size=2),
        )

        assert result.limit_reached
        assert counts(result) == (0, 0, 0, 1)

    def test_idempotence(self):
        """Test that probing the same data twice gives identical counters."""
        data = b"J\xc3\xbcrgen \xfc\xe4\xf6 \xe2\x82"
        first = probe_bytes(data)
        second = probe_bytes(data)

        assert first.counters == second.counters
        assert first.verdict == second.verdict

    def test_event_accounting(self):
        """Test that every byte event is counted exactly once."""
        # ascii: a, b; valid: C3 BC; latin1 pair: E4 F6; invalid: FE
        result = probe_bytes(b"a\xc3\xbc\xe4\xf6\xfeb")

        assert counts(result) == (1, 1, 2, 2)
        assert result.counters.total_events == 6
        assert result.bytes_consumed == 7

    def test_debug_logging(self, caplog):
        """Test that probing start and end are logged at debug level."""
        with caplog.at_level(logging.DEBUG, logger="guess_encoding.character.encoding"):
            probe_bytes(b"abc", name="sample")

        messages = [record.getMessage() for record in caplog.records]
        assert "Probing started" in messages
        assert "Probing finished" in messages
        assert all(record.component == "encoding_prober" for record in caplog.records)


class TestProbeResult:
    """Test probe result rendering."""

    def test_report_format(self):
        """Test the one-line report."""
        result = probe_bytes(b"\xc3\xbc\x75", name="sample.txt")
        assert result.report() == (
            "sample.txt: utf8_valid=1 utf8_invalid=0 latin1_typ=0 ascii=1"
        )

    def test_to_dict(self):
        """Test dictionary conversion."""
        data = probe_bytes(b"\xfc ", name="x").to_dict()

        assert data["name"] == "x"
        assert data["verdict"] == "latin-1"
        assert data["counters"] == {
            "utf8_valid": 0, "utf8_invalid": 0, "latin1_typical": 1, "ascii": 1
        }
        assert data["bytes_consumed"] == 2


class TestProbeFile:
    """Test probing of different byte sources."""

    def test_binary_file(self, tmp_path):
        """Test probing a real file uses its path as the name."""
        path = tmp_path / "mail.txt"
        path.write_bytes("Grüße\n".encode("utf-8"))

        with path.open("rb") as fd:
            result = probe_file(fd)

        assert result.name == str(path)
        assert counts(result) == (2, 0, 0, 4)

    def test_bytes_io_small_chunks(self):
        """Test that a tiny chunk size gives the same result."""
        data = "Jürgen 😀".encode("utf-8")
        result = probe_file(io.BytesIO(data), config=ProbeConfig(chunk_size=1))

        assert result.name == "<stream>"
        assert counts(result) == (2, 0, 0, 6)

    def test_chunk_iterable(self):
        """Test probing an iterable of byte chunks."""
        result = probe_file([b"\xc3", b"\xbc", b"u"], name="chunks")
        assert counts(result) == (1, 0, 0, 1)

    def test_text_source_rejected(self):
        """Test that text-mode sources raise TypeError."""
        with pytest.raises(TypeError):
            probe_file(io.StringIO("text"))

        with pytest.raises(TypeError):
            probe_file("text")

    def test_unreadable_source(self):
        """Test that read failures propagate with partial counters."""
        reader = FailingReader(b"ab\xc3\xbc")

        with pytest.raises(UnreadableSourceError) as exc_info:
            probe_file(reader, config=ProbeConfig(chunk_size=4))

        error = exc_info.value
        assert isinstance(error, OSError)
        assert isinstance(error.__cause__, OSError)
        assert "failing.bin" in str(error)
        assert error.partial.ascii == 2
        assert error.partial.utf8_valid == 1
