"""Tests for incremental CRLF line framing."""

import random

import pytest

from gateway.framer import FrameOverflowError, LineFramer


class TestLineFramerBasics:
    """Single-feed behavior."""

    def test_single_complete_line(self):
        framer = LineFramer()
        assert list(framer.feed(b"$PCONTROL,fan,1\r\n")) == [b"$PCONTROL,fan,1"]
        assert framer.remainder == b""

    def test_multiple_lines_in_one_feed(self):
        framer = LineFramer()
        lines = list(framer.feed(b"a\r\nb\r\nc\r\n"))
        assert lines == [b"a", b"b", b"c"]

    def test_trailing_partial_is_buffered(self):
        framer = LineFramer()
        assert list(framer.feed(b"one\r\ntw")) == [b"one"]
        assert framer.remainder == b"tw"

    def test_no_delimiter_yields_nothing(self):
        framer = LineFramer()
        assert list(framer.feed(b"$SMSSEND,1")) == []
        assert framer.remainder == b"$SMSSEND,1"

    def test_empty_line(self):
        framer = LineFramer()
        assert list(framer.feed(b"\r\n")) == [b""]

    def test_bare_lf_is_not_a_delimiter(self):
        framer = LineFramer()
        assert list(framer.feed(b"abc\n")) == []
        assert framer.remainder == b"abc\n"

    def test_custom_delimiter(self):
        framer = LineFramer(delimiter=b"\n")
        assert list(framer.feed(b"x\ny\n")) == [b"x", b"y"]

    def test_empty_delimiter_rejected(self):
        with pytest.raises(ValueError):
            LineFramer(delimiter=b"")


class TestLineFramerAcrossFeeds:
    """Lines split over several reads."""

    def test_line_completed_by_second_feed(self):
        framer = LineFramer()
        assert list(framer.feed(b"$PCON")) == []
        assert list(framer.feed(b"TROL,fan,0\r\n")) == [b"$PCONTROL,fan,0"]

    def test_delimiter_split_between_feeds(self):
        framer = LineFramer()
        assert list(framer.feed(b"hello\r")) == []
        assert list(framer.feed(b"\nworld")) == [b"hello"]
        assert framer.remainder == b"world"

    def test_unconsumed_lines_carry_over(self):
        """Lines not pulled from one iterator come out of the next, in order."""
        framer = LineFramer()
        it = framer.feed(b"a\r\nb\r\n")
        assert next(it) == b"a"
        assert list(framer.feed(b"c\r\n")) == [b"b", b"c"]

    def test_data_buffered_without_iterating(self):
        framer = LineFramer()
        framer.feed(b"abc")
        assert framer.remainder == b"abc"

    def test_reset_discards_buffer(self):
        framer = LineFramer()
        framer.feed(b"partial")
        framer.reset()
        assert framer.remainder == b""


class TestChunkingPreservesBytes:
    """Arbitrary chunk boundaries never lose or duplicate data."""

    MESSAGE = (
        b"$PCONTROL,fan,1\r\n$SMSSEND,7,+351900000,hello,30\r\n"
        b"\r\ngarbage\r\n$PCONTROL,heater,0\r\ntrailing"
    )

    @pytest.mark.parametrize("seed", range(20))
    def test_random_chunks(self, seed):
        rng = random.Random(seed)
        framer = LineFramer()
        lines = []
        pos = 0
        while pos < len(self.MESSAGE):
            step = rng.randint(1, 9)
            lines.extend(framer.feed(self.MESSAGE[pos:pos + step]))
            pos += step

        expected = self.MESSAGE.split(b"\r\n")
        assert lines == expected[:-1]
        assert framer.remainder == expected[-1]

    def test_byte_at_a_time(self):
        framer = LineFramer()
        lines = []
        for i in range(len(self.MESSAGE)):
            lines.extend(framer.feed(self.MESSAGE[i:i + 1]))
        assert b"\r\n".join(lines) + b"\r\n" + framer.remainder == self.MESSAGE


class TestOverflowLimit:
    """Optional cap on undelimited data."""

    def test_unbounded_by_default(self):
        framer = LineFramer()
        framer.feed(b"x" * 100_000)
        assert len(framer.remainder) == 100_000

    def test_overflow_raises(self):
        framer = LineFramer(max_buffer_size=8)
        with pytest.raises(FrameOverflowError):
            list(framer.feed(b"123456789"))
        assert framer.remainder == b""

    def test_lines_before_overflow_are_kept(self):
        """Complete lines ahead of an oversized tail still come out, then the error."""
        framer = LineFramer(max_buffer_size=16)
        it = framer.feed(b"$PCONTROL,fan,1\r\n" + b"x" * 20)
        assert framer.remainder == b"$PCONTROL,fan,1\r\n"
        assert next(it) == b"$PCONTROL,fan,1"
        with pytest.raises(FrameOverflowError):
            next(it)
        assert framer.remainder == b""

    def test_overflow_reported_once(self):
        framer = LineFramer(max_buffer_size=4)
        with pytest.raises(FrameOverflowError):
            list(framer.feed(b"abcdefgh"))
        assert list(framer.feed(b"ok\r\n")) == [b"ok"]

    def test_complete_lines_do_not_count(self):
        """Only the tail after the last delimiter is limited."""
        framer = LineFramer(max_buffer_size=8)
        lines = list(framer.feed(b"0123456789ABCDEF\r\nabc"))
        assert lines == [b"0123456789ABCDEF"]
        assert framer.remainder == b"abc"

    def test_at_limit_is_allowed(self):
        framer = LineFramer(max_buffer_size=8)
        framer.feed(b"12345678")
        assert framer.remainder == b"12345678"
