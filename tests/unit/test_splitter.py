"""
Unit tests for the record splitter.
"""

import hashlib
import random

import pytest

from hashserver.digest import HashlibDigest, hex_encode
from hashserver.protocol.splitter import RecordSplitter, hash_records

from support import ABC_DIGEST, CRLF_DIGESTS, CRLF_RECORDS, LF_DIGESTS, LF_RECORDS


class RecordingDigest(HashlibDigest):
    """SHA-256 engine that remembers every range it was fed."""

    def __init__(self):
        super().__init__("sha256")
        self.fed: list[bytes] = []

    def update(self, data):
        self.fed.append(bytes(data))
        super().update(data)


def feed_in_chunks(splitter: RecordSplitter, data: bytes, sizes) -> bytes:
    """Feed data using the given chunk sizes, then signal end of stream."""
    output = bytearray()
    offset = 0
    for size in sizes:
        output += splitter.feed(data[offset:offset + size])
        offset += size
    assert offset == len(data)
    output += splitter.feed(b"", end_of_stream=True)
    return bytes(output)


def random_partition(length: int, rng: random.Random) -> list[int]:
    sizes = []
    while length:
        size = rng.randint(1, min(length, 17))
        sizes.append(size)
        length -= size
    return sizes


class TestRecordSplitter:
    """Tests for RecordSplitter.feed()."""

    def test_single_record(self):
        """Test one complete record in one chunk."""
        splitter = RecordSplitter()
        output = splitter.feed(b"1\r\n")

        assert output == CRLF_DIGESTS[0].encode() + b"\n"
        assert splitter.records == 1
        assert splitter.pending_bytes == 0

    def test_several_records_in_one_chunk(self):
        """Test that every record in a chunk gets its own line, in order."""
        splitter = RecordSplitter()
        output = splitter.feed(CRLF_RECORDS)

        assert output.decode().splitlines() == CRLF_DIGESTS

    def test_newline_is_hashed(self):
        """Test that the terminating newline is part of the digest."""
        output = RecordSplitter().feed(b"abc\n")
        expected = hashlib.sha256(b"abc\n").hexdigest().upper()

        assert output == expected.encode() + b"\n"
        assert expected != ABC_DIGEST

    def test_crlf_and_lf_differ(self):
        """Test that a carriage return is payload, not stripped."""
        assert hash_records(CRLF_RECORDS) == CRLF_DIGESTS
        assert hash_records(LF_RECORDS) == LF_DIGESTS
        assert CRLF_DIGESTS != LF_DIGESTS

    def test_partial_record_is_carried(self):
        """Test that bytes without a newline produce no output yet."""
        splitter = RecordSplitter()

        assert splitter.feed(b"33") == b""
        assert splitter.pending_bytes == 2
        assert splitter.feed(b"3\r") == b""
        assert splitter.pending_bytes == 4

        output = splitter.feed(b"\n44")
        assert output.decode().splitlines() == [CRLF_DIGESTS[2]]
        assert splitter.pending_bytes == 2

    def test_record_split_across_one_byte_reads(self):
        """Test a record delivered in three 1-byte reads."""
        splitter = RecordSplitter()

        assert splitter.feed(b"1") == b""
        assert splitter.feed(b"\r") == b""
        output = splitter.feed(b"\n")

        assert output == RecordSplitter().feed(b"1\r\n")

    def test_flush_on_close(self):
        """Test that an unterminated tail is answered at end of stream."""
        splitter = RecordSplitter()

        assert splitter.feed(b"abc") == b""
        output = splitter.feed(b"", end_of_stream=True)

        assert output == ABC_DIGEST.encode() + b"\n"
        assert splitter.finished

    def test_tail_and_end_of_stream_in_same_chunk(self):
        """Test a final chunk that carries both data and end of stream."""
        output = RecordSplitter().feed(b"1\r\nabc", end_of_stream=True)

        assert output.decode().splitlines() == [CRLF_DIGESTS[0], ABC_DIGEST]

    def test_no_extra_record_after_trailing_newline(self):
        """Test that a stream ending in a newline gets no empty final record."""
        splitter = RecordSplitter()
        splitter.feed(LF_RECORDS)

        assert splitter.feed(b"", end_of_stream=True) == b""
        assert splitter.records == 4

    def test_empty_stream_produces_nothing(self):
        """Test a connection that closes without sending anything."""
        splitter = RecordSplitter()

        assert splitter.feed(b"", end_of_stream=True) == b""
        assert splitter.records == 0

    def test_zero_length_chunk(self):
        """Test that an empty read without end of stream is a no-op."""
        splitter = RecordSplitter()
        splitter.feed(b"12")

        assert splitter.feed(b"") == b""
        assert splitter.pending_bytes == 2
        assert splitter.records == 0

    def test_empty_records(self):
        """Test that a bare newline is a record of its own."""
        output = RecordSplitter().feed(b"\n\n")
        expected = hashlib.sha256(b"\n").hexdigest().upper()

        assert output.decode().splitlines() == [expected, expected]

    def test_accepts_memoryview(self):
        """Test feeding a slice of a reused read buffer."""
        buffer = bytearray(b"1\r\n22\r\n....")
        output = RecordSplitter().feed(memoryview(buffer)[:7])

        assert output.decode().splitlines() == CRLF_DIGESTS[:2]

    def test_feed_after_end_of_stream_fails(self):
        """Test that a finished splitter refuses more data."""
        splitter = RecordSplitter()
        splitter.feed(b"", end_of_stream=True)

        with pytest.raises(ValueError):
            splitter.feed(b"more")

    def test_other_algorithm(self):
        """Test that the digest engine is pluggable."""
        splitter = RecordSplitter(HashlibDigest("md5"))
        splitter.feed(b"abc")
        output = splitter.feed(b"", end_of_stream=True)

        assert output == b"900150983CD24FB0D6963F7D28E17F72\n"


class TestSplitterProperties:
    """Stream-level properties that must hold for any chunking."""

    @pytest.mark.parametrize("seed", range(5))
    def test_byte_coverage(self, seed: int):
        """Test that fed ranges rebuild the input exactly once each."""
        rng = random.Random(seed)
        data = bytes(rng.choice(b"ab\r\n") for _ in range(500)) + b"tail"

        digest = RecordingDigest()
        splitter = RecordSplitter(digest)
        feed_in_chunks(splitter, data, random_partition(len(data), rng))

        assert b"".join(digest.fed) == data
        assert splitter.bytes_fed == len(data)

    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 5, 7, 64, 2048])
    def test_chunking_does_not_change_output(self, chunk_size: int):
        """Test determinism across chunk sizes."""
        data = LF_RECORDS * 64 + b"no newline at the end"

        assert hash_records(data, chunk_size=chunk_size) == hash_records(data)

    def test_random_partitions_match(self):
        """Test arbitrary, uneven chunk boundaries."""
        rng = random.Random(42)
        data = CRLF_RECORDS * 50
        reference = hash_records(data)

        for _ in range(10):
            splitter = RecordSplitter()
            output = feed_in_chunks(splitter, data, random_partition(len(data), rng))
            assert output.decode().splitlines() == reference

    def test_each_digest_covers_exactly_its_record(self):
        """Test digests against records hashed independently."""
        data = b"first\r\nsecond\n\nfourth without newline"
        records = [b"first\r\n", b"second\n", b"\n", b"fourth without newline"]
        expected = [hashlib.sha256(r).hexdigest().upper() for r in records]

        assert hash_records(data, chunk_size=3) == expected

    def test_repeated_fixture_with_small_and_large_buffers(self):
        """Test the 4096x fixture through 1-byte and 2048-byte reads."""
        data = LF_RECORDS * 4096

        one_byte = hash_records(data, chunk_size=1)
        large = hash_records(data, chunk_size=2048)

        assert one_byte == large
        assert len(one_byte) == 4 * 4096
        assert one_byte[:4] == LF_DIGESTS
        assert one_byte[-4:] == LF_DIGESTS


class TestHashRecords:
    """Tests for the hash_records() helper."""

    def test_empty_input(self):
        assert hash_records(b"") == []

    def test_unterminated_input(self):
        assert hash_records(b"abc") == [ABC_DIGEST]

    def test_matches_hex_encode(self):
        """Test that lines are uppercase hex of the raw digest."""
        raw = hashlib.sha256(b"1\r\n").digest()
        assert hash_records(b"1\r\n") == [hex_encode(raw)]
