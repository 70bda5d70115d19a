import itertools

import pytest

from atom_builders import split_at, split_every, zero_stream
from qtatoms.domain.exceptions import StreamEndedError
from qtatoms.services import byte_reader as byte_reader_module
from qtatoms.services.byte_reader import ChunkedByteReader

DATA = bytes(range(7))


def all_chunkings(data):
    """Every way of cutting `data` into non-empty consecutive chunks."""
    positions = range(1, len(data))
    for count in range(len(data)):
        for cuts in itertools.combinations(positions, count):
            yield split_at(data, cuts)


@pytest.mark.parametrize("chunk_size", [1, 2, 3, 5, 100])
def test_read_bytes_spans_chunk_boundaries(chunk_size):
    data = bytes(range(20))
    reader = ChunkedByteReader(split_every(data, chunk_size))

    assert reader.read_bytes(4) == data[:4]
    assert reader.read_bytes(9) == data[4:13]
    assert reader.read_bytes(7) == data[13:]
    assert reader.position == 20
    assert reader.done()
    assert not reader.finished


def test_split_reads_match_single_read_for_every_chunking():
    for chunks in all_chunkings(DATA):
        for n in range(len(DATA) + 1):
            for m in range(len(DATA) - n + 1):
                split = ChunkedByteReader(chunks)
                whole = ChunkedByteReader(chunks)
                assert split.read_bytes(n) + split.read_bytes(m) == whole.read_bytes(n + m), chunks


def test_skip_matches_read_for_every_chunking():
    for chunks in all_chunkings(DATA):
        for n in range(len(DATA) + 2):
            skipped = ChunkedByteReader(chunks)
            read = ChunkedByteReader(chunks)

            count = skipped.skip_bytes(n)
            discarded = read.read_bytes(n)

            assert count == len(discarded)
            assert skipped.position == read.position
            assert skipped.finished == read.finished
            if not read.finished:
                assert skipped.read_bytes(len(DATA)) == read.read_bytes(len(DATA))


def test_short_read_returns_available_bytes_then_fails():
    reader = ChunkedByteReader([b"ab", b"c"])

    assert reader.read_bytes(5) == b"abc"
    assert reader.finished
    assert reader.done()

    with pytest.raises(StreamEndedError):
        reader.read_bytes(1)
    with pytest.raises(StreamEndedError):
        reader.skip_bytes(1)


def test_read_after_exact_end_is_short_not_an_error():
    reader = ChunkedByteReader([b"abcd"])
    assert reader.read_bytes(4) == b"abcd"
    assert not reader.finished

    assert reader.read_bytes(4) == b""
    assert reader.finished


def test_empty_chunks_are_ignored():
    reader = ChunkedByteReader([b"", b"ab", b"", b"", b"cd", b""])
    assert not reader.done()
    assert reader.read_bytes(4) == b"abcd"
    assert reader.done()


def test_done_on_empty_source():
    assert ChunkedByteReader([]).done()
    assert ChunkedByteReader([b"", b""]).done()


def test_non_positive_lengths_consume_nothing():
    reader = ChunkedByteReader([b"abc"])
    assert reader.read_bytes(0) == b""
    assert reader.read_bytes(-3) == b""
    assert reader.skip_bytes(0) == 0
    assert reader.skip_bytes(-1) == 0
    assert reader.position == 0
    assert reader.read_bytes(3) == b"abc"


def test_accepts_bytearray_and_memoryview_chunks():
    reader = ChunkedByteReader([bytearray(b"ab"), memoryview(b"cdef")])
    data = reader.read_bytes(5)
    assert data == b"abcde"
    assert isinstance(data, bytes)


def test_pulls_chunks_lazily():
    pulled = []

    def source():
        for chunk in (b"abcd", b"efgh", b"ijkl"):
            pulled.append(chunk)
            yield chunk

    reader = ChunkedByteReader(source())
    reader.read_bytes(2)
    assert pulled == [b"abcd"]
    reader.read_bytes(3)
    assert pulled == [b"abcd", b"efgh"]


def test_large_skips_are_split_into_bounded_steps(monkeypatch):
    monkeypatch.setattr(byte_reader_module, "MAX_SKIP_STEP", 5)
    reader = ChunkedByteReader(split_every(bytes(range(40)), 3))

    steps = []
    original_step = reader._skip_step

    def recording_step(length):
        steps.append(length)
        return original_step(length)

    monkeypatch.setattr(reader, "_skip_step", recording_step)

    assert reader.skip_bytes(23) == 23
    assert steps == [5, 5, 5, 5, 3]
    assert reader.read_bytes(2) == bytes([23, 24])


def test_skip_beyond_32_bits():
    length = 2**32 + 5
    reader = ChunkedByteReader(zero_stream(length, tail=b"MARK"))

    assert reader.skip_bytes(length) == length
    assert reader.position == length
    assert reader.read_bytes(4) == b"MARK"
    assert reader.done()


def test_short_skip_marks_finished():
    reader = ChunkedByteReader([b"abc"])
    assert reader.skip_bytes(10) == 3
    assert reader.finished
    assert reader.position == 3


def test_close_releases_generator_source():
    closed = []

    def source():
        try:
            yield b"abcd"
            yield b"efgh"
        finally:
            closed.append(True)

    with ChunkedByteReader(source()) as reader:
        assert reader.read_bytes(2) == b"ab"

    assert closed == [True]
    assert reader.done()
