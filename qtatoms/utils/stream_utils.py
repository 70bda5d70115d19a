"""
Helpers that produce chunk sources for the byte reader.

The scanner consumes any iterable of byte chunks. These helpers adapt the
common inputs (a path, an open binary file, a bytes object) to that shape,
and split or tap one source so that two consumers can walk the same bytes.
"""
import itertools
from pathlib import Path
from typing import BinaryIO, Callable, Iterable, Iterator, Tuple, Union

from loguru import logger

from ..config.common import DEFAULT_CHUNK_SIZE

ChunkSource = Union[str, Path, bytes, bytearray, BinaryIO, Iterable[bytes]]


def iter_fileobj_chunks(fileobj: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """Yields successive reads of `chunk_size` bytes until the file object is exhausted."""
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    while True:
        chunk = fileobj.read(chunk_size)
        if not chunk:
            return
        yield chunk


def iter_file_chunks(path: Path, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
    """
    Yields the content of a file in chunks.

    The file stays open only while the generator is alive; closing or
    abandoning the generator closes it.
    """
    path = Path(path)
    logger.debug(f"Opening '{path}' for chunked reading ({chunk_size} bytes per chunk).")
    with path.open("rb") as f:
        yield from iter_fileobj_chunks(f, chunk_size)


def iter_chunks(source: ChunkSource, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterable[bytes]:
    """
    Adapts a path, bytes object, binary file object or chunk iterable to a chunk iterable.

    Args:
        source: The input to adapt.
        chunk_size: Chunk size used for paths and file objects.

    Returns:
        An iterable of byte chunks.
    """
    if isinstance(source, (str, Path)):
        return iter_file_chunks(Path(source), chunk_size)
    if isinstance(source, (bytes, bytearray, memoryview)):
        return [bytes(source)]
    if hasattr(source, "read"):
        return iter_fileobj_chunks(source, chunk_size)
    return source


def duplicate_stream(chunks: Iterable[bytes], copies: int = 2) -> Tuple[Iterator[bytes], ...]:
    """
    Splits one chunk source into independent forward-only cursors.

    Every cursor yields the same chunks in the same order. Each can be wrapped
    in its own `ChunkedByteReader`, which keeps its own residue and position, so
    abandoning one scan leaves the others untouched. Chunks not yet consumed by
    the slowest cursor are held in memory, and the cursors must be driven from
    a single thread.
    """
    if copies < 1:
        raise ValueError(f"copies must be at least 1, got {copies}")
    return itertools.tee(chunks, copies)


def tap_stream(chunks: Iterable[bytes], consume: Callable[[bytes], None]) -> Iterator[bytes]:
    """
    Yields the chunks of `chunks` unchanged, handing each one to `consume` first.

    Unlike `duplicate_stream`, nothing is buffered: the side consumer sees every
    chunk at the moment the main consumer pulls it.
    """
    for chunk in chunks:
        consume(chunk)
        yield chunk
