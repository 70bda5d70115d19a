"""
Decoders for the atom types known to qtatoms.

Every decoder is called as `decoder(reader, header, scanner)` with the reader
positioned at the first payload byte, and must leave the reader exactly
`header.data_size` bytes further, whether it interprets those bytes or skips
them.

There are three families:

- Fixed-layout decoders (`ftyp`, `mvhd`) read fields one after another. If the
  stream ends in the middle, they return what they decoded so far, marked
  truncated, instead of failing the whole scan.
- Container decoders (`moov`, `trak` and the structural containers) pull their
  children from the scanner until the declared payload is used up, and raise
  `StructuralOverflowError` if the children claim more bytes than that.
- The opaque decoder (`mdat`) skips its payload without reading it into memory.
"""
from typing import Callable, Dict, Optional

from loguru import logger

from ..config.atoms import FTYP, MDAT, MOOV, MVHD, MVHD_MATRIX_SIZE, MVHD_RESERVED_SIZE, TRAK
from ..domain.atoms import (
    AtomHeader,
    AtomRecord,
    ContainerAtom,
    FtypAtom,
    MdatAtom,
    MoovAtom,
    MvhdAtom,
    TrakAtom,
)
from ..domain.exceptions import StreamEndedError, StructuralOverflowError
from ..utils.format_utils import formatted_size
from .byte_reader import ChunkedByteReader


class PayloadExhausted(Exception):
    """Raised by `PayloadCursor` when a field does not fit in the declared payload."""

    pass


class PayloadCursor:
    """
    Reads fixed-width fields from one atom's payload.

    The cursor tracks how many declared payload bytes are left, so a decoder can
    never read past the end of its atom, and skips whatever the decoder did not
    interpret.

    Attributes:
        remaining (int): Declared payload bytes not yet consumed.
    """

    def __init__(self, reader: ChunkedByteReader, header: AtomHeader):
        self.reader = reader
        self.header = header
        self.remaining = header.data_size

    def take(self, width: int) -> bytes:
        """
        Reads exactly `width` bytes of the payload.

        Raises:
            PayloadExhausted: If fewer than `width` declared bytes remain.
            StreamEndedError: If the stream ends before `width` bytes arrive.
        """
        if width > self.remaining:
            raise PayloadExhausted(
                f"{self.header.type_string}: field of {width} byte(s) does not fit in "
                f"the {self.remaining} remaining payload byte(s)"
            )
        data = self.reader.read_bytes(width)
        self.remaining -= len(data)
        if len(data) < width:
            raise StreamEndedError(
                f"{self.header.type_string}: stream ended after {len(data)} of {width} byte(s)"
            )
        return data

    def uint(self, width: int) -> int:
        return int.from_bytes(self.take(width), "big")

    def fixed_point(self, width: int, fraction_bits: int) -> float:
        """Reads an unsigned fixed-point number with `fraction_bits` fractional bits."""
        return self.uint(width) / (1 << fraction_bits)

    def skip_remaining(self) -> int:
        """
        Skips the payload bytes the decoder did not interpret.

        Nothing is skipped once the stream has ended.

        Returns:
            The number of bytes skipped.
        """
        if self.remaining <= 0 or self.reader.finished:
            return 0
        skipped = self.reader.skip_bytes(self.remaining)
        self.remaining -= skipped
        return skipped


def decode_ftyp(reader: ChunkedByteReader, header: AtomHeader, scanner) -> FtypAtom:
    """
    Decodes a file type compatibility atom.

    The major brand and minor version come first, followed by as many 4-byte
    compatible brands as the payload holds.
    """
    atom = FtypAtom(header=header)
    cursor = PayloadCursor(reader, header)

    try:
        if cursor.remaining:
            atom.major_brand = cursor.take(4)
        if cursor.remaining:
            atom.minor_brand = cursor.take(4)
        while cursor.remaining >= 4:
            atom.compatible_brands.append(cursor.take(4))
    except (StreamEndedError, PayloadExhausted) as e:
        atom.truncated = True
        logger.warning(f"{e}; returning partial ftyp record")

    if cursor.remaining and not reader.finished:
        logger.warning(f"ftyp: skipping {cursor.remaining} trailing byte(s) after the brand list")
    cursor.skip_remaining()
    return atom


def decode_mvhd(reader: ChunkedByteReader, header: AtomHeader, scanner) -> MvhdAtom:
    """
    Decodes a movie header atom.

    Fields are read in file order. Version 1 headers carry 64-bit creation time,
    modification time and duration; everything else has the same width in both
    versions. Leftover payload after the last field is skipped with a warning.
    """
    atom = MvhdAtom(header=header)
    cursor = PayloadCursor(reader, header)

    try:
        atom.version = cursor.uint(1)
        atom.flags = cursor.take(3)
        time_width = 8 if atom.version == 1 else 4
        atom.creation_time = cursor.uint(time_width)
        atom.modification_time = cursor.uint(time_width)
        atom.time_scale = cursor.uint(4)
        atom.duration = cursor.uint(time_width)
        atom.preferred_rate = cursor.fixed_point(4, 16)
        atom.preferred_volume = cursor.fixed_point(2, 8)
        atom.reserved = cursor.take(MVHD_RESERVED_SIZE)
        atom.matrix_structure = cursor.take(MVHD_MATRIX_SIZE)
        atom.preview_time = cursor.uint(4)
        atom.preview_duration = cursor.uint(4)
        atom.poster_time = cursor.uint(4)
        atom.selection_time = cursor.uint(4)
        atom.selection_duration = cursor.uint(4)
        atom.current_time = cursor.uint(4)
        atom.next_track_id = cursor.uint(4)
    except (StreamEndedError, PayloadExhausted) as e:
        atom.truncated = True
        logger.warning(f"{e}; returning partial mvhd record")

    if cursor.remaining > 0 and not reader.finished:
        logger.warning(f"mvhd: {cursor.remaining} bytes remaining")
    cursor.skip_remaining()
    return atom


def decode_mdat(reader: ChunkedByteReader, header: AtomHeader, scanner) -> MdatAtom:
    """Skips a movie data atom's payload, which may exceed 4 GB, without reading it."""
    atom = MdatAtom(header=header)
    skipped = reader.skip_bytes(header.data_size)
    if skipped < header.data_size:
        atom.truncated = True
        logger.warning(
            f"mdat: stream ended after {formatted_size(skipped)} of "
            f"{formatted_size(header.data_size)} declared"
        )
    return atom


def decode_children(
    container: AtomRecord,
    scanner,
    on_child: Optional[Callable[[AtomRecord], None]] = None,
) -> AtomRecord:
    """
    Pulls a container's children from the scanner until its payload is used up.

    Each child's declared total size is subtracted from the container's
    payload size. The container is complete when that reaches exactly zero.

    Args:
        container: The record whose `children` list is filled.
        scanner: The scanner the container itself was read from.
        on_child: Called with every child, to fill typed fields.

    Returns:
        The container. It is marked truncated if the scan ended before its
        payload was used up.

    Raises:
        StructuralOverflowError: If the children declare more bytes than the container.
                                 The children pulled so far are removed from the
                                 scanner's arena first.
    """
    header = container.header
    remaining = header.data_size
    if remaining == 0:
        return container

    with scanner.nested(header.atom_id):
        try:
            while remaining > 0:
                child = scanner.next_atom()
                if child is None:
                    container.truncated = True
                    logger.warning(
                        f"{header.type_string}: scan ended with {remaining} byte(s) of children unread"
                    )
                    break

                remaining -= child.header.total_size
                if remaining < 0:
                    scanner.arena.discard(child)
                    raise StructuralOverflowError(header.type_string, header.data_size, -remaining)

                container.children.append(child)
                if on_child is not None:
                    on_child(child)
        except StructuralOverflowError:
            # No record is produced for this container, so its children must not
            # stay registered under its id.
            for child in container.children:
                scanner.arena.discard(child)
            raise

    logger.trace(f"{header.type_string}: {len(container.children)} child atom(s)")
    return container


def decode_moov(reader: ChunkedByteReader, header: AtomHeader, scanner) -> MoovAtom:
    """Decodes a movie atom, keeping its movie header and tracks in typed fields."""
    moov = MoovAtom(header=header)

    def attach(child: AtomRecord):
        if isinstance(child, MvhdAtom):
            if moov.mvhd is None:
                moov.mvhd = child
            else:
                logger.warning(
                    f"moov: ignoring additional mvhd at offset {child.header.offset}"
                )
        elif isinstance(child, TrakAtom):
            moov.traks.append(child)

    return decode_children(moov, scanner, on_child=attach)


def decode_trak(reader: ChunkedByteReader, header: AtomHeader, scanner) -> TrakAtom:
    return decode_children(TrakAtom(header=header), scanner)


def decode_container(reader: ChunkedByteReader, header: AtomHeader, scanner) -> ContainerAtom:
    """Decodes a structural container such as `mdia` or `stbl`."""
    return decode_children(ContainerAtom(header=header), scanner)


DEFAULT_DECODERS: Dict[str, Callable] = {
    FTYP: decode_ftyp,
    MDAT: decode_mdat,
    MOOV: decode_moov,
    MVHD: decode_mvhd,
    TRAK: decode_trak,
}
