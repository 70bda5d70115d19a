"""
Scans QuickTime atoms from a chunked byte stream.

The scanner only knows how to read an atom's header: a 4-byte size, a 4-byte
type code and, when the size is 1, an 8-byte extended size. What follows the
header is handed to the decoder registered for the type code. Atoms without a
decoder have their payload skipped, so unknown or uninteresting atoms never
cost more than their header.

Container decoders pull their children from the same scanner, which makes the
whole tree the product of one strictly sequential cursor over the stream.
"""
import struct
from contextlib import contextmanager
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Union

from loguru import logger

from ..config.atoms import (
    EXTENDED_HEADER_SIZE,
    HEADER_SIZE,
    SIZE_EXTENDED,
    SIZE_TERMINATOR,
    TYPE_CODE_LENGTH,
)
from ..config.common import ScannerSettings
from ..domain.atoms import AtomArena, AtomHeader, AtomRecord, GenericAtom, decode_type_code
from ..domain.exceptions import (
    DecoderConsumptionError,
    InvalidAtomSizeError,
    InvalidTypeCodeLengthError,
    TruncatedHeaderError,
)
from ..utils.format_utils import formatted_size
from .byte_reader import ChunkedByteReader

# A decoder receives the reader positioned at the start of the payload, the
# decoded header and the scanner (for containers). It must consume exactly
# `header.data_size` bytes, even the ones it cannot interpret.
AtomDecoder = Callable[[ChunkedByteReader, AtomHeader, "AtomScanner"], AtomRecord]

TypeCode = Union[str, bytes, bytearray, int]


def normalize_type_code(type_code: TypeCode) -> bytes:
    """
    Converts a type code given as text, bytes or a 32-bit integer to 4 raw bytes.

    Text is encoded as Latin-1 so that codes such as '©nam' map to their
    on-disk byte values.

    Raises:
        InvalidTypeCodeLengthError: If the code is not exactly 4 bytes long.
        TypeError: If the code has an unsupported type.
    """
    if isinstance(type_code, str):
        try:
            code = type_code.encode("latin-1")
        except UnicodeEncodeError as e:
            raise InvalidTypeCodeLengthError(
                f"type code {type_code!r} cannot be encoded as {TYPE_CODE_LENGTH} bytes"
            ) from e
    elif isinstance(type_code, bool):
        raise TypeError("type code must be str, bytes or int, not bool")
    elif isinstance(type_code, int):
        if not 0 <= type_code <= 0xFFFFFFFF:
            raise InvalidTypeCodeLengthError(
                f"type code {type_code:#x} does not fit in {TYPE_CODE_LENGTH} bytes"
            )
        code = struct.pack(">I", type_code)
    elif isinstance(type_code, (bytes, bytearray, memoryview)):
        code = bytes(type_code)
    else:
        raise TypeError(f"type code must be str, bytes or int, not {type(type_code).__name__}")

    if len(code) != TYPE_CODE_LENGTH:
        raise InvalidTypeCodeLengthError(
            f"type code must be exactly {TYPE_CODE_LENGTH} bytes, got {len(code)}: {code!r}"
        )
    return code


class AtomScanner:
    """
    Iterates the atoms of a QuickTime stream, one at a time.

    The scanner assumes the stream is a sequence of atoms. Iteration is
    single-pass and cannot be restarted; iterating the scanner again continues
    where the previous loop stopped.

    The scan ends when the stream is exhausted at a header boundary, or when a
    header's size field is 0. A size of 0 is treated as an end-of-stream
    terminator at every nesting level: containers that were still expecting
    children stop and are marked truncated.

    Attributes:
        reader (ChunkedByteReader): The shared cursor over the stream.
        arena (AtomArena): The atoms produced by this scan, by id. With
                           `retain_atoms` disabled only atoms with children are kept.
        settings (ScannerSettings): The scanner configuration.
    """

    def __init__(
        self,
        source: Union[ChunkedByteReader, Iterable[bytes]],
        settings: Optional[ScannerSettings] = None,
    ):
        """
        Initializes the scanner over a chunk source.

        Args:
            source: An existing `ChunkedByteReader`, or an iterable of byte chunks
                    to wrap in a new one.
            settings: Scanner settings. Defaults are used when omitted.
        """
        if isinstance(source, ChunkedByteReader):
            self.reader = source
        else:
            self.reader = ChunkedByteReader(source)
        self.settings = settings or ScannerSettings()
        self.arena = AtomArena()
        self._parsers: Dict[bytes, AtomDecoder] = {}
        self._parent_stack: List[int] = []
        self._terminated = False

    @property
    def terminated(self) -> bool:
        """True once a size-0 header ended the scan."""
        return self._terminated

    @property
    def registered_types(self) -> List[str]:
        return sorted(decode_type_code(code) for code in self._parsers)

    def define_parser(self, type_code: TypeCode, decoder: AtomDecoder):
        """
        Registers the decoder for an atom type, replacing any previous one.

        Args:
            type_code: The type code as a 4-character string, 4 bytes or a 32-bit integer.
            decoder: Callable invoked as `decoder(reader, header, scanner)`.

        Raises:
            InvalidTypeCodeLengthError: If the type code is not exactly 4 bytes.
        """
        code = normalize_type_code(type_code)
        if code in self._parsers:
            logger.debug(f"Replacing decoder for '{decode_type_code(code)}'.")
        self._parsers[code] = decoder

    def parser_for(self, type_code: TypeCode) -> Optional[AtomDecoder]:
        return self._parsers.get(normalize_type_code(type_code))

    @contextmanager
    def nested(self, parent_id: int):
        """
        Relates every atom scanned inside the block to the given parent.

        Container decoders wrap their child loop in this context manager.
        """
        self._parent_stack.append(parent_id)
        try:
            yield self
        finally:
            self._parent_stack.pop()

    def __iter__(self) -> Iterator[AtomRecord]:
        return self

    def __next__(self) -> AtomRecord:
        atom = self.next_atom()
        if atom is None:
            raise StopIteration
        return atom

    def next_atom(self) -> Optional[AtomRecord]:
        """
        Reads the next header and decodes or skips its payload.

        Returns:
            The decoded atom, or None when the scan is over.

        Raises:
            TruncatedHeaderError: If the stream ends inside a header.
            InvalidAtomSizeError: If a header declares a size smaller than itself.
            DecoderConsumptionError: If a decoder does not consume exactly its payload
                                     and strict consumption is enabled.
            StructuralOverflowError: Propagated from container decoders.
        """
        header = self._read_header()
        if header is None:
            return None

        decoder = self._parsers.get(header.type)
        start = self.reader.position

        if decoder is not None:
            logger.debug(
                f"{header.type_string} [{header.type.hex()}] at offset {header.offset}: "
                f"decoding {formatted_size(header.data_size)}"
            )
            atom = decoder(self.reader, header, self)
            self._verify_consumption(header, atom, self.reader.position - start)
        else:
            logger.debug(
                f"{header.type_string} [{header.type.hex()}] at offset {header.offset}: "
                f"no decoder found; skipping {header.data_size} bytes"
            )
            skipped = self.reader.skip_bytes(header.data_size)
            atom = GenericAtom(header=header, truncated=skipped < header.data_size)

        if self.settings.retain_atoms or atom.children:
            self.arena.add(atom)
        return atom

    def _read_header(self) -> Optional[AtomHeader]:
        if self._terminated:
            return None

        reader = self.reader
        if reader.done():
            return None

        offset = reader.position
        size = self._read_uint(4, offset)

        if size == SIZE_TERMINATOR:
            self._terminated = True
            logger.debug(f"Size 0 header at offset {offset}; ending scan.")
            return None

        type_code = reader.read_bytes(TYPE_CODE_LENGTH)
        if len(type_code) < TYPE_CODE_LENGTH:
            raise TruncatedHeaderError(f"stream ended inside the type code of the atom at offset {offset}")

        extended_size = None
        if size == SIZE_EXTENDED:
            extended_size = self._read_uint(8, offset)
            if extended_size < EXTENDED_HEADER_SIZE:
                raise InvalidAtomSizeError(
                    f"{decode_type_code(type_code)} at offset {offset}: extended size "
                    f"{extended_size} is smaller than its {EXTENDED_HEADER_SIZE}-byte header"
                )
        elif size < HEADER_SIZE:
            raise InvalidAtomSizeError(
                f"{decode_type_code(type_code)} at offset {offset}: size {size} is smaller "
                f"than its {HEADER_SIZE}-byte header"
            )

        return AtomHeader(
            size=size,
            type=type_code,
            extended_size=extended_size,
            offset=offset,
            atom_id=self.arena.allocate_id(),
            parent_id=self._parent_stack[-1] if self._parent_stack else None,
        )

    def _read_uint(self, width: int, offset: int) -> int:
        data = self.reader.read_bytes(width)
        if len(data) < width:
            raise TruncatedHeaderError(
                f"stream ended inside the header at offset {offset}: "
                f"needed {width} byte(s), got {len(data)}"
            )
        return int.from_bytes(data, "big")

    def _verify_consumption(self, header: AtomHeader, atom: AtomRecord, consumed: int):
        if consumed == header.data_size:
            return

        # The stream ended inside the atom, or a nested size-0 header ended the scan.
        if self.reader.finished or self._terminated:
            atom.truncated = True
            return

        if self.settings.strict_consumption:
            raise DecoderConsumptionError(header.type_string, header.data_size, consumed)
        logger.warning(
            f"{header.type_string} at offset {header.offset}: decoder consumed {consumed} "
            f"byte(s), expected {header.data_size}. Following atoms may be misaligned."
        )
