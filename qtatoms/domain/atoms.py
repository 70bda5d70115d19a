"""
Data models for decoded QuickTime atoms.

Every decoded atom is one of a fixed set of record types collected in the
`AtomRecord` union. Each record carries the `AtomHeader` it was decoded from
plus the fields its decoder populated, and is tagged with an `AtomKind` so that
callers can dispatch either with `match atom: case FtypAtom(): ...` or on
`atom.kind`.

Parent relations are not object references. Each header holds the id of its
parent, which is resolved through the `AtomArena` owned by the scanner that
produced the atom. Only the parent owns its children, through its `children`
list.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Union

from ..config.atoms import EXTENDED_HEADER_SIZE, HEADER_SIZE, MAC_EPOCH, SIZE_EXTENDED


class AtomKind(str, Enum):
    GENERIC = "generic"
    FTYP = "ftyp"
    MVHD = "mvhd"
    MOOV = "moov"
    TRAK = "trak"
    MDAT = "mdat"
    CONTAINER = "container"


def decode_type_code(code: bytes) -> str:
    """Decodes a 4-byte type code for display. Non-ASCII bytes are replaced."""
    return code.decode("ascii", errors="replace")


@dataclass(frozen=True)
class AtomHeader:
    """
    The size/type prefix shared by every atom.

    Attributes:
        size (int): The 32-bit size field. 0 terminates the scan, 1 means `extended_size` follows.
        type (bytes): The 4-byte type code.
        extended_size (Optional[int]): The 64-bit size, present only when `size == 1`.
        offset (int): Stream offset of the first header byte.
        atom_id (int): Identifier of the atom inside its scanner's arena.
        parent_id (Optional[int]): Arena id of the enclosing container, None at top level.
    """

    size: int
    type: bytes
    extended_size: Optional[int] = None
    offset: int = 0
    atom_id: int = 0
    parent_id: Optional[int] = None

    @property
    def uses_extended_size(self) -> bool:
        return self.size == SIZE_EXTENDED

    @property
    def header_size(self) -> int:
        return EXTENDED_HEADER_SIZE if self.uses_extended_size else HEADER_SIZE

    @property
    def data_size(self) -> int:
        """Number of payload bytes following the header."""
        if self.uses_extended_size:
            return (self.extended_size or 0) - EXTENDED_HEADER_SIZE
        if self.size == 0:
            return 0
        return self.size - HEADER_SIZE

    @property
    def total_size(self) -> int:
        """The declared on-disk length of the atom, header included."""
        if self.uses_extended_size:
            return self.extended_size or 0
        return self.size

    @property
    def type_string(self) -> str:
        return decode_type_code(self.type)


@dataclass
class GenericAtom:
    """
    An atom without a registered decoder, or one decoded by a caller-supplied decoder.

    Unknown atoms are skipped and carry only their header. Custom decoders may
    store the values they decode in `fields`.
    """

    kind: ClassVar[AtomKind] = AtomKind.GENERIC

    header: AtomHeader
    fields: Dict[str, Any] = field(default_factory=dict)
    children: List["AtomRecord"] = field(default_factory=list)
    truncated: bool = False


@dataclass
class FtypAtom:
    """
    The file type compatibility atom.

    Attributes:
        major_brand (Optional[bytes]): The preferred brand, 4 bytes.
        minor_brand (Optional[bytes]): The brand version, kept as the raw 4 bytes.
        compatible_brands (List[bytes]): The compatible brands in file order.
    """

    kind: ClassVar[AtomKind] = AtomKind.FTYP

    header: AtomHeader
    major_brand: Optional[bytes] = None
    minor_brand: Optional[bytes] = None
    compatible_brands: List[bytes] = field(default_factory=list)
    children: List["AtomRecord"] = field(default_factory=list)
    truncated: bool = False

    @property
    def major_brand_string(self) -> Optional[str]:
        if self.major_brand is None:
            return None
        return decode_type_code(self.major_brand)

    @property
    def minor_brand_string(self) -> Optional[str]:
        if self.minor_brand is None:
            return None
        return decode_type_code(self.minor_brand)

    @property
    def compatible_brand_strings(self) -> List[str]:
        return [decode_type_code(brand) for brand in self.compatible_brands]


@dataclass
class MvhdAtom:
    """
    The movie header atom.

    Times are expressed in `time_scale` units per second, except `creation_time`
    and `modification_time` which count seconds since midnight, January 1, 1904 UTC.

    Attributes:
        version (Optional[int]): 0 for 32-bit times, 1 for 64-bit creation/modification/duration.
        flags (Optional[bytes]): Reserved, 3 bytes.
        creation_time (Optional[int]): Seconds since the 1904 epoch.
        modification_time (Optional[int]): Seconds since the 1904 epoch.
        time_scale (Optional[int]): Time units that pass per second.
        duration (Optional[int]): Duration of the longest track, in time scale units.
        preferred_rate (Optional[float]): Playback rate, 1.0 being normal rate.
        preferred_volume (Optional[float]): Loudness, 1.0 being full volume.
        reserved (Optional[bytes]): Ten reserved bytes.
        matrix_structure (Optional[bytes]): The 36-byte transformation matrix, opaque.
        preview_time (Optional[int]): Movie time at which the preview begins.
        preview_duration (Optional[int]): Duration of the preview.
        poster_time (Optional[int]): Movie time of the poster frame.
        selection_time (Optional[int]): Start of the current selection.
        selection_duration (Optional[int]): Duration of the current selection.
        current_time (Optional[int]): Current time position within the movie.
        next_track_id (Optional[int]): Value to use for the next added track.
    """

    kind: ClassVar[AtomKind] = AtomKind.MVHD

    header: AtomHeader
    version: Optional[int] = None
    flags: Optional[bytes] = None
    creation_time: Optional[int] = None
    modification_time: Optional[int] = None
    time_scale: Optional[int] = None
    duration: Optional[int] = None
    preferred_rate: Optional[float] = None
    preferred_volume: Optional[float] = None
    reserved: Optional[bytes] = None
    matrix_structure: Optional[bytes] = None
    preview_time: Optional[int] = None
    preview_duration: Optional[int] = None
    poster_time: Optional[int] = None
    selection_time: Optional[int] = None
    selection_duration: Optional[int] = None
    current_time: Optional[int] = None
    next_track_id: Optional[int] = None
    children: List["AtomRecord"] = field(default_factory=list)
    truncated: bool = False

    @property
    def creation_datetime(self) -> Optional[datetime]:
        if self.creation_time is None:
            return None
        return MAC_EPOCH + timedelta(seconds=self.creation_time)

    @property
    def modification_datetime(self) -> Optional[datetime]:
        if self.modification_time is None:
            return None
        return MAC_EPOCH + timedelta(seconds=self.modification_time)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.duration is None or not self.time_scale:
            return None
        return self.duration / self.time_scale


@dataclass
class TrakAtom:
    """A track atom. Its children are scanned but not examined further."""

    kind: ClassVar[AtomKind] = AtomKind.TRAK

    header: AtomHeader
    children: List["AtomRecord"] = field(default_factory=list)
    truncated: bool = False


@dataclass
class MoovAtom:
    """
    The movie atom.

    Besides the full `children` list, the first `mvhd` child is kept in `mvhd`
    and every `trak` child in `traks`, in file order.
    """

    kind: ClassVar[AtomKind] = AtomKind.MOOV

    header: AtomHeader
    mvhd: Optional[MvhdAtom] = None
    traks: List[TrakAtom] = field(default_factory=list)
    children: List["AtomRecord"] = field(default_factory=list)
    truncated: bool = False


@dataclass
class MdatAtom:
    """The movie data atom. Its payload is skipped, never read."""

    kind: ClassVar[AtomKind] = AtomKind.MDAT

    header: AtomHeader
    children: List["AtomRecord"] = field(default_factory=list)
    truncated: bool = False


@dataclass
class ContainerAtom:
    """A structural container such as `mdia` or `stbl` whose payload is only child atoms."""

    kind: ClassVar[AtomKind] = AtomKind.CONTAINER

    header: AtomHeader
    children: List["AtomRecord"] = field(default_factory=list)
    truncated: bool = False


AtomRecord = Union[GenericAtom, FtypAtom, MvhdAtom, MoovAtom, TrakAtom, MdatAtom, ContainerAtom]


class AtomArena:
    """
    Table of the atoms produced by one scan, indexed by atom id.

    Ids are handed out when a header is decoded, so a child's `parent_id` is
    known before its parent has finished decoding. Records are added once their
    decoder returns.
    """

    def __init__(self):
        self._atoms: Dict[int, AtomRecord] = {}
        self._next_id = 0

    def allocate_id(self) -> int:
        atom_id = self._next_id
        self._next_id += 1
        return atom_id

    def add(self, atom: AtomRecord):
        self._atoms[atom.header.atom_id] = atom

    def discard(self, atom: AtomRecord):
        """Removes the atom and all its descendants. Ids that are not registered are ignored."""
        for _, record in walk(atom):
            self._atoms.pop(record.header.atom_id, None)

    def get(self, atom_id: Optional[int]) -> Optional[AtomRecord]:
        if atom_id is None:
            return None
        return self._atoms.get(atom_id)

    def parent_of(self, atom: AtomRecord) -> Optional[AtomRecord]:
        return self.get(atom.header.parent_id)

    def ancestors(self, atom: AtomRecord) -> Iterator[AtomRecord]:
        """Yields the parent, grandparent and so on up to the top-level atom."""
        parent = self.parent_of(atom)
        while parent is not None:
            yield parent
            parent = self.parent_of(parent)

    def __len__(self) -> int:
        return len(self._atoms)

    def __iter__(self) -> Iterator[AtomRecord]:
        return iter(self._atoms.values())


def walk(atom: AtomRecord, depth: int = 0) -> Iterator[tuple]:
    """Yields `(depth, atom)` for the atom and all its descendants, depth first."""
    yield depth, atom
    for child in atom.children:
        yield from walk(child, depth + 1)
