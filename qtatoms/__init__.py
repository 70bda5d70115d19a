"""
qtatoms: a streaming parser for QuickTime / ISO base media atoms.

The most common entry point is `open_quicktime`, which returns a scanner with
the default decoders registered:

    from qtatoms import open_quicktime

    for atom in open_quicktime("movie.mov"):
        print(atom.header.type_string, atom.header.total_size)
"""
from .domain.atoms import (
    AtomArena,
    AtomHeader,
    AtomKind,
    AtomRecord,
    ContainerAtom,
    FtypAtom,
    GenericAtom,
    MdatAtom,
    MoovAtom,
    MvhdAtom,
    TrakAtom,
    walk,
)
from .domain.exceptions import (
    DecoderConsumptionError,
    InvalidAtomSizeError,
    InvalidTypeCodeLengthError,
    QtAtomsException,
    StreamEndedError,
    StructuralError,
    StructuralOverflowError,
    TruncatedHeaderError,
)
from .pipeline.quicktime_pipeline import build_parser, default_decoders, open_quicktime
from .services.byte_reader import ChunkedByteReader
from .services.scanner import AtomScanner

__version__ = "0.1.0"
