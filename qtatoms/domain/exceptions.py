"""
Defines custom exception types for the qtatoms package.

These exceptions allow for more specific and expressive error handling throughout
the scanner. Instead of catching a generic `Exception`, callers can catch
`StructuralOverflowError` or `StreamEndedError` and react accordingly, for
example by treating a whole file as corrupt.

All custom exceptions inherit from the base `QtAtomsException`.
"""


class QtAtomsException(Exception):
    """Base class for all custom exceptions in the qtatoms package."""

    pass


# --- Stream / Reader Specific Exceptions ---
class StreamException(QtAtomsException):
    """Base class for exceptions raised by the chunked byte reader."""

    pass


class StreamEndedError(StreamException):
    """
    Raised when the reader cannot satisfy a requested length.

    The reader itself only raises this when it is asked for more bytes after it
    has already returned a short read. Decoders use it internally to stop field
    decoding early and return a partially populated record.
    """

    pass


class TruncatedHeaderError(StreamEndedError):
    """
    Raised when the stream ends in the middle of an atom header.

    End-of-stream exactly at a header boundary is the normal end of a scan; a
    header cut off after one or more bytes is not.
    """

    pass


# --- Structure Specific Exceptions ---
class StructuralError(QtAtomsException):
    """Base class for exceptions caused by an inconsistent atom tree."""

    pass


class StructuralOverflowError(StructuralError):
    """
    Raised when a container's children declare more bytes than the container holds.

    Decoding of that container is aborted and no record is returned for it.
    Recovery of siblings or ancestors is left to the caller.
    """

    def __init__(self, container_type: str, declared: int, overflow: int):
        self.container_type = container_type
        self.declared = declared
        self.overflow = overflow
        super().__init__(
            f"{container_type}: children read {overflow} byte(s) more than the "
            f"{declared} declared"
        )


class InvalidAtomSizeError(StructuralError):
    """Raised when a header declares a size smaller than its own header."""

    pass


# --- Decoder Specific Exceptions ---
class DecoderException(QtAtomsException):
    """Base class for exceptions raised around registered decoders."""

    pass


class DecoderConsumptionError(DecoderException):
    """
    Raised when a decoder consumes a byte count different from the atom's payload.

    Every decoder must leave the reader exactly at the end of its atom. A decoder
    that reads too little or too much desynchronizes every following header, so
    the scanner fails fast instead.
    """

    def __init__(self, atom_type: str, expected: int, consumed: int):
        self.atom_type = atom_type
        self.expected = expected
        self.consumed = consumed
        super().__init__(
            f"{atom_type}: decoder consumed {consumed} byte(s), expected {expected}"
        )


class InvalidTypeCodeLengthError(DecoderException, ValueError):
    """Raised when a decoder is registered under a type code that is not 4 bytes."""

    pass
