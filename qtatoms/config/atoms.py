"""
Configuration settings related to the QuickTime atom layout.

This module defines the type codes known to the default decoder set, the
header sentinels of the container format, and the fixed field widths of the
movie header atom.
"""
from datetime import datetime, timezone

# ======================================================================================
# Header Layout
# ======================================================================================

# Compact header: 4-byte size followed by a 4-byte type code.
HEADER_SIZE = 8

# Extended header: compact header followed by a 64-bit size.
EXTENDED_HEADER_SIZE = 16

TYPE_CODE_LENGTH = 4

# A size field of 0 terminates the scan (see DESIGN.md for the chosen meaning).
SIZE_TERMINATOR = 0

# A size field of 1 announces a 64-bit extended size after the type code.
SIZE_EXTENDED = 1


# ======================================================================================
# Type Codes
# ======================================================================================

FTYP = "ftyp"
MDAT = "mdat"
MOOV = "moov"
MVHD = "mvhd"
TRAK = "trak"

# Structural containers whose payload is nothing but child atoms. They are decoded
# with the generic container decoder unless overridden in 'config.user.yaml'.
DEFAULT_CONTAINER_TYPES = ("mdia", "minf", "stbl", "dinf", "edts", "udta")


# ======================================================================================
# Movie Header (mvhd) Layout
# ======================================================================================

# QuickTime and ISO timestamps count seconds from midnight, January 1, 1904 UTC.
MAC_EPOCH = datetime(1904, 1, 1, tzinfo=timezone.utc)

MVHD_MATRIX_SIZE = 36
MVHD_RESERVED_SIZE = 10

# Version 0 payload: version(1) flags(3) creation(4) modification(4) time_scale(4)
# duration(4) rate(4) volume(2) reserved(10) matrix(36) seven 32-bit times (28).
MVHD_V0_PAYLOAD_SIZE = 100

# Version 1 widens creation, modification and duration to 64 bits.
MVHD_V1_PAYLOAD_SIZE = 112
