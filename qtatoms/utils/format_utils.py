"""
This module contains helper functions for formatting data into human-readable strings.
These functions are used throughout the package, particularly in logging and in
scan reports, to present sizes, durations and type codes in a clear and
consistent way.
"""

from datetime import timedelta
from typing import Optional


def format_timedelta(td_object: timedelta) -> str:
    """
    Formats a timedelta object into a "HH:MM:SS.mmm" string.

    Args:
        td_object: The timedelta object to format.

    Returns:
        A string representing the timedelta, for example "02:01:01.500" for
        7261.5 seconds. Returns "00:00:00.000" if the input is not a timedelta.
    """
    if not isinstance(td_object, timedelta):
        return "00:00:00.000"

    total_ms = int(round(td_object.total_seconds() * 1000))
    total_seconds, milliseconds = divmod(total_ms, 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02}:{minutes:02}:{seconds:02}.{milliseconds:03}"


def formatted_size(size_bytes: int) -> str:
    """
    Converts a size in bytes to a human-readable string (e.g., B, KB, MB, GB, TB).

    Atom payloads range from a few bytes to well beyond 4 GB, so log messages
    use this rather than raw byte counts.

    Args:
        size_bytes: The size in bytes.

    Returns:
        A formatted string with the appropriate unit.
        For example, 1536 becomes "1.50 KB", and 2097152 becomes "2 MB".
    """
    if size_bytes < 0:
        size_bytes = 0

    units = ["B", "KB", "MB", "GB", "TB", "PB", "EB"]
    factor = 1024.0

    if size_bytes == 0:
        return "0 B"

    for unit in units:
        if size_bytes < factor:
            if unit == "B":
                return f"{size_bytes} {unit}"
            # Clean up ".00" for whole numbers (e.g., "2.00 MB" -> "2 MB").
            return f"{size_bytes:.2f} {unit}".replace(".00", "")
        size_bytes /= factor

    return f"{size_bytes:.2f} {units[-1]}".replace(".00", "")


def format_type_code(code: Optional[bytes]) -> Optional[str]:
    """
    Renders a 4-byte code for display.

    Printable ASCII codes are returned as text ("moov"). Codes with any other
    byte are returned as hex prefixed with "0x" ("0x00000200"), since type codes
    and brands are not guaranteed to be printable.
    """
    if code is None:
        return None
    if all(0x20 <= b < 0x7F for b in code):
        return code.decode("ascii")
    return "0x" + code.hex()
