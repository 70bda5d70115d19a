"""
Common configuration settings used throughout the application.

This module contains globally shared configuration settings and constants that are
used across the whole qtatoms package. It centralizes parameters for logging,
stream chunking and scanner strictness. It also handles the loading of
user-specific configuration from an external YAML file, allowing for easy
customization without modifying the source code.
"""
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Tuple

import yaml
from loguru import logger

from .atoms import DEFAULT_CONTAINER_TYPES

# --- User-Defined Configuration ---
# This block loads user-specific settings from a 'config.user.yaml' file located
# at the project root. Only the 'scanner' section is read.

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
USER_CONFIG_PATH = PROJECT_ROOT / "config.user.yaml"


# --- Logging Configuration ---

# The format string for the Loguru logger. It defines the structure and appearance
# of log messages, including timestamp, level, module name, and the message itself.
LOGGER_FORMAT = (
    "<green>{time:MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

DEFAULT_LOG_LEVEL = "INFO"


# --- Stream Settings ---

# Number of bytes pulled per chunk when a file or file object is turned into a
# chunk source. The scanner never needs more than one chunk of look-ahead.
DEFAULT_CHUNK_SIZE = 64 * 1024

# The largest number of bytes discarded by a single skip step. Atom payloads may
# declare up to 2**64 - 17 bytes, so larger skips are split into steps of this size.
MAX_SKIP_STEP = 2**32 - 1

# When True, the scanner compares the reader position before and after every
# decoder call and raises if the decoder did not consume exactly the atom's payload.
DEFAULT_STRICT_CONSUMPTION = True

# When True, every atom the scanner produces stays in its arena until the scan
# ends. When False, only atoms with children are kept; every parent stays resolvable.
DEFAULT_RETAIN_ATOMS = True


# --- Report Settings ---

# Default filename for the YAML scan report written by the pipeline.
DEFAULT_REPORT_FILE_NAME = "atom_report.yaml"


@dataclass(frozen=True)
class ScannerSettings:
    """
    Resolved, immutable settings handed to scanners and pipelines.

    Attributes:
        chunk_size (int): Bytes per chunk when reading files.
        strict_consumption (bool): Verify that decoders consume exactly their payload.
        log_level (str): Level for the stderr sink configured by the entry point.
        container_types (Tuple[str, ...]): Type codes decoded as generic containers.
        retain_atoms (bool): Keep every scanned atom in the arena, not only the ones with children.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    strict_consumption: bool = DEFAULT_STRICT_CONSUMPTION
    log_level: str = DEFAULT_LOG_LEVEL
    container_types: Tuple[str, ...] = field(default=DEFAULT_CONTAINER_TYPES)
    retain_atoms: bool = DEFAULT_RETAIN_ATOMS

    def with_overrides(self, **overrides) -> "ScannerSettings":
        """Returns a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_user_settings(path: Path = USER_CONFIG_PATH) -> ScannerSettings:
    """
    Builds `ScannerSettings` from the defaults and the user's YAML file.

    Unknown keys are ignored. A file that cannot be read or parsed is reported
    and the defaults are used instead.

    Args:
        path: The YAML file to read. Defaults to `config.user.yaml` at the project root.

    Returns:
        The resolved settings.
    """
    settings = ScannerSettings()

    if not path.is_file():
        logger.debug(f"User config '{path}' not found. Using default scanner settings.")
        return settings

    try:
        with path.open("r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load or parse '{path}': {e}")
        return settings

    scanner_config = (user_config or {}).get("scanner") or {}
    if not isinstance(scanner_config, dict):
        logger.warning(f"Ignoring 'scanner' section in '{path}': expected a mapping.")
        return settings

    container_types = scanner_config.get("container_types")
    if container_types is not None:
        container_types = tuple(str(code) for code in container_types)

    chunk_size = scanner_config.get("chunk_size")
    if chunk_size is not None and int(chunk_size) <= 0:
        logger.warning(f"Ignoring non-positive chunk_size {chunk_size} in '{path}'.")
        chunk_size = None

    strict = scanner_config.get("strict_consumption")
    retain = scanner_config.get("retain_atoms")
    log_level = scanner_config.get("log_level")

    return settings.with_overrides(
        chunk_size=int(chunk_size) if chunk_size is not None else None,
        strict_consumption=bool(strict) if strict is not None else None,
        log_level=str(log_level).upper() if log_level else None,
        container_types=container_types,
        retain_atoms=bool(retain) if retain is not None else None,
    )
