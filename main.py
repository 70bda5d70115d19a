"""
Main entry point for the qtatoms scanner.

This script parses command-line arguments, configures logging, scans the given
QuickTime/MP4 files and writes the atom report. The same entry point is
installed as the `qtatoms` console script.
"""

import sys

from loguru import logger

from qtatoms.cli import main
from qtatoms.config.common import LOGGER_FORMAT


# Configure the logger for initial setup.
# The level is overridden by command-line arguments once they are parsed.
logger.remove()
log_level = "DEBUG" if __debug__ else "INFO"
logger.add(sys.stderr, level=log_level, format=LOGGER_FORMAT)


if __name__ == "__main__":
    sys.exit(main())
