"""
Configuration Package for qtatoms.

This package centralizes all the static configuration settings for the scanner.
By separating configuration from the parsing logic, it becomes easier to manage
and modify parameters without changing the core code.

This package includes settings for:
- Logging format and default level.
- Stream chunking and the bounded skip step used for 64-bit payloads.
- The QuickTime header layout, known type codes and the movie header layout.
- User-overridable scanner settings loaded from 'config.user.yaml'.
"""
