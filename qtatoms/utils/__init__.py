"""
Utilities Package for qtatoms.

This package contains helper modules that provide common, reusable functionality
across the package. They are not specific to any single atom type.

Modules:
    - format_utils.py: Contains helper functions for formatting data, such as
      converting byte counts, durations or type codes into human-readable strings.
    - stream_utils.py: Adapts paths, file objects and byte strings to chunk
      sources, and duplicates a chunk source into independent cursors.
"""
