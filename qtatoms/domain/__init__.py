"""
This package contains the core domain models of qtatoms.

The domain layer represents the fundamental concepts of the QuickTime container
format as this package sees them. It is independent of the reader, the scanner
and the command line, which keeps the record types easy to construct in tests
and easy to consume from presentation code.

Modules:
    exceptions.py: Defines custom exception types for stream, structure and
                   decoder failures.
    atoms.py: Contains the `AtomHeader`, the tagged record types collected in
              `AtomRecord`, and the `AtomArena` that resolves parent relations.
"""
