"""
Services Package for qtatoms.

This package contains the parsing machinery. Each module performs one layer of
the work, and the layers only talk to the one directly below:

- **Byte Reader (`ChunkedByteReader`):**
  Turns a sequence of byte chunks of arbitrary length into exact-length reads
  and skips, including skips larger than 4 GB.

- **Scanner (`AtomScanner`):**
  Reads atom headers, dispatches each payload to the decoder registered for its
  type code, and skips payloads nobody registered a decoder for.

- **Decoders (`decode_ftyp`, `decode_mvhd`, `decode_moov`, ...):**
  Turn one atom's payload into a typed record. Container decoders recurse into
  the scanner to read their children.
"""
