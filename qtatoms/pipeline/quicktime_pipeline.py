"""
Composition of the QuickTime parser and the scan pipeline built on it.

`build_parser` registers a decoder table on a base scanner and `open_quicktime`
uses it to produce a scanner that knows the default atom set. `ScanPipeline`
runs that parser over files and collects a serializable report per file,
which `ScanReport` writes as YAML.
"""
import hashlib
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml
from loguru import logger

from ..config.common import DEFAULT_REPORT_FILE_NAME, ScannerSettings
from ..domain.atoms import AtomKind, AtomRecord, walk
from ..domain.exceptions import QtAtomsException
from ..services.decoders import DEFAULT_DECODERS, decode_container
from ..services.scanner import AtomDecoder, AtomScanner, TypeCode
from ..utils.format_utils import format_timedelta, format_type_code, formatted_size
from ..utils.stream_utils import ChunkSource, iter_chunks, tap_stream


def build_parser(scanner: AtomScanner, decoders: Mapping[TypeCode, AtomDecoder]) -> AtomScanner:
    """
    Registers every decoder of the table on the scanner and returns it.

    Later entries replace earlier registrations for the same type code, so a
    caller can layer its own decoders over the defaults.
    """
    for type_code, decoder in decoders.items():
        scanner.define_parser(type_code, decoder)
    return scanner


def default_decoders(settings: Optional[ScannerSettings] = None) -> Dict[TypeCode, AtomDecoder]:
    """Returns the default decoder table: the known atoms plus the configured containers."""
    settings = settings or ScannerSettings()
    decoders: Dict[TypeCode, AtomDecoder] = {code: decode_container for code in settings.container_types}
    decoders.update(DEFAULT_DECODERS)
    return decoders


def open_quicktime(
    source: ChunkSource,
    extra_decoders: Optional[Mapping[TypeCode, AtomDecoder]] = None,
    settings: Optional[ScannerSettings] = None,
) -> AtomScanner:
    """
    Creates a ready-to-iterate QuickTime parser.

    Args:
        source: A path, a bytes object, a binary file object, or an iterable of
                byte chunks.
        extra_decoders: Decoders registered after the defaults, overriding them
                        for the same type code.
        settings: Scanner settings. Defaults are used when omitted.

    Returns:
        An `AtomScanner` with the default decoders registered. More decoders can
        be added with `define_parser` before iteration begins.
    """
    settings = settings or ScannerSettings()
    scanner = AtomScanner(iter_chunks(source, settings.chunk_size), settings=settings)
    build_parser(scanner, default_decoders(settings))
    if extra_decoders:
        build_parser(scanner, extra_decoders)
    return scanner


def _printable(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return format_type_code(bytes(value)) if len(value) == 4 else bytes(value).hex()
    return value


def _decoded_fields(atom: AtomRecord) -> Dict[str, Any]:
    if atom.kind is AtomKind.FTYP:
        return {
            "major_brand": format_type_code(atom.major_brand),
            "minor_brand": format_type_code(atom.minor_brand),
            "compatible_brands": [format_type_code(b) for b in atom.compatible_brands],
        }

    if atom.kind is AtomKind.MVHD:
        fields = {
            "version": atom.version,
            "creation_time": atom.creation_datetime.isoformat() if atom.creation_datetime else None,
            "modification_time": (
                atom.modification_datetime.isoformat() if atom.modification_datetime else None
            ),
            "time_scale": atom.time_scale,
            "duration": atom.duration,
            "preferred_rate": atom.preferred_rate,
            "preferred_volume": atom.preferred_volume,
            "next_track_id": atom.next_track_id,
        }
        if atom.duration_seconds is not None:
            fields["duration_hms"] = format_timedelta(timedelta(seconds=atom.duration_seconds))
        return {k: v for k, v in fields.items() if v is not None}

    if atom.kind is AtomKind.MOOV:
        return {"has_mvhd": atom.mvhd is not None, "track_count": len(atom.traks)}

    if atom.kind is AtomKind.GENERIC:
        return {k: _printable(v) for k, v in atom.fields.items()}

    return {}


def atom_to_dict(atom: AtomRecord) -> Dict[str, Any]:
    """
    Converts an atom and its descendants into plain data for YAML or JSON output.

    Payload bytes are never included; only header values and decoded fields.
    """
    header = atom.header
    entry: Dict[str, Any] = {
        "type": format_type_code(header.type),
        "kind": atom.kind.value,
        "offset": header.offset,
        "size": header.total_size,
    }
    if header.uses_extended_size:
        entry["extended_size"] = True
    if atom.truncated:
        entry["truncated"] = True

    fields = _decoded_fields(atom)
    if fields:
        entry["fields"] = fields
    if atom.children:
        entry["children"] = [atom_to_dict(child) for child in atom.children]
    return entry


class ScanReport:
    """
    Collects per-file scan results and writes them as one YAML document.

    Attributes:
        entries (List[Dict[str, Any]]): One entry per scanned file, in scan order.
    """

    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    def add(self, entry: Dict[str, Any]):
        self.entries.append(entry)

    @property
    def failed(self) -> List[Dict[str, Any]]:
        return [entry for entry in self.entries if entry.get("status") != "ok"]

    def to_yaml(self) -> str:
        return yaml.dump(
            {"files": self.entries}, default_flow_style=False, sort_keys=False, allow_unicode=True
        )

    def write(self, output_path: Path = Path(DEFAULT_REPORT_FILE_NAME)):
        """
        Writes the report to `output_path`, creating parent directories as needed.

        Raises:
            OSError: If the file cannot be written.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with output_path.open("w", encoding="utf-8") as f:
            f.write(self.to_yaml())
        logger.info(f"Scan report written to '{output_path}' ({len(self.entries)} file(s)).")


class ScanPipeline:
    """
    Scans QuickTime files and records their atom trees in a `ScanReport`.

    A file whose scan fails with a qtatoms error, or that cannot be opened, is
    recorded with status "error" and the pipeline moves on to the next file.
    When `compute_sha256` is set, every chunk the scan pulls is also fed to a
    SHA-256 digest, and the chunks the scan left unread are hashed afterwards.
    Only one chunk is held in memory either way.
    """

    def __init__(
        self,
        settings: Optional[ScannerSettings] = None,
        compute_sha256: bool = False,
        extra_decoders: Optional[Mapping[TypeCode, AtomDecoder]] = None,
    ):
        self.settings = settings or ScannerSettings()
        self.compute_sha256 = compute_sha256
        self.extra_decoders = dict(extra_decoders or {})
        self.report = ScanReport()

    def run(self, paths: List[Path]) -> ScanReport:
        logger.info(f"Scanning {len(paths)} file(s).")
        for path in paths:
            self.report.add(self.scan_file(Path(path)))
        failed = len(self.report.failed)
        if failed:
            logger.warning(f"{failed} of {len(paths)} file(s) could not be scanned completely.")
        return self.report

    def scan_file(self, path: Path) -> Dict[str, Any]:
        """
        Scans one file and returns its report entry.

        Args:
            path: The file to scan.

        Returns:
            A dictionary with the path, status, top-level atoms and, on failure,
            the error message.
        """
        entry: Dict[str, Any] = {"path": str(path), "status": "ok"}
        if not path.is_file():
            logger.error(f"Not a file: '{path}'")
            entry.update(status="error", error=f"not a file: {path}")
            return entry

        chunks = iter_chunks(path, self.settings.chunk_size)
        digest = hashlib.sha256() if self.compute_sha256 else None
        if digest is not None:
            chunks = tap_stream(chunks, digest.update)

        scanner = open_quicktime(chunks, extra_decoders=self.extra_decoders, settings=self.settings)
        atoms: List[Dict[str, Any]] = []
        atom_count = 0
        try:
            try:
                for atom in scanner:
                    logger.debug(f"{atom.header.type_string} {formatted_size(atom.header.total_size)}")
                    atoms.append(atom_to_dict(atom))
                    atom_count += sum(1 for _ in walk(atom))
            except (QtAtomsException, OSError) as e:
                logger.error(f"Scan of '{path}' failed at offset {scanner.reader.position}: {e}")
                entry.update(status="error", error=f"{type(e).__name__}: {e}")
                if isinstance(e, OSError):
                    # The chunk source itself failed; its digest would be incomplete.
                    digest = None

            if digest is not None:
                try:
                    # Bytes the scan never pulled still belong to the file's digest.
                    for _ in chunks:
                        pass
                    entry["sha256"] = digest.hexdigest()
                except OSError as e:
                    logger.error(f"Could not hash '{path}': {e}")
        finally:
            scanner.reader.close()

        entry["atoms"] = atoms
        entry["atom_count"] = atom_count
        entry["bytes_scanned"] = scanner.reader.position
        logger.info(
            f"'{path.name}': {len(atoms)} top-level atom(s), {atom_count} total, "
            f"{formatted_size(entry['bytes_scanned'])} scanned"
        )
        return entry
