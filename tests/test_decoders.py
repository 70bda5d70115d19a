from datetime import datetime, timezone

import pytest

from atom_builders import (
    IDENTITY_MATRIX,
    make_atom,
    make_extended_atom,
    make_ftyp,
    make_mvhd_payload,
    split_every,
    zero_stream,
)
from qtatoms.config.atoms import MVHD_V0_PAYLOAD_SIZE, MVHD_V1_PAYLOAD_SIZE
from qtatoms.domain.atoms import AtomKind, ContainerAtom, FtypAtom, GenericAtom, MdatAtom, MoovAtom, MvhdAtom, TrakAtom
from qtatoms.domain.exceptions import StructuralOverflowError
from qtatoms.pipeline.quicktime_pipeline import open_quicktime


def scan(data: bytes, chunk_size: int = 4096):
    return list(open_quicktime(split_every(data, chunk_size)))


class TestFtyp:
    def test_example_ftyp(self):
        data = bytes.fromhex("00000014" "66747970" "71742020" "00000200" "71742020")
        (atom,) = scan(data)

        assert isinstance(atom, FtypAtom)
        assert atom.kind is AtomKind.FTYP
        assert atom.header.size == 20
        assert atom.major_brand == b"qt  "
        assert atom.minor_brand == b"\x00\x00\x02\x00"
        assert atom.compatible_brands == [b"qt  "]
        assert atom.major_brand_string == "qt  "
        assert atom.minor_brand_string == "\x00\x00\x02\x00"
        assert not atom.truncated

    def test_many_compatible_brands_in_order(self):
        brands = (b"isom", b"iso2", b"avc1", b"mp41")
        (atom,) = scan(make_ftyp(major=b"isom", minor=b"\x00\x00\x02\x00", compatible=brands), chunk_size=3)
        assert atom.compatible_brand_strings == ["isom", "iso2", "avc1", "mp41"]

    def test_truncated_brand_list_returns_partial_record(self, caplog):
        data = make_ftyp(compatible=(b"qt  ", b"isom", b"mp41"))[:-6]
        (atom,) = scan(data, chunk_size=5)

        assert atom.truncated
        assert atom.major_brand == b"qt  "
        assert atom.minor_brand == b"\x00\x00\x02\x00"
        assert atom.compatible_brands == [b"qt  "]
        assert "partial ftyp" in caplog.text

    def test_stream_ending_after_header(self):
        (atom,) = scan(make_ftyp()[:8])
        assert atom.truncated
        assert atom.major_brand is None
        assert atom.compatible_brands == []

    def test_trailing_bytes_are_skipped(self, caplog):
        ftyp = make_atom("ftyp", b"qt  " + b"\x00\x00\x02\x00" + b"qt  " + b"xy")
        atoms = scan(ftyp + make_atom("free"))

        assert [a.header.type for a in atoms] == [b"ftyp", b"free"]
        assert atoms[0].compatible_brands == [b"qt  "]
        assert "2 trailing byte(s)" in caplog.text

    def test_empty_payload(self):
        (atom,) = scan(make_atom("ftyp"))
        assert atom.major_brand is None
        assert not atom.truncated


class TestMvhd:
    FIELDS = dict(
        creation_time=3_600_000_000,
        modification_time=3_600_000_123,
        time_scale=600,
        duration=72_000,
        preferred_rate=1.5,
        preferred_volume=0.75,
        preview_time=10,
        preview_duration=20,
        poster_time=30,
        selection_time=40,
        selection_duration=50,
        current_time=60,
        next_track_id=3,
    )

    @pytest.mark.parametrize("chunk_size", [1, 7, 4096])
    def test_round_trip(self, chunk_size):
        payload = make_mvhd_payload(**self.FIELDS)
        (atom,) = scan(make_atom("mvhd", payload), chunk_size=chunk_size)

        assert isinstance(atom, MvhdAtom)
        assert atom.version == 0
        assert atom.flags == b"\x00\x00\x00"
        for name, value in self.FIELDS.items():
            assert getattr(atom, name) == value, name
        assert atom.reserved == bytes(10)
        assert atom.matrix_structure == IDENTITY_MATRIX
        assert atom.duration_seconds == 120.0
        assert not atom.truncated

    def test_payload_is_100_bytes(self):
        assert len(make_mvhd_payload()) == MVHD_V0_PAYLOAD_SIZE

    def test_version_1_uses_64_bit_times(self):
        fields = dict(creation_time=2**40, modification_time=2**40 + 1, duration=2**33)
        payload = make_mvhd_payload(version=1, **fields)
        assert len(payload) == MVHD_V1_PAYLOAD_SIZE

        atoms = scan(make_atom("mvhd", payload) + make_atom("free"))

        assert atoms[0].version == 1
        assert atoms[0].creation_time == 2**40
        assert atoms[0].duration == 2**33
        assert atoms[0].next_track_id == 1
        assert atoms[1].header.type == b"free"

    def test_epoch_conversion(self):
        (atom,) = scan(make_atom("mvhd", make_mvhd_payload(creation_time=0, modification_time=86_400)))
        assert atom.creation_datetime == datetime(1904, 1, 1, tzinfo=timezone.utc)
        assert atom.modification_datetime == datetime(1904, 1, 2, tzinfo=timezone.utc)

    def test_leftover_bytes_are_skipped_with_warning(self, caplog):
        payload = make_mvhd_payload(next_track_id=9) + b"extra"
        atoms = scan(make_atom("mvhd", payload) + make_atom("free"))

        assert atoms[0].next_track_id == 9
        assert not atoms[0].truncated
        assert atoms[1].header.type == b"free"
        assert "5 bytes remaining" in caplog.text

    def test_truncated_stream_returns_partial_record(self):
        data = make_atom("mvhd", make_mvhd_payload(time_scale=1000, duration=5000))[:8 + 30]
        (atom,) = scan(data, chunk_size=4)

        assert atom.truncated
        assert atom.time_scale == 1000
        assert atom.duration == 5000
        assert atom.preferred_rate == 1.0
        assert atom.preferred_volume == 1.0
        assert atom.reserved is None
        assert atom.next_track_id is None

    def test_declared_payload_shorter_than_layout(self):
        short = make_mvhd_payload(time_scale=90_000)[:22]
        atoms = scan(make_atom("mvhd", short) + make_atom("free"))

        assert atoms[0].truncated
        assert atoms[0].time_scale == 90_000
        assert atoms[0].preferred_rate is None
        assert atoms[1].header.type == b"free"


class TestContainers:
    def test_moov_children_fill_exactly(self):
        trak1 = make_atom("trak", make_atom("tkhd", bytes(84)))
        trak2 = make_atom("trak", make_atom("tkhd", bytes(84)) + make_atom("edts", make_atom("elst", bytes(16))))
        moov = make_atom("moov", make_atom("mvhd", make_mvhd_payload()) + trak1 + make_atom("iods", bytes(16)) + trak2)

        (atom,) = scan(moov, chunk_size=11)

        assert isinstance(atom, MoovAtom)
        assert [c.header.type for c in atom.children] == [b"mvhd", b"trak", b"iods", b"trak"]
        assert isinstance(atom.mvhd, MvhdAtom)
        assert atom.traks == [atom.children[1], atom.children[3]]
        assert isinstance(atom.children[2], GenericAtom)
        assert isinstance(atom.traks[1].children[1], ContainerAtom)
        assert not atom.truncated

    def test_overflowing_child_raises_and_yields_no_container(self):
        child = make_atom("tkhd", bytes(84))
        # The container declares 10 bytes fewer than its child occupies.
        trak = make_atom("trak", child, size=8 + len(child) - 10)
        scanner = open_quicktime([make_ftyp() + trak + bytes(10)])

        atoms = []
        with pytest.raises(StructuralOverflowError) as exc_info:
            for atom in scanner:
                atoms.append(atom)

        assert [a.header.type for a in atoms] == [b"ftyp"]
        assert exc_info.value.container_type == "trak"
        assert exc_info.value.overflow == 10
        assert not any(isinstance(a, TrakAtom) for a in scanner.arena)

    def test_overflow_in_nested_container_aborts_ancestors(self):
        bad_trak = make_atom("trak", make_atom("tkhd", bytes(20)), size=20)
        moov = make_atom("moov", bad_trak + bytes(8))
        with pytest.raises(StructuralOverflowError):
            scan(moov)

    def test_overflow_removes_pulled_children_from_arena(self):
        bad_trak = make_atom("trak", make_atom("tkhd", bytes(20)), size=20)
        moov = make_atom("moov", make_atom("mvhd", make_mvhd_payload()) + bad_trak)
        scanner = open_quicktime([make_ftyp() + moov])

        with pytest.raises(StructuralOverflowError):
            list(scanner)

        assert [a.header.type for a in scanner.arena] == [b"ftyp"]

    def test_empty_container_has_no_children(self):
        atoms = scan(make_atom("moov") + make_atom("trak") + make_atom("free"))
        assert atoms[0].children == []
        assert atoms[0].mvhd is None
        assert atoms[1].children == []
        assert atoms[2].header.type == b"free"

    def test_second_mvhd_is_kept_but_not_promoted(self, caplog):
        first = make_atom("mvhd", make_mvhd_payload(next_track_id=2))
        second = make_atom("mvhd", make_mvhd_payload(next_track_id=7))
        (moov,) = scan(make_atom("moov", first + second))

        assert moov.mvhd.next_track_id == 2
        assert len(moov.children) == 2
        assert "additional mvhd" in caplog.text

    def test_container_cut_short_is_truncated(self):
        moov = make_atom("moov", make_atom("mvhd", make_mvhd_payload()) + make_atom("trak", make_atom("tkhd", bytes(32))))
        (atom,) = scan(moov[:-20])

        assert atom.truncated
        assert atom.mvhd is not None
        assert atom.traks[0].truncated


class TestMdat:
    def test_payload_is_skipped(self):
        atoms = scan(make_atom("mdat", b"\xff" * 1000) + make_atom("free"), chunk_size=64)

        assert isinstance(atoms[0], MdatAtom)
        assert atoms[0].header.data_size == 1000
        assert not hasattr(atoms[0], "data")
        assert atoms[1].header.type == b"free"

    def test_extended_mdat_beyond_32_bits(self):
        payload_size = 2**32 + 3
        header = make_extended_atom("mdat", extended_size=16 + payload_size)
        chunks = [header, *zero_stream(payload_size, tail=make_atom("free"))]

        atoms = list(open_quicktime(chunks))

        assert atoms[0].header.data_size == payload_size
        assert not atoms[0].truncated
        assert atoms[1].header.type == b"free"
        assert sum(a.header.total_size for a in atoms) == 16 + payload_size + 8

    def test_mdat_cut_short_is_truncated(self, caplog):
        (atom,) = scan(make_atom("mdat", bytes(100), size=8 + 500))
        assert atom.truncated
        assert "stream ended" in caplog.text
