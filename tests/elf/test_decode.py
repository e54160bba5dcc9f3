"""Tests for the ELF64 decode pipeline.

Most cases use synthetic images from elf_test_utils; the end-to-end class
also decodes a real binary from the host when one is available.
"""

import logging
import struct
from pathlib import Path

import pytest

from elf_test_utils import build_elf_image, make_ehdr, make_phdr, make_shdr
from elfdump.elf import (
    BadMagicError,
    ElfDecodeError,
    InvalidStringTableIndexError,
    MalformedStringTableError,
    ObjectFile,
    SectionType,
    SegmentType,
    TruncatedInputError,
    decode_file_header,
    decode_object_file,
    decode_program_header_entry,
    decode_program_header_table,
    decode_section_header_entry,
    decode_section_header_table,
    decode_string_table,
    parse_object_file,
    parse_program_header_table,
    parse_section_header_table,
    parse_string_table,
)


class TestEntryDecoders:
    """Tests for the Optional-returning single record decoders."""

    def test_header_short_input_is_none(self):
        assert decode_file_header(b"\x7fELF" + b"\x00" * 59) is None

    def test_header_64_bytes_decodes(self):
        assert decode_file_header(b"\x00" * 64) is not None

    def test_program_entry(self):
        assert decode_program_header_entry(make_phdr(p_type=2)).segment_type is (
            SegmentType.DYNAMIC
        )
        assert decode_program_header_entry(b"\x00" * 55) is None

    def test_section_entry(self):
        assert decode_section_header_entry(make_shdr(sh_type=3)).section_type is (
            SectionType.STRTAB
        )
        assert decode_section_header_entry(b"\x00" * 63) is None


class TestProgramHeaderTable:
    """Tests for parse/decode_program_header_table."""

    def test_entries_in_file_order(self):
        region = make_phdr(p_type=6) + make_phdr(p_type=3) + make_phdr(p_type=1)
        table = parse_program_header_table(region, 56, 3)

        assert [p.segment_type for p in table] == [
            SegmentType.PHDR,
            SegmentType.INTERP,
            SegmentType.LOAD,
        ]
        assert table.declared_count == 3
        assert table.dropped == ()

    def test_zero_entries(self):
        table = parse_program_header_table(b"", 56, 0)
        assert len(table) == 0

    def test_region_too_small_fails(self):
        region = make_phdr() + make_phdr()[:55]
        with pytest.raises(TruncatedInputError, match="2 x 56 = 112"):
            parse_program_header_table(region, 56, 2)
        assert decode_program_header_table(region, 56, 2) is None

    def test_only_declared_count_decoded(self):
        """Extra bytes past entry_count * entry_size never become entries."""
        region = make_phdr(p_type=1) * 4
        table = parse_program_header_table(region, 56, 2)
        assert len(table) == 2

    def test_larger_entry_size_uses_stride(self):
        """Entries are sliced at entry_size, trailing padding is ignored."""
        region = make_phdr(p_type=1) + b"\xee" * 8 + make_phdr(p_type=4) + b"\xee" * 8
        table = parse_program_header_table(region, 64, 2)
        assert [p.segment_type for p in table] == [SegmentType.LOAD, SegmentType.NOTE]

    def test_undersized_entries_are_dropped(self, caplog):
        """Entries smaller than a program header are skipped and reported."""
        with caplog.at_level(logging.WARNING, logger="elfdump.elf.decode"):
            table = parse_program_header_table(b"\x00" * 80, 40, 2)

        assert len(table) == 0
        assert table.declared_count == 2
        assert [(d.index, d.offset) for d in table.dropped] == [(0, 0), (1, 40)]
        assert "program header" in table.dropped[0].reason
        assert "Skipping program header entry 0" in caplog.text

    def test_strict_fails_on_undersized_entries(self):
        with pytest.raises(TruncatedInputError, match="program header entry 0"):
            parse_program_header_table(b"\x00" * 80, 40, 2, strict=True)
        assert decode_program_header_table(b"\x00" * 80, 40, 2, strict=True) is None


class TestSectionHeaderTable:
    """Tests for parse/decode_section_header_table."""

    def test_entries_in_file_order(self):
        region = make_shdr() + make_shdr(sh_type=1) + make_shdr(sh_type=3)
        table = parse_section_header_table(region, 64, 3)

        assert [s.section_type for s in table] == [
            SectionType.UNKNOWN,
            SectionType.PROGBITS,
            SectionType.STRTAB,
        ]

    def test_region_too_small_fails(self):
        with pytest.raises(TruncatedInputError, match="section header table"):
            parse_section_header_table(make_shdr(), 64, 2)
        assert decode_section_header_table(make_shdr(), 64, 2) is None

    def test_undersized_entries_are_dropped(self):
        table = decode_section_header_table(b"\x00" * 120, 60, 2)
        assert table is not None
        assert len(table) == 0
        assert len(table.dropped) == 2

    def test_larger_entry_size_uses_stride(self):
        """Entries are sliced at entry_size, trailing padding is ignored."""
        region = make_shdr(sh_type=1) + b"\xee" * 16 + make_shdr(sh_type=8) + b"\xee" * 16
        table = parse_section_header_table(region, 80, 2)

        assert [s.section_type for s in table] == [
            SectionType.PROGBITS,
            SectionType.NOBITS,
        ]
        assert table.dropped == ()


class TestStringTable:
    """Tests for parse/decode_string_table."""

    def test_simple_table(self):
        table = parse_string_table(b"\x00ab\x00\x00")
        assert table.strings == ("", "ab", "")
        assert table.data == b"\x00ab\x00\x00"

    def test_unterminated_table_fails(self):
        with pytest.raises(MalformedStringTableError, match="unterminated"):
            parse_string_table(b"\x00ab")
        assert decode_string_table(b"\x00ab") is None

    def test_missing_closing_sentinel_fails(self):
        """A final NUL without a following empty string is not enough."""
        assert decode_string_table(b"\x00ab\x00") is None
        assert decode_string_table(b"\x00") is None

    def test_empty_region_fails(self):
        with pytest.raises(MalformedStringTableError, match="empty"):
            parse_string_table(b"")

    def test_leading_byte_must_be_nul(self):
        with pytest.raises(MalformedStringTableError, match="start with NUL"):
            parse_string_table(b"a\x00\x00")

    def test_only_sentinels(self):
        assert parse_string_table(b"\x00\x00").strings == ("", "")

    def test_stops_at_sentinel(self):
        """Bytes after the closing empty string are not part of the table."""
        table = parse_string_table(b"\x00.text\x00.data\x00\x00garbage\x00")
        assert table.strings == ("", ".text", ".data", "")
        assert table.data == b"\x00.text\x00.data\x00\x00"

    def test_bytes_map_one_to_one(self):
        """Non-ASCII bytes become single characters, not multi-byte decodes."""
        table = parse_string_table(b"\x00\xc3\xa9\xff\x00\x00")
        assert table.strings[1] == "\xc3\xa9\xff"
        assert len(table.strings[1]) == 3

    def test_first_and_last_are_empty(self):
        table = parse_string_table(b"\x00a\x00bb\x00ccc\x00\x00")
        assert table.strings[0] == ""
        assert table.strings[-1] == ""
        assert table.strings[1:-1] == ("a", "bb", "ccc")


class TestObjectFile:
    """Tests for parse/decode_object_file orchestration."""

    def test_sample_image(self, sample_image: bytes):
        elf = parse_object_file(sample_image)

        assert isinstance(elf, ObjectFile)
        assert str(elf.header.object_file_type) == "executable"
        assert elf.header.e_entry == 0x401000
        assert [p.segment_type for p in elf.program_headers] == [
            SegmentType.PHDR,
            SegmentType.LOAD,
        ]
        assert elf.program_headers[1].readable
        assert elf.program_headers[1].executable
        assert len(elf.section_headers) == 5
        assert elf.string_table.strings == (
            "",
            ".text",
            ".data",
            ".bss",
            ".shstrtab",
            "",
        )

    def test_section_names_resolved(self, sample_image: bytes):
        elf = parse_object_file(sample_image)

        assert [name for name, _ in elf.iter_named_sections()] == [
            "",
            ".text",
            ".data",
            ".bss",
            ".shstrtab",
        ]
        bss = elf.find_section(".bss")
        assert bss is not None
        assert bss.is_nobits
        assert bss.sh_addr == 0x402020
        assert elf.section_name(1) == ".text"
        assert elf.find_section(".shstrtab").section_type is SectionType.STRTAB

    def test_deterministic(self, sample_image: bytes):
        assert parse_object_file(sample_image) == parse_object_file(sample_image)

    def test_undefined_string_table_index_with_sections(self, sample_image: bytes):
        """SHN_UNDEF means the file has no section name string table."""
        data = bytearray(sample_image)
        struct.pack_into("<H", data, 62, 0)
        elf = parse_object_file(bytes(data))

        assert len(elf.section_headers) == 5
        assert len(elf.string_table) == 0
        assert elf.section_name(1) == ""
        assert elf.find_section(".text") is None

    def test_minimal_header_has_empty_tables(self, minimal_header: bytes):
        """No tables and SHN_UNDEF string table index yields empty tables."""
        elf = parse_object_file(minimal_header)

        assert str(elf.header.architecture) == "64-bit"
        assert str(elf.header.data_encoding) == "little-endian"
        assert str(elf.header.machine) == "Advanced Micro Devices X86-64"
        assert len(elf.program_headers) == 0
        assert len(elf.section_headers) == 0
        assert len(elf.string_table) == 0

    def test_truncated_header(self):
        with pytest.raises(TruncatedInputError):
            parse_object_file(b"\x7fELF")
        assert decode_object_file(b"\x7fELF") is None

    def test_truncated_program_table_aborts(self, minimal_header: bytes):
        """phnum=1 at phoff=64 with only 40 bytes left fails the whole decode."""
        data = bytearray(minimal_header)
        struct.pack_into("<Q", data, 32, 64)  # e_phoff
        struct.pack_into("<H", data, 56, 1)  # e_phnum
        data += b"\x00" * 40

        with pytest.raises(TruncatedInputError, match="program header table"):
            parse_object_file(bytes(data))
        assert decode_object_file(bytes(data)) is None

    def test_program_table_offset_past_end(self):
        data = make_ehdr(e_phoff=0x10000, e_phnum=1)
        assert decode_object_file(data) is None

    def test_truncated_section_table_aborts(self):
        data = make_ehdr(e_shoff=64, e_shnum=2, e_shstrndx=1) + make_shdr()
        with pytest.raises(TruncatedInputError, match="section header table"):
            parse_object_file(data)

    def test_string_table_index_out_of_range(self, sample_image: bytes):
        data = bytearray(sample_image)
        struct.pack_into("<H", data, 62, 5)  # e_shstrndx, only 5 sections

        with pytest.raises(InvalidStringTableIndexError, match="out of range"):
            parse_object_file(bytes(data))
        assert decode_object_file(bytes(data)) is None

    def test_string_table_index_extended(self, sample_image: bytes):
        """SHN_XINDEX moves the real index into section 0's sh_link."""
        data = bytearray(sample_image)
        struct.pack_into("<H", data, 62, 0xFFFF)
        shoff = struct.unpack_from("<Q", data, 40)[0]
        struct.pack_into("<I", data, shoff + 40, 4)  # section 0 sh_link

        elf = parse_object_file(bytes(data))
        assert elf.find_section(".text") is not None

    def test_string_table_index_extended_without_sections(self):
        data = make_ehdr(e_shstrndx=0xFFFF)
        with pytest.raises(InvalidStringTableIndexError, match="SHN_XINDEX"):
            parse_object_file(data)

    def test_malformed_string_table_aborts(self, sample_image: bytes):
        """Dropping the closing sentinel fails the whole decode."""
        with pytest.raises(MalformedStringTableError):
            parse_object_file(sample_image[:-1])

    def test_string_table_offset_past_end(self, sample_image: bytes):
        data = bytearray(sample_image)
        shoff = struct.unpack_from("<Q", data, 40)[0]
        struct.pack_into("<Q", data, shoff + 4 * 64 + 24, len(data) + 100)

        with pytest.raises(MalformedStringTableError, match="empty"):
            parse_object_file(bytes(data))

    def test_bad_magic_rejected(self, sample_image: bytes):
        data = b"\x7fELG" + sample_image[4:]
        with pytest.raises(BadMagicError, match="7f 45 4c 47"):
            parse_object_file(data)
        assert decode_object_file(data) is None

    def test_bad_magic_accepted_when_not_validated(self, sample_image: bytes):
        data = b"\x00\x00\x00\x00" + sample_image[4:]
        elf = parse_object_file(data, validate_magic=False)
        assert not elf.header.has_valid_magic
        assert len(elf.section_headers) == 5

    def test_non_elf64_class_warns(self, caplog, minimal_header: bytes):
        data = bytearray(minimal_header)
        data[4] = 1  # ELFCLASS32
        with caplog.at_level(logging.WARNING, logger="elfdump.elf.decode"):
            elf = parse_object_file(bytes(data))
        assert str(elf.header.architecture) == "32-bit"
        assert "ELF class is 32-bit" in caplog.text

    def test_dropped_entries_propagate(self):
        """Lenient decoding keeps going; strict decoding fails."""
        data = build_elf_image(
            phdrs=[make_phdr()],
            sections=[(".text", make_shdr(sh_type=1))],
            e_phentsize=40,
        )
        elf = parse_object_file(data)
        assert len(elf.program_headers) == 0
        assert elf.program_headers.declared_count == 1
        assert len(elf.program_headers.dropped) == 1
        assert elf.find_section(".text") is not None

        with pytest.raises(TruncatedInputError):
            parse_object_file(data, strict=True)

    def test_all_failures_are_decode_errors(self):
        for bad in (b"", b"\x00" * 10, make_ehdr(e_shnum=1, e_shoff=64)):
            with pytest.raises(ElfDecodeError):
                parse_object_file(bad)


class TestRealBinary:
    """Decode a real ELF64 binary from the host."""

    def test_host_binary(self, host_elf_binary: Path):
        data = host_elf_binary.read_bytes()
        elf = parse_object_file(data)

        assert elf.header.has_valid_magic
        assert str(elf.header.architecture) == "64-bit"
        assert len(elf.program_headers) == elf.header.e_phnum
        assert elf.program_headers.dropped == ()
        assert any(
            p.segment_type is SegmentType.LOAD for p in elf.program_headers
        )

        if elf.header.e_shnum and elf.header.e_shstrndx:
            assert len(elf.section_headers) == elf.header.e_shnum
            assert elf.string_table.strings[0] == ""
            assert elf.string_table.strings[-1] == ""
            assert elf.find_section(".shstrtab") is not None
