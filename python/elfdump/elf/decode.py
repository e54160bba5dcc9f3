"""
ELF64 decode pipeline.

Decoding is a single forward pass over an in-memory buffer:

    FileHeader -> ProgramHeaderTable -> SectionHeaderTable -> StringTable

Each stage takes the offsets and counts it needs from the stages before it,
and the first failure aborts the whole decode. No partial ObjectFile is
ever returned.

Two calling styles are provided:
- parse_* raise an ElfDecodeError subclass naming what went wrong
- decode_* return None instead, for callers that only need success/failure
"""

import logging
from typing import Callable, TypeVar

from .errors import (
    BadMagicError,
    ElfDecodeError,
    InvalidStringTableIndexError,
    MalformedStringTableError,
    TruncatedInputError,
)
from .types import (
    SHN_UNDEF,
    SHN_XINDEX,
    DataEncoding,
    DroppedEntry,
    ElfClass,
    FileHeader,
    ObjectFile,
    ProgramHeaderEntry,
    ProgramHeaderTable,
    SectionHeaderEntry,
    SectionHeaderTable,
    StringTable,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Buffer = bytes | bytearray


def _or_none(parse: Callable[..., T], *args, **kwargs) -> T | None:
    """Run a parse_* function, mapping decode failures to None."""
    try:
        return parse(*args, **kwargs)
    except ElfDecodeError as e:
        logger.debug("%s failed: %s", parse.__name__, e)
        return None


# =============================================================================
# Tables
# =============================================================================


def _parse_entries(
    region: Buffer,
    entry_size: int,
    entry_count: int,
    entry_cls: type[T],
    what: str,
    strict: bool,
) -> tuple[tuple[T, ...], tuple[DroppedEntry, ...]]:
    """Decode entry_count fixed-size entries laid out back to back in region."""
    table_size = entry_size * entry_count
    if table_size > len(region):
        raise TruncatedInputError(
            f"{what} table needs {entry_count} x {entry_size} = {table_size} "
            f"bytes, only {len(region)} available"
        )

    entries: list[T] = []
    dropped: list[DroppedEntry] = []
    for i in range(entry_count):
        start = i * entry_size
        try:
            entries.append(entry_cls.from_bytes(region[start : start + entry_size]))
        except TruncatedInputError as e:
            if strict:
                raise TruncatedInputError(f"{what} entry {i}: {e}") from e
            logger.warning("Skipping %s entry %d at +0x%x: %s", what, i, start, e)
            dropped.append(DroppedEntry(index=i, offset=start, reason=str(e)))

    return tuple(entries), tuple(dropped)


def parse_program_header_table(
    region: Buffer,
    entry_size: int,
    entry_count: int,
    *,
    strict: bool = False,
) -> ProgramHeaderTable:
    """Decode a program header table.

    Args:
        region: Bytes starting at the table (e_phoff) up to the end of the file
        entry_size: e_phentsize
        entry_count: e_phnum
        strict: Fail instead of skipping entries that cannot be decoded

    Returns:
        ProgramHeaderTable in file order; entries that could not be decoded
        are listed in its dropped field

    Raises:
        TruncatedInputError: If the declared table does not fit in region
    """
    entries, dropped = _parse_entries(
        region, entry_size, entry_count, ProgramHeaderEntry, "program header", strict
    )
    return ProgramHeaderTable(
        entries=entries, declared_count=entry_count, dropped=dropped
    )


def parse_section_header_table(
    region: Buffer,
    entry_size: int,
    entry_count: int,
    *,
    strict: bool = False,
) -> SectionHeaderTable:
    """Decode a section header table.

    Same contract as parse_program_header_table, using e_shentsize/e_shnum.
    """
    entries, dropped = _parse_entries(
        region, entry_size, entry_count, SectionHeaderEntry, "section header", strict
    )
    return SectionHeaderTable(
        entries=entries, declared_count=entry_count, dropped=dropped
    )


# =============================================================================
# String table
# =============================================================================


def parse_string_table(region: Buffer) -> StringTable:
    """Decode a NUL-delimited string table.

    The region starts at the table's file offset and runs to the end of the
    buffer, since the table length is not known here. The table opens with
    a NUL (the leading empty string) and closes with an empty string, i.e.
    two consecutive NULs; scanning stops at that sentinel.

    Bytes are mapped to characters one to one (latin-1).

    Raises:
        MalformedStringTableError: If region is empty, does not start with
            NUL, or ends before the closing empty string
    """
    if not region:
        raise MalformedStringTableError("String table is empty")
    if region[0] != 0:
        raise MalformedStringTableError(
            f"String table must start with NUL, found 0x{region[0]:02x}"
        )

    strings = [""]
    pos = 1
    while True:
        end = region.find(b"\x00", pos)
        if end == -1:
            raise MalformedStringTableError(
                f"String table unterminated after {len(strings)} string(s)"
            )
        string = bytes(region[pos:end]).decode("latin-1")
        strings.append(string)
        if not string:
            break
        pos = end + 1

    return StringTable(strings=tuple(strings), data=bytes(region[: end + 1]))


# =============================================================================
# Object file
# =============================================================================


def _resolve_string_table_index(
    header: FileHeader, sections: SectionHeaderTable
) -> int | None:
    """Get the section index of the section-name string table, if any."""
    index = header.e_shstrndx
    if index == SHN_UNDEF:
        return None
    if index == SHN_XINDEX:
        # Real index lives in sh_link of the first section header
        if not sections:
            raise InvalidStringTableIndexError(
                "e_shstrndx is SHN_XINDEX but there is no section 0"
            )
        index = sections[0].sh_link
    if index >= len(sections):
        raise InvalidStringTableIndexError(
            f"e_shstrndx {index} out of range for {len(sections)} section(s)"
        )
    return index


def parse_object_file(
    data: Buffer,
    *,
    validate_magic: bool = True,
    strict: bool = False,
) -> ObjectFile:
    """Decode a complete ELF64 little-endian object from memory.

    Args:
        data: The whole file
        validate_magic: Reject buffers not starting with 7F 45 4C 46
        strict: Fail on table entries that cannot be decoded instead of
            skipping them

    Returns:
        ObjectFile owning the header, both tables and the string table

    Raises:
        ElfDecodeError: Subclass describing the first stage that failed
    """
    header = FileHeader.from_bytes(data)
    if validate_magic and not header.has_valid_magic:
        raise BadMagicError(f"Not an ELF file (bad magic {header.magic.hex(' ')})")
    if header.architecture is not ElfClass.ELF64:
        logger.warning("ELF class is %s, decoding as 64-bit", header.architecture)
    if header.data_encoding is not DataEncoding.LITTLE_ENDIAN:
        logger.warning(
            "Data encoding is %s, decoding as little-endian", header.data_encoding
        )
    logger.debug(
        "Header: %s %s, %d program header(s) at 0x%x, %d section(s) at 0x%x",
        header.object_file_type,
        header.machine,
        header.e_phnum,
        header.e_phoff,
        header.e_shnum,
        header.e_shoff,
    )

    program_headers = parse_program_header_table(
        data[header.e_phoff :], header.e_phentsize, header.e_phnum, strict=strict
    )
    logger.debug("Decoded %d program header(s)", len(program_headers))

    section_headers = parse_section_header_table(
        data[header.e_shoff :], header.e_shentsize, header.e_shnum, strict=strict
    )
    logger.debug("Decoded %d section header(s)", len(section_headers))

    index = _resolve_string_table_index(header, section_headers)
    if index is None:
        logger.debug("No section name string table (e_shstrndx is SHN_UNDEF)")
        string_table = StringTable()
    else:
        offset = section_headers[index].sh_offset
        string_table = parse_string_table(data[offset:])
        logger.debug(
            "Decoded %d string(s) from section %d at 0x%x",
            len(string_table),
            index,
            offset,
        )

    return ObjectFile(
        header=header,
        program_headers=program_headers,
        section_headers=section_headers,
        string_table=string_table,
    )


# =============================================================================
# Optional-returning entry points
# =============================================================================


def decode_file_header(data: Buffer) -> FileHeader | None:
    """Decode the 64-byte file header, or None if data is too short."""
    return _or_none(FileHeader.from_bytes, data)


def decode_program_header_entry(data: Buffer) -> ProgramHeaderEntry | None:
    """Decode one 56-byte program header, or None if data is too short."""
    return _or_none(ProgramHeaderEntry.from_bytes, data)


def decode_section_header_entry(data: Buffer) -> SectionHeaderEntry | None:
    """Decode one 64-byte section header, or None if data is too short."""
    return _or_none(SectionHeaderEntry.from_bytes, data)


def decode_program_header_table(
    region: Buffer, entry_size: int, entry_count: int, *, strict: bool = False
) -> ProgramHeaderTable | None:
    return _or_none(
        parse_program_header_table, region, entry_size, entry_count, strict=strict
    )


def decode_section_header_table(
    region: Buffer, entry_size: int, entry_count: int, *, strict: bool = False
) -> SectionHeaderTable | None:
    return _or_none(
        parse_section_header_table, region, entry_size, entry_count, strict=strict
    )


def decode_string_table(region: Buffer) -> StringTable | None:
    return _or_none(parse_string_table, region)


def decode_object_file(
    data: Buffer, *, validate_magic: bool = True, strict: bool = False
) -> ObjectFile | None:
    """Decode a complete object, or None if any stage fails."""
    return _or_none(
        parse_object_file, data, validate_magic=validate_magic, strict=strict
    )
