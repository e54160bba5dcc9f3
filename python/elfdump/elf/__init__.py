"""
ELF64 decoding package for elfdump.

This package turns an in-memory ELF64 little-endian image into immutable
records:
- types: Constants, code enumerations and the record dataclasses
- reader: Byte-order aware fixed-size record unpacking
- decode: Entry/table/string-table decoders and the object assembler
- errors: Failure kinds raised by the decoders
"""

from .errors import (
    ElfDecodeError,
    TruncatedInputError,
    MalformedStringTableError,
    InvalidStringTableIndexError,
    BadMagicError,
)
from .reader import ByteOrder, record_struct, unpack_record
from .decode import (
    parse_program_header_table,
    parse_section_header_table,
    parse_string_table,
    parse_object_file,
    decode_file_header,
    decode_program_header_entry,
    decode_program_header_table,
    decode_section_header_entry,
    decode_section_header_table,
    decode_string_table,
    decode_object_file,
)
from .types import (
    FileHeader,
    ProgramHeaderEntry,
    ProgramHeaderTable,
    SectionHeaderEntry,
    SectionHeaderTable,
    StringTable,
    ObjectFile,
    DroppedEntry,
    # Enumerations
    ElfClass,
    DataEncoding,
    ElfVersion,
    OsAbi,
    ObjectType,
    Machine,
    SegmentType,
    SectionType,
    # Constants
    ELF_MAGIC,
    ELF64_EHDR_SIZE,
    ELF64_PHDR_SIZE,
    ELF64_SHDR_SIZE,
    SHN_UNDEF,
    SHN_XINDEX,
)

__all__ = [
    # Errors
    "ElfDecodeError",
    "TruncatedInputError",
    "MalformedStringTableError",
    "InvalidStringTableIndexError",
    "BadMagicError",
    # Reading
    "ByteOrder",
    "record_struct",
    "unpack_record",
    # Decoding
    "parse_program_header_table",
    "parse_section_header_table",
    "parse_string_table",
    "parse_object_file",
    "decode_file_header",
    "decode_program_header_entry",
    "decode_program_header_table",
    "decode_section_header_entry",
    "decode_section_header_table",
    "decode_string_table",
    "decode_object_file",
    # Structs
    "FileHeader",
    "ProgramHeaderEntry",
    "ProgramHeaderTable",
    "SectionHeaderEntry",
    "SectionHeaderTable",
    "StringTable",
    "ObjectFile",
    "DroppedEntry",
    # Enumerations
    "ElfClass",
    "DataEncoding",
    "ElfVersion",
    "OsAbi",
    "ObjectType",
    "Machine",
    "SegmentType",
    "SectionType",
    # Constants
    "ELF_MAGIC",
    "ELF64_EHDR_SIZE",
    "ELF64_PHDR_SIZE",
    "ELF64_SHDR_SIZE",
    "SHN_UNDEF",
    "SHN_XINDEX",
]
