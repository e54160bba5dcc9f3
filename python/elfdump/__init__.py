"""
elfdump: ELF64 header decoding.

This package decodes the file header, program header table, section header
table and section name string table of 64-bit little-endian ELF binaries
held in memory.

The high-level API decodes a whole image in one call:

    from elfdump import load_binary, parse_object_file

    elf = parse_object_file(load_binary(path))
    text = elf.find_section(".text")

For the individual decoders and record types, use the subpackage directly:

    from elfdump.elf import FileHeader, decode_string_table
"""

from .format_detect import (
    detect_binary_format,
    is_elf_binary,
    load_binary,
    UnsupportedBinaryFormat,
)
from .elf import (
    ElfDecodeError,
    ObjectFile,
    parse_object_file,
    decode_object_file,
)
from .export import pack_object_file, unpack_object_file

__all__ = [
    # Input loading
    "detect_binary_format",
    "is_elf_binary",
    "load_binary",
    "UnsupportedBinaryFormat",
    # Decoding
    "ElfDecodeError",
    "ObjectFile",
    "parse_object_file",
    "decode_object_file",
    # Export
    "pack_object_file",
    "unpack_object_file",
]
