"""
MessagePack export of decoded objects.

The dump tool can write the decoded structure as a single MessagePack map
so other tools can consume it without re-decoding the binary. Every
enumerated field is exported twice: the raw code under its ELF field name
and the decoded label next to it.
"""

from typing import Any

import msgpack

from .elf.types import (
    DroppedEntry,
    FileHeader,
    ObjectFile,
    ProgramHeaderEntry,
    SectionHeaderEntry,
)

EXPORT_FORMAT_VERSION = 1


def _header_to_dict(header: FileHeader) -> dict[str, Any]:
    return {
        "magic": header.magic,
        "architecture": str(header.architecture),
        "data_encoding": str(header.data_encoding),
        "ident_version": str(header.ident_version),
        "os_abi": str(header.os_abi),
        "abi_version": header.abi_version,
        "e_type": header.e_type,
        "object_file_type": str(header.object_file_type),
        "e_machine": header.e_machine,
        "machine": str(header.machine),
        "e_version": header.e_version,
        "version": str(header.version),
        "e_entry": header.e_entry,
        "e_phoff": header.e_phoff,
        "e_shoff": header.e_shoff,
        "e_flags": header.e_flags,
        "e_ehsize": header.e_ehsize,
        "e_phentsize": header.e_phentsize,
        "e_phnum": header.e_phnum,
        "e_shentsize": header.e_shentsize,
        "e_shnum": header.e_shnum,
        "e_shstrndx": header.e_shstrndx,
    }


def _program_header_to_dict(phdr: ProgramHeaderEntry) -> dict[str, Any]:
    return {
        "p_type": phdr.p_type,
        "segment_type": str(phdr.segment_type),
        "p_flags": phdr.p_flags,
        "readable": phdr.readable,
        "writable": phdr.writable,
        "executable": phdr.executable,
        "p_offset": phdr.p_offset,
        "p_vaddr": phdr.p_vaddr,
        "p_paddr": phdr.p_paddr,
        "p_filesz": phdr.p_filesz,
        "p_memsz": phdr.p_memsz,
        "p_align": phdr.p_align,
    }


def _section_header_to_dict(name: str, shdr: SectionHeaderEntry) -> dict[str, Any]:
    return {
        "name": name,
        "sh_name": shdr.sh_name,
        "sh_type": shdr.sh_type,
        "section_type": str(shdr.section_type),
        "sh_flags": shdr.sh_flags,
        "writable": shdr.writable,
        "allocated": shdr.allocated,
        "executable_instructions": shdr.executable_instructions,
        "sh_addr": shdr.sh_addr,
        "sh_offset": shdr.sh_offset,
        "sh_size": shdr.sh_size,
        "sh_link": shdr.sh_link,
        "sh_info": shdr.sh_info,
        "sh_addralign": shdr.sh_addralign,
        "sh_entsize": shdr.sh_entsize,
    }


def _dropped_to_dict(dropped: DroppedEntry) -> dict[str, Any]:
    return {"index": dropped.index, "offset": dropped.offset, "reason": dropped.reason}


def object_file_to_dict(elf: ObjectFile) -> dict[str, Any]:
    """Convert a decoded object into plain msgpack-serializable types."""
    return {
        "format_version": EXPORT_FORMAT_VERSION,
        "header": _header_to_dict(elf.header),
        "program_headers": [
            _program_header_to_dict(p) for p in elf.program_headers
        ],
        "program_headers_dropped": [
            _dropped_to_dict(d) for d in elf.program_headers.dropped
        ],
        "section_headers": [
            _section_header_to_dict(name, s) for name, s in elf.iter_named_sections()
        ],
        "section_headers_dropped": [
            _dropped_to_dict(d) for d in elf.section_headers.dropped
        ],
        "string_table": list(elf.string_table.strings),
    }


def pack_object_file(elf: ObjectFile) -> bytes:
    """Serialize a decoded object to MessagePack."""
    return msgpack.packb(object_file_to_dict(elf), use_bin_type=True)


def unpack_object_file(data: bytes) -> dict[str, Any]:
    """Read back an export produced by pack_object_file.

    Raises:
        ValueError: If data is not a valid export
    """
    try:
        exported = msgpack.unpackb(data, raw=False, strict_map_key=True)
    except (msgpack.exceptions.UnpackException, ValueError) as e:
        raise ValueError(f"Invalid elfdump export: {e}") from e

    if not isinstance(exported, dict) or "format_version" not in exported:
        raise ValueError("Invalid elfdump export: missing format_version")
    if exported["format_version"] != EXPORT_FORMAT_VERSION:
        raise ValueError(
            f"Unsupported elfdump export version: {exported['format_version']}"
        )
    return exported
