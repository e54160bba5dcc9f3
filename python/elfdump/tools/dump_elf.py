#!/usr/bin/env python3
"""
ELF64 dump CLI tool.

Decodes an ELF64 little-endian binary (optionally zstd-compressed) and
prints its file header, program headers, section headers and section name
string table.

Usage:
    python -m elfdump.tools.dump_elf <binary> [--verbose] [--msgpack OUTPUT]
"""

import argparse
import logging
import sys
from pathlib import Path

from elfdump.elf import ElfDecodeError, ObjectFile, parse_object_file
from elfdump.export import pack_object_file
from elfdump.format_detect import UnsupportedBinaryFormat, load_binary


def format_header(elf: ObjectFile) -> list[str]:
    header = elf.header
    return [
        "ELF Header:",
        f"  Magic:                             {header.magic.hex(' ')}",
        f"  Class:                             {header.architecture}",
        f"  Data:                              {header.data_encoding}",
        f"  Version:                           {header.ident_version}",
        f"  OS/ABI:                            {header.os_abi}",
        f"  ABI Version:                       {header.abi_version}",
        f"  Type:                              {header.object_file_type}",
        f"  Machine:                           {header.machine}",
        f"  Version:                           {header.version}",
        f"  Entry point address:               0x{header.e_entry:x}",
        f"  Start of program headers:          {header.e_phoff}",
        f"  Start of section headers:          {header.e_shoff}",
        f"  Flags:                             0x{header.e_flags:x}",
        f"  Size of this header:               {header.e_ehsize}",
        f"  Size of program headers:           {header.e_phentsize}",
        f"  Number of program headers:         {header.e_phnum}",
        f"  Size of section headers:           {header.e_shentsize}",
        f"  Number of section headers:         {header.e_shnum}",
        f"  Section header string table index: {header.e_shstrndx}",
    ]


def format_program_headers(elf: ObjectFile) -> list[str]:
    lines = [f"Program Headers ({len(elf.program_headers)}):"]
    if elf.program_headers:
        lines.append(
            f"  {'Type':<14} {'Offset':>18} {'VirtAddr':>18} {'PhysAddr':>18} "
            f"{'FileSiz':>18} {'MemSiz':>18} Flg Align"
        )
    for phdr in elf.program_headers:
        flags = (
            ("R" if phdr.readable else " ")
            + ("W" if phdr.writable else " ")
            + ("E" if phdr.executable else " ")
        )
        lines.append(
            f"  {str(phdr.segment_type):<14} 0x{phdr.p_offset:016x} "
            f"0x{phdr.p_vaddr:016x} 0x{phdr.p_paddr:016x} "
            f"0x{phdr.p_filesz:016x} 0x{phdr.p_memsz:016x} {flags} 0x{phdr.p_align:x}"
        )
    for dropped in elf.program_headers.dropped:
        lines.append(f"  WARN: entry {dropped.index} skipped: {dropped.reason}")
    return lines


def format_section_headers(elf: ObjectFile) -> list[str]:
    lines = [f"Section Headers ({len(elf.section_headers)}):"]
    if elf.section_headers:
        lines.append(
            f"  [Nr] {'Name':<20} {'Type':<22} {'Address':>18} {'Offset':>10} "
            f"{'Size':>18} WAX Lk Inf Al"
        )
    for i, (name, shdr) in enumerate(elf.iter_named_sections()):
        flags = (
            ("W" if shdr.writable else " ")
            + ("A" if shdr.allocated else " ")
            + ("X" if shdr.executable_instructions else " ")
        )
        lines.append(
            f"  [{i:2}] {name:<20} {str(shdr.section_type):<22} "
            f"0x{shdr.sh_addr:016x} 0x{shdr.sh_offset:08x} 0x{shdr.sh_size:016x} "
            f"{flags} {shdr.sh_link:2} {shdr.sh_info:3} {shdr.sh_addralign}"
        )
    for dropped in elf.section_headers.dropped:
        lines.append(f"  WARN: entry {dropped.index} skipped: {dropped.reason}")
    return lines


def format_string_table(elf: ObjectFile) -> list[str]:
    lines = [f"Section Name String Table ({len(elf.string_table)} strings):"]
    for i, string in enumerate(elf.string_table):
        lines.append(f"  [{i:3}] {string!r}")
    return lines


def format_object_file(elf: ObjectFile) -> str:
    """Render a decoded object as readelf-style text."""
    sections = [
        format_header(elf),
        format_program_headers(elf),
        format_section_headers(elf),
        format_string_table(elf),
    ]
    return "\n\n".join("\n".join(lines) for lines in sections)


def dump_binary(binary: Path, msgpack_output: Path | None = None) -> int:
    """Decode and print one binary.

    Args:
        binary: Path to ELF binary
        msgpack_output: Also write the decoded structure here, if given

    Returns:
        Process exit code
    """
    try:
        data = load_binary(binary)
    except OSError as e:
        print(f"Error: cannot read {binary}: {e.strerror or e}", file=sys.stderr)
        return 1
    except UnsupportedBinaryFormat as e:
        print(f"Error: failed to decode {binary}: {e}", file=sys.stderr)
        return 1

    try:
        elf = parse_object_file(data)
    except ElfDecodeError as e:
        print(f"Error: failed to decode {binary}: {e}", file=sys.stderr)
        return 1

    print(format_object_file(elf))

    if msgpack_output is not None:
        try:
            msgpack_output.write_bytes(pack_object_file(elf))
        except OSError as e:
            print(
                f"Error: cannot write {msgpack_output}: {e.strerror or e}",
                file=sys.stderr,
            )
            return 1
        print(f"\nWrote {msgpack_output}")

    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="elfdump",
        description="Decode and print the headers of an ELF64 little-endian binary",
    )
    parser.add_argument(
        "binary", type=Path, nargs="?", help="Path to ELF binary to decode"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log each decoding stage",
    )
    parser.add_argument(
        "--msgpack",
        type=Path,
        metavar="OUTPUT",
        help="Also write the decoded structure as MessagePack to OUTPUT",
    )
    args = parser.parse_args(argv)

    if args.binary is None:
        parser.print_usage()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )

    return dump_binary(args.binary, args.msgpack)


if __name__ == "__main__":
    sys.exit(main())
