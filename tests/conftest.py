import os
import pathlib
import sys

import pytest

from elf_test_utils import build_elf_image, make_ehdr, make_phdr, make_shdr


@pytest.fixture
def minimal_header() -> bytes:
    """A bare 64-byte x86-64 executable header with empty tables."""
    return make_ehdr()


@pytest.fixture
def sample_image() -> bytes:
    """A small x86-64 executable with two segments and three named sections.

    Section table: [0] null, [1] .text, [2] .data, [3] .bss, [4] .shstrtab
    """
    return build_elf_image(
        phdrs=[
            make_phdr(
                p_type=6,  # PT_PHDR
                p_flags=0x1,
                p_offset=64,
                p_vaddr=0x400040,
                p_paddr=0x400040,
                p_filesz=112,
                p_memsz=112,
                p_align=8,
            ),
            make_phdr(
                p_type=1,  # PT_LOAD
                p_flags=0x5,
                p_offset=0,
                p_vaddr=0x400000,
                p_paddr=0x400000,
                p_filesz=0x1000,
                p_memsz=0x2000,
            ),
        ],
        sections=[
            (".text", make_shdr(sh_type=1, sh_flags=0x6, sh_addr=0x401000, sh_size=0x100, sh_addralign=16)),
            (".data", make_shdr(sh_type=1, sh_flags=0x3, sh_addr=0x402000, sh_size=0x20, sh_addralign=8)),
            (".bss", make_shdr(sh_type=8, sh_flags=0x3, sh_addr=0x402020, sh_size=0x40, sh_addralign=32)),
        ],
        e_entry=0x401000,
    )


@pytest.fixture(scope="session")
def host_elf_binary() -> pathlib.Path:
    """Provides a real ELF64 little-endian binary from the host, if any."""
    candidates = [
        pathlib.Path(os.path.realpath(sys.executable)),
        pathlib.Path("/bin/ls"),
        pathlib.Path("/usr/bin/env"),
    ]
    for path in candidates:
        try:
            with open(path, "rb") as f:
                ident = f.read(6)
        except OSError:
            continue
        if ident == b"\x7fELF\x02\x01":
            return path

    pytest.skip("No ELF64 little-endian binary available on this host")
