"""
Input format detection and loading.

The dump tool accepts plain ELF files and zstd-compressed ELF files (as
produced by `zstd libfoo.so`). This module recognizes both by their magic
bytes and returns the raw ELF image held in memory.
"""

import io
from pathlib import Path

import zstandard as zstd


# Magic bytes for format detection
ELF_MAGIC = b"\x7fELF"
ZSTD_MAGIC = b"\x28\xb5\x2f\xfd"


class UnsupportedBinaryFormat(ValueError):
    """Raised when input is neither ELF nor zstd-compressed ELF."""

    pass


def detect_binary_format(data: bytes) -> str:
    """Detect whether data is an ELF image or a zstd frame.

    Args:
        data: Leading bytes of the input (at least 4 are needed)

    Returns:
        "elf" for ELF images, "zstd" for zstd-compressed data

    Raises:
        UnsupportedBinaryFormat: If data matches neither magic
    """
    if len(data) < 4:
        raise UnsupportedBinaryFormat(
            f"Input too small to be a valid binary: {len(data)} byte(s)"
        )

    if data[:4] == ELF_MAGIC:
        return "elf"

    if data[:4] == ZSTD_MAGIC:
        return "zstd"

    raise UnsupportedBinaryFormat(
        f"Input is neither ELF nor zstd-compressed (magic {data[:4].hex(' ')})"
    )


def decompress_zstd(data: bytes) -> bytes:
    """Decompress a zstd stream of one or more frames.

    Frames without a content size are supported, and concatenated frames
    (as written by pzstd) are decompressed back to back.

    Raises:
        UnsupportedBinaryFormat: If the stream is corrupt
    """
    dctx = zstd.ZstdDecompressor()
    try:
        with dctx.stream_reader(io.BytesIO(data), read_across_frames=True) as reader:
            return reader.read()
    except zstd.ZstdError as e:
        raise UnsupportedBinaryFormat(f"Decompression failed: {e}") from e


def load_binary(path: Path) -> bytes:
    """Read a whole binary into memory, decompressing zstd input.

    Args:
        path: Path to an ELF or zstd-compressed ELF file

    Returns:
        The ELF image

    Raises:
        OSError: If the file cannot be opened or read
        UnsupportedBinaryFormat: If the content is not (compressed) ELF
    """
    data = path.read_bytes()
    if detect_binary_format(data) == "zstd":
        data = decompress_zstd(data)
        if data[:4] != ELF_MAGIC:
            raise UnsupportedBinaryFormat(f"Compressed content is not ELF: {path}")
    return data


def is_elf_binary(path: Path) -> bool:
    """Check if a file is an ELF binary (optionally zstd-compressed).

    Args:
        path: Path to binary file

    Returns:
        True if ELF, False otherwise
    """
    try:
        load_binary(path)
        return True
    except (UnsupportedBinaryFormat, OSError):
        return False
