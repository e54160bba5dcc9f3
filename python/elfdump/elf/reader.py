"""
Byte-order aware record reading.

Every fixed-size ELF structure is described by a struct field list (for
example "IIQQQQQQ" for a program header). This module compiles such a list
for a given byte order and unpacks it with bounds checking, so decoders
never read past the end of the buffer they were handed.

Only little-endian input is decoded today; ByteOrder exists so a big-endian
layout can be compiled from the same field lists instead of duplicating
decoders.
"""

import struct
from enum import Enum

from .errors import TruncatedInputError


class ByteOrder(Enum):
    """Byte order prefix understood by the struct module."""

    LITTLE = "<"
    BIG = ">"


def record_struct(fields: str, order: ByteOrder = ByteOrder.LITTLE) -> struct.Struct:
    """Compile a struct field list for the given byte order.

    Args:
        fields: struct format characters without a byte-order prefix
        order: Byte order of the on-disk record

    Returns:
        Compiled struct.Struct
    """
    return struct.Struct(order.value + fields)


def unpack_record(
    layout: struct.Struct,
    data: bytes | bytearray | memoryview,
    offset: int = 0,
    what: str = "record",
) -> tuple:
    """Unpack one fixed-size record from data at offset.

    Args:
        layout: Compiled record layout (see record_struct)
        data: Buffer holding the record
        offset: Byte offset of the record within data
        what: Record name used in the error message

    Returns:
        Tuple of raw field values

    Raises:
        TruncatedInputError: If the record extends past the end of data
    """
    available = len(data) - offset
    if offset < 0 or available < layout.size:
        raise TruncatedInputError(
            f"Data too short for {what}: {max(available, 0)} < {layout.size}"
        )
    return layout.unpack_from(data, offset)
