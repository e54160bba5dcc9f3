"""
Failure kinds raised by the ELF decoders.

All of them derive from ValueError, so callers that only care about "this
buffer is not a usable ELF64 object" can catch a single type.
"""


class ElfDecodeError(ValueError):
    """Raised when a buffer cannot be decoded as an ELF64 structure."""

    pass


class TruncatedInputError(ElfDecodeError):
    """A fixed-size structure or declared-size table runs past the buffer."""

    pass


class MalformedStringTableError(ElfDecodeError):
    """A string table is empty, lacks its leading NUL, or is unterminated."""

    pass


class InvalidStringTableIndexError(ElfDecodeError):
    """e_shstrndx does not address a decoded section header."""

    pass


class BadMagicError(ElfDecodeError):
    """The buffer does not start with the ELF magic number."""

    pass
