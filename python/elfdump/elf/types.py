"""
ELF64 type definitions for the decoder.

Only the 64-bit little-endian layout is described here. Records are frozen
dataclasses holding the raw on-disk integers under their standard ELF field
names; semantic categories (object type, machine, segment type, ...) are
derived from those integers through closed enumerations, each with an
explicit UNKNOWN member. An unrecognized code therefore never fails decoding
and never loses the original value.
"""

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Iterator

from .reader import record_struct, unpack_record

# =============================================================================
# Constants
# =============================================================================

ELF_MAGIC = b"\x7fELF"

EI_NIDENT = 16
ELF64_EHDR_SIZE = 64
ELF64_PHDR_SIZE = 56
ELF64_SHDR_SIZE = 64

# e_ident indexes
EI_CLASS = 4
EI_DATA = 5
EI_VERSION = 6
EI_OSABI = 7
EI_ABIVERSION = 8

# File class (e_ident[EI_CLASS])
ELFCLASSNONE = 0
ELFCLASS32 = 1
ELFCLASS64 = 2

# Data encoding (e_ident[EI_DATA])
ELFDATANONE = 0
ELFDATA2LSB = 1
ELFDATA2MSB = 2

# Version (e_ident[EI_VERSION] and e_version)
EV_NONE = 0
EV_CURRENT = 1

# OS/ABI (e_ident[EI_OSABI])
ELFOSABI_SYSV = 0
ELFOSABI_HPUX = 1
ELFOSABI_NETBSD = 2
ELFOSABI_LINUX = 3
ELFOSABI_SOLARIS = 6
ELFOSABI_AIX = 7
ELFOSABI_IRIX = 8
ELFOSABI_FREEBSD = 9
ELFOSABI_TRU64 = 10
ELFOSABI_MODESTO = 11
ELFOSABI_OPENBSD = 12
ELFOSABI_OPENVMS = 13
ELFOSABI_NSK = 14
ELFOSABI_AROS = 15
ELFOSABI_FENIXOS = 16
ELFOSABI_CLOUDABI = 17
ELFOSABI_OPENVOS = 18

# ELF type (e_type)
ET_NONE = 0
ET_REL = 1
ET_EXEC = 2
ET_DYN = 3  # Shared object (or PIE executable)
ET_CORE = 4

# Machine (e_machine)
EM_NONE = 0
EM_M32 = 1
EM_SPARC = 2
EM_386 = 3
EM_68K = 4
EM_MIPS = 8
EM_PPC = 20
EM_PPC64 = 21
EM_S390 = 22
EM_ARM = 40
EM_X86_64 = 62
EM_AARCH64 = 183
EM_AMDGPU = 224
EM_RISCV = 243

# Program header types (p_type)
PT_NULL = 0
PT_LOAD = 1
PT_DYNAMIC = 2
PT_INTERP = 3
PT_NOTE = 4
PT_SHLIB = 5
PT_PHDR = 6
PT_TLS = 7
PT_GNU_EH_FRAME = 0x6474E550

# Program header flag bits (p_flags), in the order this decoder reports them
PHDR_FLAG_READ = 0x1
PHDR_FLAG_WRITE = 0x2
PHDR_FLAG_EXECUTE = 0x4

# Section header types (sh_type)
SHT_NULL = 0
SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3
SHT_RELA = 4
SHT_HASH = 5
SHT_DYNAMIC = 6
SHT_NOTE = 7
SHT_NOBITS = 8
SHT_REL = 9
SHT_SHLIB = 10
SHT_DYNSYM = 11
SHT_LOBITS_USER = 0x6FFFFF00
SHT_HIBITS_USER = 0x6FFFFFFF

# Section flags (sh_flags)
SHF_WRITE = 0x1
SHF_ALLOC = 0x2
SHF_EXECINSTR = 0x4

# Reserved section indexes
SHN_UNDEF = 0
SHN_XINDEX = 0xFFFF


# =============================================================================
# Enumerations
# =============================================================================


class _CodeEnum(Enum):
    """Enumeration decoded from a numeric ELF code.

    Member values are the human-readable labels; unmapped codes decode to
    the UNKNOWN member every subclass defines.
    """

    def __str__(self) -> str:
        return self.value

    @classmethod
    def from_code(cls, code: int) -> "_CodeEnum":
        return _CODE_TABLES[cls].get(code, cls.UNKNOWN)


class ElfClass(_CodeEnum):
    UNKNOWN = "unknown"
    ELF32 = "32-bit"
    ELF64 = "64-bit"


class DataEncoding(_CodeEnum):
    UNKNOWN = "unknown"
    LITTLE_ENDIAN = "little-endian"
    BIG_ENDIAN = "big-endian"


class ElfVersion(_CodeEnum):
    UNKNOWN = "unknown"
    NONE = "none"
    CURRENT = "current"


class OsAbi(_CodeEnum):
    UNKNOWN = "unknown"
    SYSV = "System V"
    HPUX = "HP-UX"
    NETBSD = "NetBSD"
    LINUX = "Linux"
    SOLARIS = "Solaris"
    AIX = "AIX"
    IRIX = "IRIX"
    FREEBSD = "FreeBSD"
    TRU64 = "Tru64"
    MODESTO = "Modesto"
    OPENBSD = "OpenBSD"
    OPENVMS = "OpenVMS"
    NSK = "NonStop Kernel"
    AROS = "AROS"
    FENIXOS = "Fenix OS"
    CLOUDABI = "CloudABI"
    OPENVOS = "Stratus Technologies OpenVOS"


class ObjectType(_CodeEnum):
    UNKNOWN = "unknown"
    RELOCATABLE = "relocatable"
    EXECUTABLE = "executable"
    SHARED_OBJECT = "shared object"
    CORE_DUMP = "core dump"


class Machine(_CodeEnum):
    UNKNOWN = "unknown"
    M32 = "AT&T WE 32100"
    SPARC = "SPARC"
    I386 = "Intel 80386"
    M68K = "Motorola 68000"
    MIPS = "MIPS I Architecture"
    PPC = "PowerPC"
    PPC64 = "64-bit PowerPC"
    S390 = "IBM System/390 Processor"
    ARM = "ARM 32-bit architecture (AARCH32)"
    X86_64 = "Advanced Micro Devices X86-64"
    AARCH64 = "ARM 64-bit architecture (AARCH64)"
    AMDGPU = "AMD GPU architecture"
    RISCV = "RISC-V"


class SegmentType(_CodeEnum):
    UNKNOWN = "unknown type"
    NULL = "unknown"
    LOAD = "loadable"
    DYNAMIC = "dynamic"
    INTERP = "interpreter"
    NOTE = "note"
    SHLIB = "shlib"
    PHDR = "phdr"
    TLS = "tls"
    GNU_EH_FRAME = "gnu_eh_frame"


class SectionType(_CodeEnum):
    UNKNOWN = "unknown"
    PROGBITS = "program bits"
    SYMTAB = "symbol table"
    STRTAB = "string table"
    RELA = "relocation entries"
    HASH = "symbol hash table"
    DYNAMIC = "dynamic"
    NOTE = "notes"
    NOBITS = "no bits"
    REL = "relocation"
    SHLIB = "reserved"
    DYNSYM = "dynamic symbol table"
    LOBITS_USER = "lobits user"
    HIBITS_USER = "hibits user"


_CODE_TABLES: dict[type, dict[int, _CodeEnum]] = {
    ElfClass: {
        ELFCLASS32: ElfClass.ELF32,
        ELFCLASS64: ElfClass.ELF64,
    },
    DataEncoding: {
        ELFDATA2LSB: DataEncoding.LITTLE_ENDIAN,
        ELFDATA2MSB: DataEncoding.BIG_ENDIAN,
    },
    ElfVersion: {
        EV_NONE: ElfVersion.NONE,
        EV_CURRENT: ElfVersion.CURRENT,
    },
    OsAbi: {
        ELFOSABI_SYSV: OsAbi.SYSV,
        ELFOSABI_HPUX: OsAbi.HPUX,
        ELFOSABI_NETBSD: OsAbi.NETBSD,
        ELFOSABI_LINUX: OsAbi.LINUX,
        ELFOSABI_SOLARIS: OsAbi.SOLARIS,
        ELFOSABI_AIX: OsAbi.AIX,
        ELFOSABI_IRIX: OsAbi.IRIX,
        ELFOSABI_FREEBSD: OsAbi.FREEBSD,
        ELFOSABI_TRU64: OsAbi.TRU64,
        ELFOSABI_MODESTO: OsAbi.MODESTO,
        ELFOSABI_OPENBSD: OsAbi.OPENBSD,
        ELFOSABI_OPENVMS: OsAbi.OPENVMS,
        ELFOSABI_NSK: OsAbi.NSK,
        ELFOSABI_AROS: OsAbi.AROS,
        ELFOSABI_FENIXOS: OsAbi.FENIXOS,
        ELFOSABI_CLOUDABI: OsAbi.CLOUDABI,
        ELFOSABI_OPENVOS: OsAbi.OPENVOS,
    },
    ObjectType: {
        ET_NONE: ObjectType.UNKNOWN,
        ET_REL: ObjectType.RELOCATABLE,
        ET_EXEC: ObjectType.EXECUTABLE,
        ET_DYN: ObjectType.SHARED_OBJECT,
        ET_CORE: ObjectType.CORE_DUMP,
    },
    Machine: {
        EM_M32: Machine.M32,
        EM_SPARC: Machine.SPARC,
        EM_386: Machine.I386,
        EM_68K: Machine.M68K,
        EM_MIPS: Machine.MIPS,
        EM_PPC: Machine.PPC,
        EM_PPC64: Machine.PPC64,
        EM_S390: Machine.S390,
        EM_ARM: Machine.ARM,
        EM_X86_64: Machine.X86_64,
        EM_AARCH64: Machine.AARCH64,
        EM_AMDGPU: Machine.AMDGPU,
        EM_RISCV: Machine.RISCV,
    },
    SegmentType: {
        PT_NULL: SegmentType.NULL,
        PT_LOAD: SegmentType.LOAD,
        PT_DYNAMIC: SegmentType.DYNAMIC,
        PT_INTERP: SegmentType.INTERP,
        PT_NOTE: SegmentType.NOTE,
        PT_SHLIB: SegmentType.SHLIB,
        PT_PHDR: SegmentType.PHDR,
        PT_TLS: SegmentType.TLS,
        PT_GNU_EH_FRAME: SegmentType.GNU_EH_FRAME,
    },
    SectionType: {
        SHT_PROGBITS: SectionType.PROGBITS,
        SHT_SYMTAB: SectionType.SYMTAB,
        SHT_STRTAB: SectionType.STRTAB,
        SHT_RELA: SectionType.RELA,
        SHT_HASH: SectionType.HASH,
        SHT_DYNAMIC: SectionType.DYNAMIC,
        SHT_NOTE: SectionType.NOTE,
        SHT_NOBITS: SectionType.NOBITS,
        SHT_REL: SectionType.REL,
        SHT_SHLIB: SectionType.SHLIB,
        SHT_DYNSYM: SectionType.DYNSYM,
        SHT_LOBITS_USER: SectionType.LOBITS_USER,
        SHT_HIBITS_USER: SectionType.HIBITS_USER,
    },
}


# =============================================================================
# ELF Structures
# =============================================================================


@dataclass(frozen=True)
class FileHeader:
    """ELF64 file header (Elf64_Ehdr).

    All fields match the standard ELF64 header layout. The magic bytes are
    not checked here; see parse_object_file for that gate.
    """

    e_ident: bytes  # 16 bytes: magic, class, endianness, version, OS/ABI, padding
    e_type: int  # Object file type (ET_*)
    e_machine: int  # Architecture (EM_*)
    e_version: int  # ELF version
    e_entry: int  # Entry point virtual address
    e_phoff: int  # Program header table file offset
    e_shoff: int  # Section header table file offset
    e_flags: int  # Processor-specific flags
    e_ehsize: int  # ELF header size
    e_phentsize: int  # Program header entry size
    e_phnum: int  # Number of program headers
    e_shentsize: int  # Section header entry size
    e_shnum: int  # Number of section headers
    e_shstrndx: int  # Section name string table index

    LAYOUT: ClassVar = record_struct("16sHHIQQQIHHHHHH")

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, offset: int = 0) -> "FileHeader":
        """Parse ELF header from binary data.

        Args:
            data: At least 64 bytes of ELF header data

        Returns:
            Parsed FileHeader

        Raises:
            TruncatedInputError: If fewer than 64 bytes are available
        """
        fields = unpack_record(cls.LAYOUT, data, offset, "ELF header")
        return cls(*fields)

    @property
    def magic(self) -> bytes:
        return self.e_ident[:4]

    @property
    def has_valid_magic(self) -> bool:
        return self.magic == ELF_MAGIC

    @property
    def architecture(self) -> ElfClass:
        return ElfClass.from_code(self.e_ident[EI_CLASS])

    @property
    def data_encoding(self) -> DataEncoding:
        return DataEncoding.from_code(self.e_ident[EI_DATA])

    @property
    def ident_version(self) -> ElfVersion:
        # e_ident only distinguishes "current" from anything else
        if self.e_ident[EI_VERSION] == EV_CURRENT:
            return ElfVersion.CURRENT
        return ElfVersion.UNKNOWN

    @property
    def os_abi(self) -> OsAbi:
        return OsAbi.from_code(self.e_ident[EI_OSABI])

    @property
    def abi_version(self) -> int:
        return self.e_ident[EI_ABIVERSION]

    @property
    def object_file_type(self) -> ObjectType:
        return ObjectType.from_code(self.e_type)

    @property
    def machine(self) -> Machine:
        return Machine.from_code(self.e_machine)

    @property
    def version(self) -> ElfVersion:
        return ElfVersion.from_code(self.e_version)


@dataclass(frozen=True)
class ProgramHeaderEntry:
    """ELF64 program header (Elf64_Phdr).

    Program headers define segments - how the file is loaded into memory.
    """

    p_type: int  # Segment type (PT_*)
    p_flags: int  # Raw segment flag word
    p_offset: int  # File offset
    p_vaddr: int  # Virtual address
    p_paddr: int  # Physical address (usually same as vaddr)
    p_filesz: int  # Size in file
    p_memsz: int  # Size in memory (may be > filesz for BSS)
    p_align: int  # Alignment (power of 2)

    LAYOUT: ClassVar = record_struct("IIQQQQQQ")

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int = 0
    ) -> "ProgramHeaderEntry":
        """Parse program header from binary data at offset."""
        fields = unpack_record(cls.LAYOUT, data, offset, "program header")
        return cls(*fields)

    @property
    def segment_type(self) -> SegmentType:
        return SegmentType.from_code(self.p_type)

    @property
    def readable(self) -> bool:
        return bool(self.p_flags & PHDR_FLAG_READ)

    @property
    def writable(self) -> bool:
        return bool(self.p_flags & PHDR_FLAG_WRITE)

    @property
    def executable(self) -> bool:
        return bool(self.p_flags & PHDR_FLAG_EXECUTE)

    @property
    def end_offset(self) -> int:
        """File offset of end of segment content."""
        return self.p_offset + self.p_filesz

    @property
    def end_vaddr(self) -> int:
        """Virtual address of end of segment (including BSS)."""
        return self.p_vaddr + self.p_memsz

    def contains_vaddr(self, vaddr: int) -> bool:
        """Check if a virtual address falls within this segment."""
        return self.p_vaddr <= vaddr < self.end_vaddr


@dataclass(frozen=True)
class SectionHeaderEntry:
    """ELF64 section header (Elf64_Shdr).

    Section headers describe the layout of the file for linking/debugging.
    """

    sh_name: int  # Offset into section name string table
    sh_type: int  # Section type (SHT_*)
    sh_flags: int  # Section flags (SHF_*)
    sh_addr: int  # Virtual address (if SHF_ALLOC set)
    sh_offset: int  # File offset
    sh_size: int  # Section size
    sh_link: int  # Link to another section (section-type dependent)
    sh_info: int  # Additional info (section-type dependent)
    sh_addralign: int  # Alignment (power of 2, 0 or 1 means none)
    sh_entsize: int  # Entry size if section holds table, else 0

    LAYOUT: ClassVar = record_struct("IIQQQQIIQQ")

    @classmethod
    def from_bytes(
        cls, data: bytes | bytearray, offset: int = 0
    ) -> "SectionHeaderEntry":
        """Parse section header from binary data at offset."""
        fields = unpack_record(cls.LAYOUT, data, offset, "section header")
        return cls(*fields)

    @property
    def section_type(self) -> SectionType:
        return SectionType.from_code(self.sh_type)

    @property
    def writable(self) -> bool:
        return bool(self.sh_flags & SHF_WRITE)

    @property
    def allocated(self) -> bool:
        """Check if this section occupies memory at runtime."""
        return bool(self.sh_flags & SHF_ALLOC)

    @property
    def executable_instructions(self) -> bool:
        return bool(self.sh_flags & SHF_EXECINSTR)

    @property
    def is_nobits(self) -> bool:
        """Check if this section has no file content (like BSS)."""
        return self.sh_type == SHT_NOBITS

    @property
    def end_offset(self) -> int:
        """File offset of end of section content."""
        return self.sh_offset + self.sh_size


@dataclass(frozen=True)
class DroppedEntry:
    """A table entry that was skipped because it could not be decoded."""

    index: int  # Position in the on-disk table
    offset: int  # Byte offset of the entry within the table region
    reason: str


class _EntryTable:
    """Sequence behaviour shared by the header tables."""

    entries: tuple

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator:
        return iter(self.entries)

    def __getitem__(self, index: int):
        return self.entries[index]


@dataclass(frozen=True)
class ProgramHeaderTable(_EntryTable):
    """Decoded program header table, in file order."""

    entries: tuple[ProgramHeaderEntry, ...] = ()
    declared_count: int = 0
    dropped: tuple[DroppedEntry, ...] = ()

    def iter_segments(self, segment_type: SegmentType) -> Iterator[ProgramHeaderEntry]:
        """Iterate over entries of one segment type."""
        for entry in self.entries:
            if entry.segment_type is segment_type:
                yield entry


@dataclass(frozen=True)
class SectionHeaderTable(_EntryTable):
    """Decoded section header table, in file order."""

    entries: tuple[SectionHeaderEntry, ...] = ()
    declared_count: int = 0
    dropped: tuple[DroppedEntry, ...] = ()


@dataclass(frozen=True)
class StringTable:
    """Decoded NUL-delimited string table.

    strings keeps the table order, including the empty strings at both ends.
    data holds the scanned bytes (closing sentinel included) so sh_name byte
    indexes, which may point into the middle of a string, can be resolved.
    """

    strings: tuple[str, ...] = ()
    data: bytes = b""

    def __len__(self) -> int:
        return len(self.strings)

    def __iter__(self) -> Iterator[str]:
        return iter(self.strings)

    def name_at(self, offset: int) -> str:
        """Get the NUL-terminated string starting at a byte offset.

        Args:
            offset: Byte index into the table (an sh_name value)

        Returns:
            The string, or "" if offset is outside the table
        """
        if offset >= len(self.data):
            return ""
        end = self.data.find(b"\x00", offset)
        if end == -1:
            end = len(self.data)
        return self.data[offset:end].decode("latin-1")


@dataclass(frozen=True)
class ObjectFile:
    """A fully decoded ELF64 object: header, both tables and section names."""

    header: FileHeader
    program_headers: ProgramHeaderTable
    section_headers: SectionHeaderTable
    string_table: StringTable

    def section_name(self, section: SectionHeaderEntry | int) -> str:
        """Resolve a section's name through the section-name string table.

        Args:
            section: SectionHeaderEntry or its index in the section table

        Returns:
            Section name, "" if it cannot be resolved
        """
        if isinstance(section, int):
            if not 0 <= section < len(self.section_headers):
                return ""
            section = self.section_headers[section]
        return self.string_table.name_at(section.sh_name)

    def iter_named_sections(self) -> Iterator[tuple[str, SectionHeaderEntry]]:
        """Iterate over (name, header) pairs in section table order."""
        for entry in self.section_headers:
            yield self.section_name(entry), entry

    def find_section(self, name: str) -> SectionHeaderEntry | None:
        """Find the first section with the given name."""
        for section_name, entry in self.iter_named_sections():
            if section_name == name:
                return entry
        return None

