"""Headers of 32-bit little-endian ELF executables."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass

ELF_MAGIC = 0x464C457F
"""The four bytes 0x7F 'E' 'L' 'F' read as a little-endian word."""

ELF_PROG_LOAD = 1
"""Program header type of a loadable segment."""

_ELF_FORMAT = struct.Struct("<I12sHHIIIIIHHHHHH")
_PROG_FORMAT = struct.Struct("<8I")

ELF_HEADER_SIZE = _ELF_FORMAT.size
PROG_HEADER_SIZE = _PROG_FORMAT.size


class ProgFlag(enum.IntFlag):
    """Permission bits of a program header."""

    EXEC = 1
    WRITE = 2
    READ = 4


@dataclass
class ProgramHeader:
    """One program segment description."""

    type: int = 0
    off: int = 0
    vaddr: int = 0
    paddr: int = 0
    filesz: int = 0
    memsz: int = 0
    flags: int = 0
    align: int = 0

    @classmethod
    def parse(cls, data: bytes, offset: int = 0) -> "ProgramHeader":
        """Decode the program header found at offset in data."""
        if offset < 0 or offset + PROG_HEADER_SIZE > len(data):
            raise ValueError("program header lies outside the data")
        return cls(*_PROG_FORMAT.unpack_from(data, offset))

    def pack(self) -> bytes:
        """Encode the program header."""
        return _PROG_FORMAT.pack(
            self.type, self.off, self.vaddr, self.paddr,
            self.filesz, self.memsz, self.flags, self.align,
        )


@dataclass
class ElfHeader:
    """The ELF file header."""

    magic: int = ELF_MAGIC
    elf: bytes = bytes(12)
    type: int = 0
    machine: int = 0
    version: int = 0
    entry: int = 0
    phoff: int = 0
    shoff: int = 0
    flags: int = 0
    ehsize: int = 0
    phentsize: int = 0
    phnum: int = 0
    shentsize: int = 0
    shnum: int = 0
    shstrndx: int = 0

    @classmethod
    def parse(cls, data: bytes) -> "ElfHeader":
        """Decode the header at the start of data."""
        if len(data) < ELF_HEADER_SIZE:
            raise ValueError("data too short for an ELF header")
        return cls(*_ELF_FORMAT.unpack_from(data, 0))

    def pack(self) -> bytes:
        """Encode the header."""
        if len(self.elf) > 12:
            raise ValueError("identification bytes exceed 12")
        return _ELF_FORMAT.pack(
            self.magic, bytes(self.elf), self.type, self.machine,
            self.version, self.entry, self.phoff, self.shoff, self.flags,
            self.ehsize, self.phentsize, self.phnum, self.shentsize,
            self.shnum, self.shstrndx,
        )

    def is_valid(self) -> bool:
        """Whether the magic number marks an ELF file."""
        return self.magic == ELF_MAGIC

    def program_headers(self, data: bytes) -> list[ProgramHeader]:
        """The program headers of the file whose bytes are data."""
        return [
            ProgramHeader.parse(data, self.phoff + i * PROG_HEADER_SIZE)
            for i in range(self.phnum)
        ]