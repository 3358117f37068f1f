"""Reading 64-bit little-endian ELF objects and looking up their sections by name."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Optional, Union

ELF_MAGIC = b"\x7fELF"
ELFCLASS64 = 2


class ElfError(ValueError):
    """Raised when bytes do not hold a usable 64-bit ELF object."""


def _unpack_record(cls, data, offset):
    layout = cls._STRUCT
    if offset < 0 or offset + layout.size > len(data):
        raise ElfError(f"{cls.__name__} at offset {offset} is out of bounds")
    return cls(*layout.unpack_from(data, offset))


class _Record:
    """Fixed-layout record read from a byte buffer."""

    _STRUCT: ClassVar[struct.Struct]

    @classmethod
    def size(cls) -> int:
        return cls._STRUCT.size

    def pack(self) -> bytes:
        """Serialise the record back to its on-disk form."""
        return self._STRUCT.pack(*(getattr(self, name) for name in self.__dataclass_fields__))


@dataclass(frozen=True)
class Elf64Header(_Record):
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<16sHHIQQQIHHHHHH")

    e_ident: bytes
    e_type: int
    e_machine: int
    e_version: int
    e_entry: int
    e_phoff: int
    e_shoff: int
    e_flags: int
    e_ehsize: int
    e_phentsize: int
    e_phnum: int
    e_shentsize: int
    e_shnum: int
    e_shstrndx: int

    @classmethod
    def unpack(cls, data, offset=0) -> "Elf64Header":
        """Read one file header from ``data`` starting at ``offset``."""
        return _unpack_record(cls, data, offset)


@dataclass(frozen=True)
class Elf64SectionHeader(_Record):
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<IIQQQQIIQQ")

    sh_name: int
    sh_type: int
    sh_flags: int
    sh_addr: int
    sh_offset: int
    sh_size: int
    sh_link: int
    sh_info: int
    sh_addralign: int
    sh_entsize: int

    @classmethod
    def unpack(cls, data, offset=0) -> "Elf64SectionHeader":
        """Read one section header from ``data`` starting at ``offset``."""
        return _unpack_record(cls, data, offset)


@dataclass(frozen=True)
class Elf64Rel(_Record):
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<QQ")

    r_offset: int
    r_info: int

    @classmethod
    def unpack(cls, data, offset=0) -> "Elf64Rel":
        """Read one relocation entry from ``data`` starting at ``offset``."""
        return _unpack_record(cls, data, offset)


@dataclass(frozen=True)
class Elf64Rela(_Record):
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<QQq")

    r_offset: int
    r_info: int
    r_addend: int

    @classmethod
    def unpack(cls, data, offset=0) -> "Elf64Rela":
        """Read one relocation entry with addend from ``data`` starting at ``offset``."""
        return _unpack_record(cls, data, offset)


@dataclass(frozen=True)
class Elf64Sym(_Record):
    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<IBBHQQ")

    st_name: int
    st_info: int
    st_other: int
    st_shndx: int
    st_value: int
    st_size: int

    @classmethod
    def unpack(cls, data, offset=0) -> "Elf64Sym":
        """Read one symbol from ``data`` starting at ``offset``."""
        return _unpack_record(cls, data, offset)


def _name_at(strtab: bytes, offset: int) -> Optional[bytes]:
    if offset >= len(strtab):
        return None
    end = strtab.find(b"\x00", offset)
    if end < 0:
        return None
    return strtab[offset:end]


@dataclass(frozen=True)
class Elf:
    """A parsed ELF object: its raw bytes, file header and section headers."""

    data: bytes
    header: Elf64Header
    section_headers: tuple[Elf64SectionHeader, ...]

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Elf":
        """Read and parse the ELF object stored at ``path``."""
        return cls.from_bytes(Path(path).read_bytes())

    @classmethod
    def from_bytes(cls, data) -> "Elf":
        """Parse an ELF object held in memory."""
        data = bytes(data)
        if len(data) < Elf64Header.size():
            raise ElfError("file too small")
        header = Elf64Header.unpack(data, 0)
        if header.e_ident[:4] != ELF_MAGIC:
            raise ElfError("not an ELF file")
        if header.e_ident[4] != ELFCLASS64:
            raise ElfError("not 64-bit ELF")

        shoff, shent, shnum = header.e_shoff, header.e_shentsize, header.e_shnum
        end = shoff + shent * shnum
        last_entry_end = shoff + (shnum - 1) * shent + Elf64SectionHeader.size() if shnum else shoff
        if end > len(data) or last_entry_end > len(data):
            raise ElfError("section header table out of bounds")

        sections = tuple(
            Elf64SectionHeader.unpack(data, shoff + index * shent) for index in range(shnum)
        )
        return cls(data=data, header=header, section_headers=sections)

    def strtab_header(self) -> Optional[Elf64SectionHeader]:
        """The section header of the section-name string table, if its index is valid."""
        index = self.header.e_shstrndx
        if index < len(self.section_headers):
            return self.section_headers[index]
        return None

    def strtab_data(self) -> Optional[bytes]:
        """The contents of the section-name string table, if it lies within the file."""
        strtab = self.strtab_header()
        if strtab is None:
            return None
        return self._section_bytes(strtab)

    def section_header_by_name(self, name) -> Optional[Elf64SectionHeader]:
        """The first section header whose name equals ``name``."""
        strtab = self.strtab_data()
        if strtab is None:
            return None
        wanted = name.encode() if isinstance(name, str) else bytes(name)
        return next(
            (s for s in self.section_headers if _name_at(strtab, s.sh_name) == wanted),
            None,
        )

    def section_data_by_name(self, name) -> Optional[bytes]:
        """The contents of the section called ``name``, if it exists and lies within the file."""
        section = self.section_header_by_name(name)
        if section is None:
            return None
        return self._section_bytes(section)

    def _section_bytes(self, section: Elf64SectionHeader) -> Optional[bytes]:
        start = section.sh_offset
        end = start + section.sh_size
        if end <= len(self.data):
            return self.data[start:end]
        return None