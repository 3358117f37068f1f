import struct

import pytest

from voidio.elf import (
    Elf,
    Elf64Header,
    Elf64Rel,
    Elf64Rela,
    Elf64SectionHeader,
    Elf64Sym,
    ElfError,
)

SHT_PROGBITS = 1
SHT_SYMTAB = 2
SHT_STRTAB = 3


def _build_elf(sections, shstrndx=None, elf_class=2, magic=b"\x7fELF"):
    names = [b""] + [name for name, _, _ in sections] + [b".shstrtab"]
    strtab = bytearray()
    name_offsets = []
    for name in names:
        name_offsets.append(len(strtab))
        strtab += name + b"\x00"
    bodies = [b""] + [body for _, _, body in sections] + [bytes(strtab)]
    types = [0] + [kind for _, kind, _ in sections] + [SHT_STRTAB]

    offsets = []
    position = 64
    for body in bodies:
        offsets.append(position)
        position += len(body)
    shoff = position

    table = b"".join(
        struct.pack("<IIQQQQIIQQ", name_off, kind, 0, 0, off, len(body), 0, 0, 1, 0)
        for name_off, kind, off, body in zip(name_offsets, types, offsets, bodies)
    )
    ident = magic + bytes([elf_class, 1, 1]) + bytes(9)
    if shstrndx is None:
        shstrndx = len(bodies) - 1
    header = struct.pack(
        "<16sHHIQQQIHHHHHH",
        ident, 1, 247, 1, 0, 0, shoff, 0, 64, 0, 0, 64, len(bodies), shstrndx,
    )
    return header + b"".join(bodies) + table


SAMPLE_SECTIONS = [
    (b"xdp_sock", SHT_PROGBITS, b"\x01\x02\x03\x04\x05\x06\x07\x08"),
    (b".maps", SHT_PROGBITS, bytes(range(20))),
    (b".symtab", SHT_SYMTAB, bytes(24)),
]


def test_parses_header_and_sections():
    elf = Elf.from_bytes(_build_elf(SAMPLE_SECTIONS))
    assert elf.header.e_ident[:4] == b"\x7fELF"
    assert len(elf.section_headers) == len(SAMPLE_SECTIONS) + 2
    assert elf.section_headers[2].sh_size == 20
    assert elf.section_headers[3].sh_type == SHT_SYMTAB


def test_section_data_by_name():
    elf = Elf.from_bytes(_build_elf(SAMPLE_SECTIONS))
    assert elf.section_data_by_name("xdp_sock") == b"\x01\x02\x03\x04\x05\x06\x07\x08"
    assert elf.section_data_by_name(".maps") == bytes(range(20))
    assert elf.section_data_by_name(b".symtab") == bytes(24)


def test_section_header_by_name_matches_whole_name():
    elf = Elf.from_bytes(_build_elf(SAMPLE_SECTIONS))
    assert elf.section_header_by_name("xdp") is None
    assert elf.section_header_by_name("missing") is None
    header = elf.section_header_by_name(".maps")
    assert header is elf.section_headers[2]


def test_strtab_lookup():
    elf = Elf.from_bytes(_build_elf(SAMPLE_SECTIONS))
    assert elf.strtab_header() is elf.section_headers[-1]
    strtab = elf.strtab_data()
    assert strtab.startswith(b"\x00xdp_sock\x00")
    assert strtab.endswith(b".shstrtab\x00")


def test_invalid_strtab_index_gives_no_names():
    elf = Elf.from_bytes(_build_elf(SAMPLE_SECTIONS, shstrndx=99))
    assert elf.strtab_header() is None
    assert elf.strtab_data() is None
    assert elf.section_data_by_name(".maps") is None


def test_too_small():
    with pytest.raises(ElfError, match="file too small"):
        Elf.from_bytes(b"\x7fELF" + bytes(10))


def test_bad_magic():
    with pytest.raises(ElfError, match="not an ELF file"):
        Elf.from_bytes(_build_elf(SAMPLE_SECTIONS, magic=b"\x7fBAD"))


def test_not_64_bit():
    with pytest.raises(ElfError, match="not 64-bit ELF"):
        Elf.from_bytes(_build_elf(SAMPLE_SECTIONS, elf_class=1))


def test_truncated_section_table():
    data = _build_elf(SAMPLE_SECTIONS)
    with pytest.raises(ElfError, match="section header table out of bounds"):
        Elf.from_bytes(data[:-1])


def test_from_file(tmp_path):
    path = tmp_path / "prog.o"
    path.write_bytes(_build_elf(SAMPLE_SECTIONS))
    elf = Elf.from_file(path)
    assert elf.section_data_by_name(".maps") == bytes(range(20))


def test_from_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        Elf.from_file(tmp_path / "absent.o")


def test_record_round_trips():
    sym = Elf64Sym(7, 0x12, 0, 3, 0x1000, 24)
    assert Elf64Sym.unpack(b"pad" + sym.pack(), 3) == sym
    rel = Elf64Rel(0x40, (5 << 32) | 1)
    assert Elf64Rel.unpack(rel.pack()) == rel
    rela = Elf64Rela(0x10, 2, -8)
    assert Elf64Rela.unpack(rela.pack()).r_addend == -8
    section = Elf64SectionHeader(1, 2, 3, 4, 5, 6, 7, 8, 9, 10)
    assert Elf64SectionHeader.unpack(section.pack()) == section


def test_record_sizes_follow_elf64_layout():
    assert Elf64Header.size() == 64
    assert Elf64SectionHeader.size() == 64
    assert Elf64Rel.size() == 16
    assert Elf64Rela.size() == 24
    assert Elf64Sym.size() == 24


def test_record_out_of_bounds():
    with pytest.raises(ElfError):
        Elf64Sym.unpack(bytes(23))