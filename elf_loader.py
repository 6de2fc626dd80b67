import struct

ELF_MAGIC = b"\x7fELF"
ELFCLASS32 = 1
ELFCLASS64 = 2
ELFDATA2LSB = 1
EM_RISCV = 243

PT_LOAD = 1
SHT_SYMTAB = 2

# e_ident[16], e_type, e_machine, e_version, e_entry, e_phoff, e_shoff, e_flags,
# e_ehsize, e_phentsize, e_phnum, e_shentsize, e_shnum, e_shstrndx
_EHDR = {
    ELFCLASS32: struct.Struct("<16xHHIIIIIHHHHHH"),
    ELFCLASS64: struct.Struct("<16xHHIQQQIHHHHHH"),
}


class ElfError(ValueError):
    pass


class ElfSegment:
    __slots__ = ("vaddr", "paddr", "data", "memsz", "flags")

    def __init__(self, vaddr, paddr, data, memsz, flags=0):
        self.vaddr = vaddr
        self.paddr = paddr
        self.data = data
        self.memsz = memsz
        self.flags = flags

    def __repr__(self):
        return f"ElfSegment(vaddr=0x{self.vaddr:x}, paddr=0x{self.paddr:x}, filesz={len(self.data)}, memsz={self.memsz})"


class ElfImage:
    def __init__(self, entry, elf_class, segments, tohost=None, symbols=None):
        self.entry = entry
        self.elf_class = elf_class
        self.segments = segments
        self.tohost = tohost
        self.symbols = symbols or {}


def _unpack(fmt, data, offset, what):
    size = struct.calcsize(fmt)
    if offset < 0 or offset + size > len(data):
        raise ElfError(f"{what} extends beyond EOF")
    return struct.unpack_from(fmt, data, offset)


def _program_header(elf_class, data, offset):
    if elf_class == ELFCLASS64:
        p_type, p_flags, p_offset, p_vaddr, p_paddr, p_filesz, p_memsz, _ = _unpack(
            "<IIQQQQQQ", data, offset, "Program header"
        )
    else:
        p_type, p_offset, p_vaddr, p_paddr, p_filesz, p_memsz, p_flags, _ = _unpack(
            "<IIIIIIII", data, offset, "Program header"
        )
    return p_type, p_flags, p_offset, p_vaddr, p_paddr, p_filesz, p_memsz


def _section_header(elf_class, data, offset):
    """Return (name, type, addr, offset, size, link, entsize)."""
    if elf_class == ELFCLASS64:
        name, sh_type, _, addr, sh_offset, size, link, _, _, entsize = _unpack(
            "<IIQQQQIIQQ", data, offset, "Section header"
        )
    else:
        name, sh_type, _, addr, sh_offset, size, link, _, _, entsize = _unpack(
            "<IIIIIIIIII", data, offset, "Section header"
        )
    return name, sh_type, addr, sh_offset, size, link, entsize


def _c_string(data, offset):
    end = data.find(b"\x00", offset)
    if end < 0:
        end = len(data)
    return data[offset:end].decode("utf-8", errors="replace")


def _read_symbols(elf_class, data, sections):
    symbols = {}
    entsize = 24 if elf_class == ELFCLASS64 else 16
    for _, sh_type, _, sh_offset, size, link, _ in sections:
        if sh_type != SHT_SYMTAB or link >= len(sections):
            continue
        strtab_offset = sections[link][3]
        for off in range(sh_offset, sh_offset + size - entsize + 1, entsize):
            if elf_class == ELFCLASS64:
                st_name, _, _, _, st_value, _ = _unpack("<IBBHQQ", data, off, "Symbol")
            else:
                st_name, st_value, _, _, _, _ = _unpack("<IIIBBH", data, off, "Symbol")
            if st_name:
                symbols[_c_string(data, strtab_offset + st_name)] = st_value
    return symbols


def load_elf(data):
    """Parse a little-endian RISC-V ELF32/ELF64 image.

    Only headers are interpreted; nothing is written to memory here, see
    ``load_segments``.
    """
    data = bytes(data)
    if len(data) < 16 or data[:4] != ELF_MAGIC:
        raise ElfError("Invalid ELF file")
    elf_class = data[4]
    if elf_class not in _EHDR or data[5] != ELFDATA2LSB:
        raise ElfError("Unsupported ELF class or endianness (expected little-endian ELF32/ELF64)")
    ehdr = _EHDR[elf_class]
    if len(data) < ehdr.size:
        raise ElfError("Truncated ELF header")
    (_, e_machine, _, e_entry, e_phoff, e_shoff, _, _,
     e_phentsize, e_phnum, e_shentsize, e_shnum, e_shstrndx) = ehdr.unpack_from(data)
    if e_machine != EM_RISCV:
        raise ElfError("Not a RISC-V ELF")
    if e_phnum and e_phoff + e_phentsize * e_phnum > len(data):
        raise ElfError("Program headers extend beyond EOF")

    segments = []
    for i in range(e_phnum):
        p_type, p_flags, p_offset, p_vaddr, p_paddr, p_filesz, p_memsz = _program_header(
            elf_class, data, e_phoff + i * e_phentsize
        )
        if p_type != PT_LOAD:
            continue
        if p_memsz < p_filesz:
            raise ElfError("Invalid segment sizes")
        if p_offset + p_filesz > len(data):
            raise ElfError("Segment extends beyond EOF")
        segments.append(ElfSegment(p_vaddr, p_paddr, data[p_offset:p_offset + p_filesz], p_memsz, p_flags))

    sections = []
    if e_shoff and e_shnum:
        sections = [
            _section_header(elf_class, data, e_shoff + i * e_shentsize) for i in range(e_shnum)
        ]

    symbols = _read_symbols(elf_class, data, sections)
    tohost = symbols.get("tohost")
    if tohost is None and e_shstrndx < len(sections):
        names_offset = sections[e_shstrndx][3]
        for name, _, addr, _, _, _, _ in sections:
            if _c_string(data, names_offset + name) == ".tohost":
                tohost = addr
                break

    return ElfImage(e_entry, elf_class, segments, tohost, symbols)


def load_elf_file(filename):
    with open(filename, "rb") as f:
        return load_elf(f.read())


def load_segments(image, bus):
    """Copy every PT_LOAD segment to its physical address, zero-filling the BSS tail."""
    for segment in image.segments:
        if segment.data:
            bus.write_bytes(segment.paddr, segment.data)
        if segment.memsz > len(segment.data):
            bus.write_bytes(segment.paddr + len(segment.data), bytes(segment.memsz - len(segment.data)))
