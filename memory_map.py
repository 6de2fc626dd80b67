"""Physical RAM as a set of named, non-overlapping regions.

The default DRAM region is created lazily at ``dram_base`` unless regions
were added explicitly first. An access may run across adjacent regions; a
byte outside every region raises ``ValueError``.
"""

import bisect

DRAM_BASE = 0x80000000


class MemoryRegion:
    def __init__(self, start, end, name="mem"):
        if end <= start:
            raise ValueError(f"Invalid memory region {name}: 0x{start:x}-0x{end:x}")
        self.start = start
        self.end = end
        self.name = name
        self.data = bytearray(end - start)

    def __contains__(self, addr):
        return self.start <= addr < self.end

    def overlaps(self, other):
        return self.start < other.end and other.start < self.end

    def __repr__(self):
        return f"MemoryRegion({self.name}, 0x{self.start:x}-0x{self.end:x})"


class MemoryMap:
    def __init__(self, memory_size, dram_base=DRAM_BASE):
        self.memory_size = memory_size
        self.dram_base = dram_base
        # kept sorted by start address
        self.regions = []
        self.initialized = False

    def init_default_regions(self):
        self.regions = []
        self.add_region(self.dram_base, self.dram_base + self.memory_size, "dram")
        self.initialized = True

    def ensure_regions(self):
        if not self.regions and not self.initialized:
            self.init_default_regions()

    def add_region(self, start, end, name="mem"):
        region = MemoryRegion(start, end, name)
        for other in self.regions:
            if other.overlaps(region):
                raise ValueError(
                    f"Region {name} 0x{start:x}-0x{end:x} overlaps "
                    f"{other.name} 0x{other.start:x}-0x{other.end:x}"
                )
        index = bisect.bisect_left([r.start for r in self.regions], start)
        self.regions.insert(index, region)
        return region

    def find_region(self, addr):
        self.ensure_regions()
        index = bisect.bisect_right([r.start for r in self.regions], addr) - 1
        if index >= 0 and addr in self.regions[index]:
            return self.regions[index]
        return None

    def contains(self, addr, size):
        """True when every byte of [addr, addr + size) is backed by a region."""
        end = addr + size
        while addr < end:
            region = self.find_region(addr)
            if region is None:
                return False
            addr = region.end
        return True

    def _chunks(self, addr, size):
        end = addr + size
        while addr < end:
            region = self.find_region(addr)
            if region is None:
                raise ValueError(f"Unmapped physical address 0x{addr:x}")
            length = min(end, region.end) - addr
            yield region, addr - region.start, length
            addr += length

    def read_bytes(self, addr, size):
        return b"".join(
            bytes(region.data[offset:offset + length])
            for region, offset, length in self._chunks(addr, size)
        )

    def read_memory(self, addr, size):
        return int.from_bytes(self.read_bytes(addr, size), "little")

    def write_memory(self, addr, data):
        view = memoryview(bytes(data))
        pos = 0
        for region, offset, length in self._chunks(addr, len(view)):
            region.data[offset:offset + length] = view[pos:pos + length]
            pos += length

    def get_stack_top(self):
        """End of DRAM, or of the highest region when there is no DRAM."""
        self.ensure_regions()
        for region in self.regions:
            if region.name == "dram":
                return region.end
        return self.regions[-1].end if self.regions else 0
