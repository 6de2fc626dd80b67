"""Platform-level interrupt controller, supervisor context of hart 0.

Memory map (offsets from the base):

    0x000000 + 4*id   source priority
    0x001000          pending bits, sources 0-31
    0x002080          supervisor enable bits, sources 0-31
    0x201000          supervisor priority threshold
    0x201004          supervisor claim/complete
"""

PLIC_BASE = 0x0c000000
PLIC_SIZE = 0x4000000

VIRTIO_IRQ = 1
UART_IRQ = 10

NUM_SOURCES = 32

PRIORITY = 0x000000
PENDING = 0x001000
SENABLE = 0x002080
STHRESHOLD = 0x201000
SCLAIM = 0x201004


class Plic:
    def __init__(self):
        self.priority = [0] * NUM_SOURCES
        self.pending = 0
        self.enable = 0
        self.threshold = 0
        self.in_service = set()

    def set_pending(self, source, level=True):
        if not 0 < source < NUM_SOURCES:
            raise ValueError(f"Invalid interrupt source: {source}")
        if level:
            self.pending |= 1 << source
        else:
            self.pending &= ~(1 << source)

    def best(self):
        """Highest-priority claimable source, lowest id on ties; 0 when none."""
        best_id = 0
        best_priority = 0
        for source in range(1, NUM_SOURCES):
            if not (self.pending >> source) & 1 or not (self.enable >> source) & 1:
                continue
            if source in self.in_service:
                continue
            priority = self.priority[source]
            if priority > self.threshold and priority > best_priority:
                best_id = source
                best_priority = priority
        return best_id

    def has_interrupt(self):
        return self.best() != 0

    def claim(self):
        source = self.best()
        if source:
            self.pending &= ~(1 << source)
            self.in_service.add(source)
        return source

    def complete(self, source):
        self.in_service.discard(source)

    def read(self, offset, size):
        if PRIORITY <= offset < PRIORITY + 4 * NUM_SOURCES:
            return self.priority[offset // 4]
        if offset == PENDING:
            return self.pending
        if offset == SENABLE:
            return self.enable
        if offset == STHRESHOLD:
            return self.threshold
        if offset == SCLAIM:
            return self.claim()
        return 0

    def write(self, offset, value, size):
        value &= 0xffffffff
        if PRIORITY <= offset < PRIORITY + 4 * NUM_SOURCES:
            source = offset // 4
            if source:
                self.priority[source] = value & 0x7
        elif offset == SENABLE:
            # source 0 does not exist
            self.enable = value & ~0x1
        elif offset == STHRESHOLD:
            self.threshold = value & 0x7
        elif offset == SCLAIM:
            self.complete(value)
