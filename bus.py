from bit_util import MASK64

_SIZES = {8: 1, 16: 2, 32: 4, 64: 8}


class BusError(Exception):
    def __init__(self, addr, op):
        super().__init__(f"Bus {op} fault at 0x{addr:x}")
        self.addr = addr
        self.op = op


class HaltException(Exception):
    def __init__(self, reason, code=None):
        message = f"{reason}: {code}" if code is not None else reason
        super().__init__(message)
        self.reason = reason
        self.code = code


def _byte_count(size):
    nbytes = _SIZES.get(size)
    if nbytes is None:
        raise ValueError(f"Unsupported access size: {size} bits")
    return nbytes


class Bus:
    """Routes physical accesses to a device window or to RAM.

    Sizes are in bits. Device windows take priority over memory regions and
    see offsets relative to their base.
    """

    def __init__(self, memory):
        self.memory = memory
        self.devices = []
        self.tohost_addr = None
        self.tohost_value = None

    def add_device(self, base, size, device, name="dev"):
        end = base + size
        for other_base, other_size, _, other_name in self.devices:
            if not (end <= other_base or base >= other_base + other_size):
                raise ValueError(
                    f"Overlapping device windows: {other_name} at 0x{other_base:x} and {name} at 0x{base:x}"
                )
        self.devices.append((base, size, device, name))

    def find_device(self, addr, nbytes=1):
        for base, size, device, _ in self.devices:
            if base <= addr and addr + nbytes <= base + size:
                return base, device
        return None, None

    def configure_tohost(self, addr):
        self.tohost_addr = addr
        self.tohost_value = None

    def read(self, addr, size):
        nbytes = _byte_count(size)
        addr &= MASK64
        base, device = self.find_device(addr, nbytes)
        if device is not None:
            return device.read(addr - base, nbytes) & ((1 << size) - 1)
        try:
            return self.memory.read_memory(addr, nbytes)
        except ValueError:
            raise BusError(addr, "read") from None

    def write(self, addr, value, size):
        nbytes = _byte_count(size)
        addr &= MASK64
        value &= (1 << size) - 1
        base, device = self.find_device(addr, nbytes)
        if device is not None:
            device.write(addr - base, value, nbytes)
            return
        try:
            self.memory.write_memory(addr, value.to_bytes(nbytes, "little"))
        except ValueError:
            raise BusError(addr, "write") from None
        if self.tohost_addr is not None and addr == self.tohost_addr and value:
            self.tohost_value = value
            raise HaltException("tohost", value)

    def read_bytes(self, addr, length):
        try:
            return self.memory.read_bytes(addr, length)
        except ValueError:
            raise BusError(addr, "read") from None

    def write_bytes(self, addr, data):
        try:
            self.memory.write_memory(addr, data)
        except ValueError:
            raise BusError(addr, "write") from None
