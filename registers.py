from bit_util import MASK64

ABI_NAMES = [
    "zero", "ra", "sp", "gp", "tp", "t0", "t1", "t2", "fp", "s1",
    "a0", "a1", "a2", "a3", "a4", "a5", "a6", "a7",
    "s2", "s3", "s4", "s5", "s6", "s7", "s8", "s9", "s10", "s11",
    "t3", "t4", "t5", "t6",
]


class Registers:
    def __init__(self):
        self.values = [0] * 32

    def read(self, index):
        return self.values[index]

    def write(self, index, value):
        # x0 is hard-wired to zero
        if index == 0:
            return
        self.values[index] = value & MASK64

    def __getitem__(self, index):
        return self.values[index]

    def __setitem__(self, index, value):
        self.write(index, value)

    def dump(self):
        return [f"x{i:2} ({ABI_NAMES[i]:>6}) = 0x{self.values[i]:016x}" for i in range(32)]
