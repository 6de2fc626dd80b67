"""Control and status register bank.

Storage is a flat 4096-entry array. A handful of addresses are not storage
of their own but masked views of another register (SSTATUS over MSTATUS,
SIE/SIP over MIE/MIP, FFLAGS/FRM over FCSR, the user counters over the
machine counters); reads and writes of those go through the backing entry.
"""

from bit_util import MASK64, bits

# Floating point (storage only, no F/D execution)
FFLAGS = 0x001
FRM = 0x002
FCSR = 0x003

# Supervisor
SSTATUS = 0x100
SEDELEG = 0x102
SIDELEG = 0x103
SIE = 0x104
STVEC = 0x105
SCOUNTEREN = 0x106
SSCRATCH = 0x140
SEPC = 0x141
SCAUSE = 0x142
STVAL = 0x143
SIP = 0x144
SATP = 0x180

# Machine
MSTATUS = 0x300
MISA = 0x301
MEDELEG = 0x302
MIDELEG = 0x303
MIE = 0x304
MTVEC = 0x305
MCOUNTEREN = 0x306
MSCRATCH = 0x340
MEPC = 0x341
MCAUSE = 0x342
MTVAL = 0x343
MIP = 0x344
PMPCFG0 = 0x3a0
PMPADDR0 = 0x3b0
MCYCLE = 0xb00
MINSTRET = 0xb02
MVENDORID = 0xf11
MARCHID = 0xf12
MIMPID = 0xf13
MHARTID = 0xf14

# User counters
CYCLE = 0xc00
TIME = 0xc01
INSTRET = 0xc02

# mstatus fields
MSTATUS_SIE = 1 << 1
MSTATUS_MIE = 1 << 3
MSTATUS_SPIE = 1 << 5
MSTATUS_MPIE = 1 << 7
MSTATUS_SPP = 1 << 8
MSTATUS_MPP = 0b11 << 11
MSTATUS_FS = 0b11 << 13
MSTATUS_XS = 0b11 << 15
MSTATUS_SUM = 1 << 18
MSTATUS_MXR = 1 << 19
MSTATUS_TVM = 1 << 20
MSTATUS_TW = 1 << 21
MSTATUS_TSR = 1 << 22
MSTATUS_UXL = 0b11 << 32
MSTATUS_SXL = 0b11 << 34
MSTATUS_SD = 1 << 63

_MSTATUS_WRITABLE = (
    MSTATUS_SIE | MSTATUS_MIE | MSTATUS_SPIE | MSTATUS_MPIE | MSTATUS_SPP
    | MSTATUS_MPP | MSTATUS_FS | MSTATUS_SUM | MSTATUS_MXR | MSTATUS_TVM
    | MSTATUS_TW | MSTATUS_TSR
)
# UXL = SXL = 2 (64-bit)
_MSTATUS_XLEN = (2 << 32) | (2 << 34)

SSTATUS_MASK = (
    0x1 | MSTATUS_SIE | (1 << 4) | MSTATUS_SPIE | MSTATUS_SPP | MSTATUS_FS
    | MSTATUS_XS | MSTATUS_SUM | MSTATUS_MXR | MSTATUS_UXL | MSTATUS_SD
)

# mip / mie bits
SSIP = 1 << 1
MSIP = 1 << 3
STIP = 1 << 5
MTIP = 1 << 7
SEIP = 1 << 9
MEIP = 1 << 11

SIE_MASK = 0x333
SIP_MASK = 0x333
_MIE_WRITABLE = SSIP | MSIP | STIP | MTIP | SEIP | MEIP
_MIP_WRITABLE = SSIP | STIP | SEIP
_SIP_WRITABLE = SSIP
_MIDELEG_WRITABLE = SSIP | STIP | SEIP
_MEDELEG_WRITABLE = 0xffff & ~(1 << 11)

# RV64 (MXL=2) with A, C, I, M, S, U
MISA_VALUE = (2 << 62) | (1 << 0) | (1 << 2) | (1 << 8) | (1 << 12) | (1 << 18) | (1 << 20)

SATP_MODE_BARE = 0
SATP_MODE_SV39 = 8
SATP_PPN_MASK = (1 << 44) - 1


def satp_mode(value):
    return bits(value, 63, 60)


def is_read_only(addr):
    return bits(addr, 11, 10) == 0b11


def required_mode(addr):
    """Lowest privilege level allowed to access the CSR."""
    return bits(addr, 9, 8)


def _check_addr(addr):
    if not 0 <= addr < 4096:
        raise ValueError(f"Invalid CSR address: 0x{addr:x}")


class CSRBank:
    def __init__(self, hart_id=0):
        self.regs = [0] * 4096
        self.regs[MISA] = MISA_VALUE
        self.regs[MSTATUS] = _MSTATUS_XLEN
        self.regs[MHARTID] = hart_id
        # interrupt lines driven by devices, ORed into MIP on read
        self.external = 0

    def read(self, addr):
        _check_addr(addr)
        if addr == SSTATUS:
            return self.regs[MSTATUS] & SSTATUS_MASK
        if addr == SIE:
            return self.regs[MIE] & SIE_MASK
        if addr == SIP:
            return self.mip() & SIP_MASK
        if addr == MIP:
            return self.mip()
        if addr == FFLAGS:
            return self.regs[FCSR] & 0x1f
        if addr == FRM:
            return (self.regs[FCSR] >> 5) & 0x7
        if addr in (CYCLE, TIME):
            return self.regs[MCYCLE]
        if addr == INSTRET:
            return self.regs[MINSTRET]
        return self.regs[addr]

    def write(self, addr, value):
        _check_addr(addr)
        value &= MASK64
        if addr == SSTATUS:
            self._write_mstatus(self._merge(MSTATUS, value, SSTATUS_MASK))
        elif addr == MSTATUS:
            self._write_mstatus(value)
        elif addr == SIE:
            self._replace(MIE, value, SIE_MASK & _MIE_WRITABLE)
        elif addr == MIE:
            self._replace(MIE, value, _MIE_WRITABLE)
        elif addr == SIP:
            self._replace(MIP, value, _SIP_WRITABLE)
        elif addr == MIP:
            self._replace(MIP, value, _MIP_WRITABLE)
        elif addr == FFLAGS:
            self._replace(FCSR, value, 0x1f)
        elif addr == FRM:
            self._replace(FCSR, value << 5, 0x7 << 5)
        elif addr == FCSR:
            self.regs[FCSR] = value & 0xff
        elif addr in (CYCLE, TIME):
            self.regs[MCYCLE] = value
        elif addr == INSTRET:
            self.regs[MINSTRET] = value
        elif addr == MISA:
            return
        elif addr == MEDELEG:
            self.regs[MEDELEG] = value & _MEDELEG_WRITABLE
        elif addr == MIDELEG:
            self.regs[MIDELEG] = value & _MIDELEG_WRITABLE
        elif addr in (MEPC, SEPC):
            self.regs[addr] = value & ~0x1
        elif addr in (MTVEC, STVEC):
            # only direct (0) and vectored (1) modes exist
            self.regs[addr] = value & ~0x2
        elif addr == SATP:
            if satp_mode(value) in (SATP_MODE_BARE, SATP_MODE_SV39):
                self.regs[SATP] = value
        else:
            self.regs[addr] = value

    def mip(self):
        return self.regs[MIP] | self.external

    def read_for_update(self, addr):
        """Value a CSRRS/CSRRC starts from; device lines are left out."""
        if addr == MIP:
            return self.regs[MIP]
        if addr == SIP:
            return self.regs[MIP] & SIP_MASK
        return self.read(addr)

    def set_pending(self, mask, level=True):
        """Drive device interrupt lines.

        The lines are kept apart from the software-written MIP bits, so
        lowering a line never clears a bit that software set.
        """
        if level:
            self.external |= mask
        else:
            self.external &= ~mask & MASK64

    def tick(self, retired=True):
        self.regs[MCYCLE] = (self.regs[MCYCLE] + 1) & MASK64
        if retired:
            self.regs[MINSTRET] = (self.regs[MINSTRET] + 1) & MASK64

    def _merge(self, addr, value, mask):
        return (self.regs[addr] & ~mask & MASK64) | (value & mask)

    def _replace(self, addr, value, mask):
        self.regs[addr] = self._merge(addr, value, mask)

    def _write_mstatus(self, value):
        value &= _MSTATUS_WRITABLE
        if bits(value, 12, 11) == 0b10:
            # MPP is WARL; the reserved encoding falls back to User
            value &= ~MSTATUS_MPP
        value |= _MSTATUS_XLEN
        if bits(value, 14, 13) == 0b11 or bits(value, 16, 15) == 0b11:
            value |= MSTATUS_SD
        self.regs[MSTATUS] = value
