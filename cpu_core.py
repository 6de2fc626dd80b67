import csr
import instruction as ins
from bit_util import MASK32, MASK64, bits, sext32, sign_extend, to_signed
from bus import BusError
from exception import (
    NONE,
    AccessKind,
    TrapException,
    access_fault,
    address_misaligned,
    breakpoint_exception,
    environment_call,
    illegal_instruction,
)
from mmu import PAGE_SIZE
from mode import Mode


def _div(a, b, width=64):
    a, b = to_signed(a, width), to_signed(b, width)
    if b == 0:
        return -1
    if a == -(1 << (width - 1)) and b == -1:
        return a
    q = abs(a) // abs(b)
    return -q if (a < 0) != (b < 0) else q


def _rem(a, b, width=64):
    a, b = to_signed(a, width), to_signed(b, width)
    if b == 0:
        return a
    if a == -(1 << (width - 1)) and b == -1:
        return 0
    return a - _div(a, b, width) * b


def _divu(a, b, width=64):
    mask = (1 << width) - 1
    a, b = a & mask, b & mask
    return mask if b == 0 else a // b


def _remu(a, b, width=64):
    mask = (1 << width) - 1
    a, b = a & mask, b & mask
    return a if b == 0 else a % b


_REG_ALU = {
    ins.ADD: lambda a, b: a + b,
    ins.SUB: lambda a, b: a - b,
    ins.SLL: lambda a, b: a << (b & 0x3f),
    ins.SLT: lambda a, b: int(to_signed(a) < to_signed(b)),
    ins.SLTU: lambda a, b: int(a < b),
    ins.XOR: lambda a, b: a ^ b,
    ins.SRL: lambda a, b: a >> (b & 0x3f),
    ins.SRA: lambda a, b: to_signed(a) >> (b & 0x3f),
    ins.OR: lambda a, b: a | b,
    ins.AND: lambda a, b: a & b,
    ins.MUL: lambda a, b: a * b,
    ins.MULH: lambda a, b: (to_signed(a) * to_signed(b)) >> 64,
    ins.MULHSU: lambda a, b: (to_signed(a) * b) >> 64,
    ins.MULHU: lambda a, b: (a * b) >> 64,
    ins.DIV: _div,
    ins.DIVU: _divu,
    ins.REM: _rem,
    ins.REMU: _remu,
}

# 32-bit operations; the result is sign-extended from bit 31
_WORD_ALU = {
    ins.ADDW: lambda a, b: a + b,
    ins.SUBW: lambda a, b: a - b,
    ins.SLLW: lambda a, b: a << (b & 0x1f),
    ins.SRLW: lambda a, b: (a & MASK32) >> (b & 0x1f),
    ins.SRAW: lambda a, b: to_signed(a, 32) >> (b & 0x1f),
    ins.MULW: lambda a, b: a * b,
    ins.DIVW: lambda a, b: _div(a, b, 32),
    ins.DIVUW: lambda a, b: _divu(a, b, 32),
    ins.REMW: lambda a, b: _rem(a, b, 32),
    ins.REMUW: lambda a, b: _remu(a, b, 32),
}

_IMM_ALU = {
    ins.ADDI: lambda a, imm: a + imm,
    ins.SLTI: lambda a, imm: int(to_signed(a) < to_signed(imm)),
    ins.SLTIU: lambda a, imm: int(a < imm),
    ins.XORI: lambda a, imm: a ^ imm,
    ins.ORI: lambda a, imm: a | imm,
    ins.ANDI: lambda a, imm: a & imm,
    ins.SLLI: lambda a, imm: a << (imm & 0x3f),
    ins.SRLI: lambda a, imm: a >> (imm & 0x3f),
    ins.SRAI: lambda a, imm: to_signed(a) >> (imm & 0x3f),
}

_IMM_WORD_ALU = {
    ins.ADDIW: lambda a, imm: a + imm,
    ins.SLLIW: lambda a, imm: a << (imm & 0x1f),
    ins.SRLIW: lambda a, imm: (a & MASK32) >> (imm & 0x1f),
    ins.SRAIW: lambda a, imm: to_signed(a, 32) >> (imm & 0x1f),
}

_BRANCHES = {
    ins.BEQ: lambda a, b: a == b,
    ins.BNE: lambda a, b: a != b,
    ins.BLT: lambda a, b: to_signed(a) < to_signed(b),
    ins.BGE: lambda a, b: to_signed(a) >= to_signed(b),
    ins.BLTU: lambda a, b: a < b,
    ins.BGEU: lambda a, b: a >= b,
}

# op -> (size in bits, sign-extend)
_LOADS = {
    ins.LB: (8, True),
    ins.LH: (16, True),
    ins.LW: (32, True),
    ins.LD: (64, False),
    ins.LBU: (8, False),
    ins.LHU: (16, False),
    ins.LWU: (32, False),
}

_STORES = {ins.SB: 8, ins.SH: 16, ins.SW: 32, ins.SD: 64}

_AMO_FUNCS = {
    "AMOSWAP": lambda old, src, w: src,
    "AMOADD": lambda old, src, w: old + src,
    "AMOXOR": lambda old, src, w: old ^ src,
    "AMOAND": lambda old, src, w: old & src,
    "AMOOR": lambda old, src, w: old | src,
    "AMOMIN": lambda old, src, w: old if to_signed(old, w) <= to_signed(src, w) else src,
    "AMOMAX": lambda old, src, w: old if to_signed(old, w) >= to_signed(src, w) else src,
    "AMOMINU": lambda old, src, w: old if (old & ((1 << w) - 1)) <= (src & ((1 << w) - 1)) else src,
    "AMOMAXU": lambda old, src, w: old if (old & ((1 << w) - 1)) >= (src & ((1 << w) - 1)) else src,
}


def _amo_width(op):
    return 32 if op.endswith(".W") else 64


class CPUCore:
    _HANDLERS = {
        ins.LUI: "_exec_lui",
        ins.AUIPC: "_exec_auipc",
        ins.JAL: "_exec_jal",
        ins.JALR: "_exec_jalr",
        ins.FENCE: "_exec_fence",
        ins.FENCE_I: "_exec_fence",
        ins.ECALL: "_exec_ecall",
        ins.EBREAK: "_exec_ebreak",
        ins.MRET: "_exec_mret",
        ins.SRET: "_exec_sret",
        ins.WFI: "_exec_wfi",
        ins.SFENCE_VMA: "_exec_sfence_vma",
        ins.LR_W: "_exec_lr",
        ins.LR_D: "_exec_lr",
        ins.SC_W: "_exec_sc",
        ins.SC_D: "_exec_sc",
    }
    _HANDLERS.update(dict.fromkeys(_REG_ALU, "_exec_reg"))
    _HANDLERS.update(dict.fromkeys(_WORD_ALU, "_exec_reg_word"))
    _HANDLERS.update(dict.fromkeys(_IMM_ALU, "_exec_imm"))
    _HANDLERS.update(dict.fromkeys(_IMM_WORD_ALU, "_exec_imm_word"))
    _HANDLERS.update(dict.fromkeys(_BRANCHES, "_exec_branch"))
    _HANDLERS.update(dict.fromkeys(_LOADS, "_exec_load"))
    _HANDLERS.update(dict.fromkeys(_STORES, "_exec_store"))
    _HANDLERS.update(dict.fromkeys(
        (ins.CSRRW, ins.CSRRS, ins.CSRRC, ins.CSRRWI, ins.CSRRSI, ins.CSRRCI), "_exec_csr"
    ))
    _HANDLERS.update(dict.fromkeys(
        (f"{name}.{suffix}" for name in _AMO_FUNCS for suffix in ("W", "D")), "_exec_amo"
    ))

    def __init__(self, cpu):
        self.cpu = cpu

    def execute(self, op, fields):
        """Apply ``op`` to the CPU state and return the resulting exception.

        ``NONE`` means the instruction completed. The caller has already set
        ``cpu.next_pc`` to the fall-through address; control transfers
        overwrite it.
        """
        handler_name = self._HANDLERS.get(op)
        if handler_name is None:
            return illegal_instruction(self.cpu.last_instr)
        try:
            getattr(self, handler_name)(op, fields)
        except TrapException as e:
            return e.exc
        return NONE

    def _illegal_instruction(self):
        raise TrapException(illegal_instruction(self.cpu.last_instr))

    # Memory access

    def _translate(self, va, kind):
        pa, exc = self.cpu.mmu.translate(va & MASK64, kind)
        if not exc.is_none():
            raise TrapException(exc)
        return pa

    def _crosses_page(self, va, size):
        return self.cpu.mmu.active() and (va % PAGE_SIZE) + size // 8 > PAGE_SIZE

    def load(self, va, size, kind=AccessKind.LOAD):
        va &= MASK64
        if self._crosses_page(va, size):
            value = 0
            for i in range(size // 8):
                value |= self.load(va + i, 8, kind) << (8 * i)
            return value
        pa = self._translate(va, kind)
        try:
            return self.cpu.bus.read(pa, size)
        except BusError:
            raise TrapException(access_fault(kind, va)) from None

    def store(self, va, value, size):
        va &= MASK64
        if self._crosses_page(va, size):
            for i in range(size // 8):
                self.store(va + i, value >> (8 * i), 8)
            return
        pa = self._translate(va, AccessKind.STORE)
        try:
            self.cpu.bus.write(pa, value, size)
        except BusError:
            raise TrapException(access_fault(AccessKind.STORE, va)) from None

    # Integer

    def _exec_lui(self, op, f):
        self.cpu.regs.write(f.rd, f.imm)

    def _exec_auipc(self, op, f):
        self.cpu.regs.write(f.rd, self.cpu.pc + f.imm)

    def _exec_reg(self, op, f):
        regs = self.cpu.regs
        regs.write(f.rd, _REG_ALU[op](regs.read(f.rs1), regs.read(f.rs2)))

    def _exec_reg_word(self, op, f):
        regs = self.cpu.regs
        regs.write(f.rd, sext32(_WORD_ALU[op](regs.read(f.rs1), regs.read(f.rs2))))

    def _exec_imm(self, op, f):
        regs = self.cpu.regs
        regs.write(f.rd, _IMM_ALU[op](regs.read(f.rs1), f.imm))

    def _exec_imm_word(self, op, f):
        regs = self.cpu.regs
        regs.write(f.rd, sext32(_IMM_WORD_ALU[op](regs.read(f.rs1), f.imm)))

    # Control transfer

    def _exec_jal(self, op, f):
        cpu = self.cpu
        link = cpu.next_pc
        cpu.next_pc = (cpu.pc + f.imm) & MASK64
        cpu.regs.write(f.rd, link)

    def _exec_jalr(self, op, f):
        cpu = self.cpu
        link = cpu.next_pc
        # rs1 is read before rd is written
        cpu.next_pc = (cpu.regs.read(f.rs1) + f.imm) & MASK64 & ~0x1
        cpu.regs.write(f.rd, link)

    def _exec_branch(self, op, f):
        cpu = self.cpu
        if _BRANCHES[op](cpu.regs.read(f.rs1), cpu.regs.read(f.rs2)):
            cpu.next_pc = (cpu.pc + f.imm) & MASK64

    # Loads and stores

    def _exec_load(self, op, f):
        size, signed = _LOADS[op]
        regs = self.cpu.regs
        value = self.load(regs.read(f.rs1) + f.imm, size)
        if signed:
            value = sign_extend(value, size)
        regs.write(f.rd, value)

    def _exec_store(self, op, f):
        regs = self.cpu.regs
        self.store(regs.read(f.rs1) + f.imm, regs.read(f.rs2), _STORES[op])

    # Atomics

    def _check_aligned(self, addr, width, kind):
        if addr % (width // 8):
            raise TrapException(address_misaligned(kind, addr))

    def _exec_lr(self, op, f):
        cpu = self.cpu
        width = _amo_width(op)
        addr = cpu.regs.read(f.rs1)
        self._check_aligned(addr, width, AccessKind.LOAD)
        value = self.load(addr, width)
        cpu.reservation = self._translate(addr, AccessKind.LOAD)
        cpu.regs.write(f.rd, sign_extend(value, width))

    def _exec_sc(self, op, f):
        cpu = self.cpu
        width = _amo_width(op)
        addr = cpu.regs.read(f.rs1)
        self._check_aligned(addr, width, AccessKind.STORE)
        pa = self._translate(addr, AccessKind.STORE)
        reserved = cpu.reservation == pa
        cpu.reservation = None
        if reserved:
            self.store(addr, cpu.regs.read(f.rs2), width)
        cpu.regs.write(f.rd, 0 if reserved else 1)

    def _exec_amo(self, op, f):
        cpu = self.cpu
        width = _amo_width(op)
        addr = cpu.regs.read(f.rs1)
        # AMOs need write permission, so every fault is store-typed
        self._check_aligned(addr, width, AccessKind.STORE)
        old = self.load(addr, width, AccessKind.STORE)
        src = cpu.regs.read(f.rs2)
        self.store(addr, _AMO_FUNCS[op[:-2]](old, src, width), width)
        cpu.regs.write(f.rd, sign_extend(old, width))

    def _exec_fence(self, op, f):
        pass

    # Zicsr

    def _exec_csr(self, op, f):
        cpu = self.cpu
        addr = f.imm & 0xfff
        if cpu.mode < csr.required_mode(addr):
            self._illegal_instruction()
        if addr == csr.SATP and cpu.mode == Mode.SUPERVISOR and cpu.csr.read(csr.MSTATUS) & csr.MSTATUS_TVM:
            self._illegal_instruction()
        if csr.CYCLE <= addr <= csr.INSTRET and not self._counter_enabled(addr):
            self._illegal_instruction()

        immediate = op in (ins.CSRRWI, ins.CSRRSI, ins.CSRRCI)
        src = f.rs1 if immediate else cpu.regs.read(f.rs1)
        if op in (ins.CSRRW, ins.CSRRWI):
            writes = True
            old = cpu.csr.read(addr) if f.rd else 0
            new = src
        else:
            writes = f.rs1 != 0
            old = cpu.csr.read(addr)
            base = cpu.csr.read_for_update(addr)
            new = base | src if op in (ins.CSRRS, ins.CSRRSI) else base & ~src
        if writes:
            if csr.is_read_only(addr):
                self._illegal_instruction()
            cpu.csr.write(addr, new)
            if addr == csr.SATP:
                cpu.update_paging()
        cpu.regs.write(f.rd, old)

    def _counter_enabled(self, addr):
        cpu = self.cpu
        bit = 1 << (addr - csr.CYCLE)
        if cpu.mode < Mode.MACHINE and not cpu.csr.read(csr.MCOUNTEREN) & bit:
            return False
        if cpu.mode == Mode.USER and not cpu.csr.read(csr.SCOUNTEREN) & bit:
            return False
        return True

    # Privileged

    def _exec_ecall(self, op, f):
        raise TrapException(environment_call(self.cpu.mode))

    def _exec_ebreak(self, op, f):
        raise TrapException(breakpoint_exception(self.cpu.pc))

    def _exec_mret(self, op, f):
        cpu = self.cpu
        if cpu.mode < Mode.MACHINE:
            self._illegal_instruction()
        mstatus = cpu.csr.read(csr.MSTATUS)
        mpp = bits(mstatus, 12, 11)
        mpie = bits(mstatus, 7, 7)
        mstatus &= ~(csr.MSTATUS_MIE | csr.MSTATUS_MPP)
        mstatus |= (mpie << 3) | csr.MSTATUS_MPIE
        cpu.csr.write(csr.MSTATUS, mstatus)
        cpu.mode = Mode.from_code(mpp)
        cpu.next_pc = cpu.csr.read(csr.MEPC)

    def _exec_sret(self, op, f):
        cpu = self.cpu
        mstatus = cpu.csr.read(csr.MSTATUS)
        if cpu.mode < Mode.SUPERVISOR:
            self._illegal_instruction()
        if cpu.mode == Mode.SUPERVISOR and mstatus & csr.MSTATUS_TSR:
            self._illegal_instruction()
        spp = bits(mstatus, 8, 8)
        spie = bits(mstatus, 5, 5)
        mstatus &= ~(csr.MSTATUS_SIE | csr.MSTATUS_SPP)
        mstatus |= (spie << 1) | csr.MSTATUS_SPIE
        cpu.csr.write(csr.MSTATUS, mstatus)
        cpu.mode = Mode.SUPERVISOR if spp else Mode.USER
        cpu.next_pc = cpu.csr.read(csr.SEPC)

    def _exec_wfi(self, op, f):
        cpu = self.cpu
        if cpu.mode == Mode.USER:
            self._illegal_instruction()
        if cpu.mode == Mode.SUPERVISOR and cpu.csr.read(csr.MSTATUS) & csr.MSTATUS_TW:
            self._illegal_instruction()
        cpu.wfi = True

    def _exec_sfence_vma(self, op, f):
        cpu = self.cpu
        if cpu.mode == Mode.USER:
            self._illegal_instruction()
        if cpu.mode == Mode.SUPERVISOR and cpu.csr.read(csr.MSTATUS) & csr.MSTATUS_TVM:
            self._illegal_instruction()
