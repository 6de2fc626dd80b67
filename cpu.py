import csr
import instruction as ins
from bit_util import MASK64, bit
from bus import BusError
from compressed import decode_compressed, expand_compressed, is_compressed
from cpu_core import CPUCore
from csr import CSRBank
from decoder import decode_instruction
from exception import NONE, AccessKind, InterruptCode, access_fault, address_misaligned, interrupt
from mmu import MMU
from mode import Mode
from registers import Registers

# Highest priority first
INTERRUPT_PRIORITY = (
    InterruptCode.MACHINE_EXTERNAL,
    InterruptCode.MACHINE_SOFTWARE,
    InterruptCode.MACHINE_TIMER,
    InterruptCode.SUPERVISOR_EXTERNAL,
    InterruptCode.SUPERVISOR_SOFTWARE,
    InterruptCode.SUPERVISOR_TIMER,
)


class CPU:
    """A single RV64IMAC hart.

    All architectural state lives on the instance; nothing is shared between
    CPUs. ``step`` runs one instruction to completion and returns the
    exception it raised (``NONE`` when it retired normally). Traps are
    dispatched before ``step`` returns.
    """

    def __init__(self, bus, hart_id=0):
        self.bus = bus
        self.regs = Registers()
        self.csr = CSRBank(hart_id)
        self.mode = Mode.MACHINE
        self.pc = 0
        self.next_pc = 0
        self.paging_enabled = False
        self.reservation = None
        self.wfi = False
        self.last_instr = 0
        self.last_decoded = None
        self.mmu = MMU(self)
        self.core = CPUCore(self)

    def update_paging(self):
        self.paging_enabled = csr.satp_mode(self.csr.read(csr.SATP)) == csr.SATP_MODE_SV39

    def _fetch_half(self, va):
        pa, exc = self.mmu.translate(va, AccessKind.FETCH)
        if not exc.is_none():
            return 0, exc
        try:
            return self.bus.read(pa, 16), NONE
        except BusError:
            return 0, access_fault(AccessKind.FETCH, va)

    def fetch(self):
        """Return ``(inst, exc)``: a 16-bit parcel or a full 32-bit word."""
        if self.pc & 0x1:
            return 0, address_misaligned(AccessKind.FETCH, self.pc)
        low, exc = self._fetch_half(self.pc)
        if not exc.is_none() or is_compressed(low):
            return low, exc
        # the upper half may sit on another page
        high, exc = self._fetch_half((self.pc + 2) & MASK64)
        if not exc.is_none():
            return 0, exc
        return low | (high << 16), NONE

    def decode(self, inst):
        if is_compressed(inst):
            op = decode_compressed(inst)
            word = expand_compressed(inst, op)
            if word is None:
                return ins.DecodedInstruction(inst, ins.INVALID, ins.FORMAT_NONE, None, 2, op)
            return decode_instruction(word, size=2, compressed_op=op)
        return decode_instruction(inst)

    def step(self):
        if self.wfi and self.csr.read(csr.MIP) & self.csr.read(csr.MIE):
            self.wfi = False
        irq = self.pending_interrupt()
        if irq is not None:
            self.take_trap(irq)
            return irq
        if self.wfi:
            self.csr.tick(retired=False)
            return NONE

        inst, exc = self.fetch()
        if exc.is_none():
            decoded = self.decode(inst)
            self.last_instr = inst
            self.last_decoded = decoded
            self.next_pc = (self.pc + decoded.size) & MASK64
            exc = self.core.execute(decoded.op, decoded.fields)
        if not exc.is_none():
            self.take_trap(exc)
            self.csr.tick(retired=False)
            return exc
        self.pc = self.next_pc
        self.csr.tick()
        return NONE

    def pending_interrupt(self):
        """Return the interrupt to take now, or None."""
        pending = self.csr.read(csr.MIP) & self.csr.read(csr.MIE)
        if not pending:
            return None
        mstatus = self.csr.read(csr.MSTATUS)
        mideleg = self.csr.read(csr.MIDELEG)
        m_enabled = self.mode < Mode.MACHINE or bool(mstatus & csr.MSTATUS_MIE)
        if self.mode == Mode.MACHINE:
            s_enabled = False
        else:
            s_enabled = self.mode < Mode.SUPERVISOR or bool(mstatus & csr.MSTATUS_SIE)
        for code in INTERRUPT_PRIORITY:
            if not bit(pending, code):
                continue
            if bit(mideleg, code):
                if s_enabled:
                    return interrupt(code)
            elif m_enabled:
                return interrupt(code)
        return None

    def take_trap(self, exc):
        """Redirect control to the trap handler for ``exc``.

        Delegation to S-mode needs both a lower current privilege and the
        matching medeleg/mideleg bit; everything else lands in M-mode.
        """
        if exc.is_none():
            return
        code = int(exc.code)
        deleg = self.csr.read(csr.MIDELEG if exc.interrupt else csr.MEDELEG)
        mstatus = self.csr.read(csr.MSTATUS)
        if self.mode != Mode.MACHINE and bit(deleg, code):
            self.csr.write(csr.SEPC, self.pc)
            self.csr.write(csr.SCAUSE, exc.cause)
            self.csr.write(csr.STVAL, exc.value)
            sie = bit(mstatus, 1)
            mstatus &= ~(csr.MSTATUS_SIE | csr.MSTATUS_SPIE | csr.MSTATUS_SPP)
            mstatus |= (sie << 5) | (int(self.mode == Mode.SUPERVISOR) << 8)
            vector = self.csr.read(csr.STVEC)
            self.mode = Mode.SUPERVISOR
        else:
            self.csr.write(csr.MEPC, self.pc)
            self.csr.write(csr.MCAUSE, exc.cause)
            self.csr.write(csr.MTVAL, exc.value)
            mie = bit(mstatus, 3)
            mstatus &= ~(csr.MSTATUS_MIE | csr.MSTATUS_MPIE | csr.MSTATUS_MPP)
            mstatus |= (mie << 7) | (int(self.mode) << 11)
            vector = self.csr.read(csr.MTVEC)
            self.mode = Mode.MACHINE
        self.csr.write(csr.MSTATUS, mstatus)

        target = vector & ~0x3
        if vector & 0x1 and exc.interrupt:
            target += 4 * code
        self.pc = target & MASK64
        self.next_pc = self.pc
        self.reservation = None
