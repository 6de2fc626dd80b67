"""SV39 address translation.

Every call walks the page table from the root held in SATP. There is no
translation cache, so SFENCE.VMA has nothing to flush.
"""

import csr
from bit_util import bits
from bus import BusError
from exception import NONE, AccessKind, access_fault, page_fault
from mode import Mode

PAGE_SIZE = 4096
LEVELS = 3
PTE_SIZE = 8

PTE_V = 1 << 0
PTE_R = 1 << 1
PTE_W = 1 << 2
PTE_X = 1 << 3
PTE_U = 1 << 4
PTE_G = 1 << 5
PTE_A = 1 << 6
PTE_D = 1 << 7


def vpn(va, level):
    return bits(va, 20 + 9 * level, 12 + 9 * level)


def pte_ppn(pte):
    return bits(pte, 53, 10)


def is_canonical(va):
    # bits 63:39 must all equal bit 38
    upper = va >> 38
    return upper == 0 or upper == (1 << 26) - 1


class MMU:
    def __init__(self, cpu):
        self.cpu = cpu

    def active(self):
        return self.cpu.mode != Mode.MACHINE and self.cpu.paging_enabled

    def translate(self, va, kind):
        """Return ``(pa, exc)``; on a fault ``pa`` is 0 and ``exc`` is typed by ``kind``."""
        if not self.active():
            return va, NONE
        if not is_canonical(va):
            return 0, page_fault(kind, va)

        cpu = self.cpu
        satp = cpu.csr.read(csr.SATP)
        base = (satp & csr.SATP_PPN_MASK) * PAGE_SIZE
        level = LEVELS - 1
        while True:
            pte_addr = base + vpn(va, level) * PTE_SIZE
            try:
                pte = cpu.bus.read(pte_addr, 64)
            except BusError:
                return 0, access_fault(kind, va)
            if not pte & PTE_V or (not pte & PTE_R and pte & PTE_W) or pte >> 54:
                return 0, page_fault(kind, va)
            if pte & (PTE_R | PTE_X):
                break
            if pte & (PTE_A | PTE_D | PTE_U):
                # only leaves carry these bits
                return 0, page_fault(kind, va)
            level -= 1
            if level < 0:
                return 0, page_fault(kind, va)
            base = pte_ppn(pte) * PAGE_SIZE

        if not self._permitted(pte, kind):
            return 0, page_fault(kind, va)

        ppn = pte_ppn(pte)
        if level > 0 and ppn & ((1 << (9 * level)) - 1):
            # misaligned superpage
            return 0, page_fault(kind, va)

        if not pte & PTE_A or (kind == AccessKind.STORE and not pte & PTE_D):
            pte |= PTE_A
            if kind == AccessKind.STORE:
                pte |= PTE_D
            try:
                cpu.bus.write(pte_addr, pte, 64)
            except BusError:
                return 0, access_fault(kind, va)

        offset_mask = (1 << (12 + 9 * level)) - 1
        pa = ((ppn << 12) & ~offset_mask) | (va & offset_mask)
        return pa, NONE

    def _permitted(self, pte, kind):
        mstatus = self.cpu.csr.read(csr.MSTATUS)
        if kind == AccessKind.FETCH:
            allowed = bool(pte & PTE_X)
        elif kind == AccessKind.LOAD:
            allowed = bool(pte & PTE_R) or (bool(pte & PTE_X) and bool(mstatus & csr.MSTATUS_MXR))
        else:
            allowed = bool(pte & PTE_W)
        if not allowed:
            return False

        mode = self.cpu.mode
        if pte & PTE_U:
            if mode == Mode.SUPERVISOR:
                return kind != AccessKind.FETCH and bool(mstatus & csr.MSTATUS_SUM)
            return True
        return mode != Mode.USER
