"""Guest-visible exceptions and interrupts.

A ``CpuException`` is a plain value. ``NONE`` is the no-fault result every
stage returns on success; only a non-none exception reaches trap dispatch.
"""

from enum import IntEnum

from mode import Mode


class ExceptionCode(IntEnum):
    INSTRUCTION_ADDRESS_MISALIGNED = 0
    INSTRUCTION_ACCESS_FAULT = 1
    ILLEGAL_INSTRUCTION = 2
    BREAKPOINT = 3
    LOAD_ADDRESS_MISALIGNED = 4
    LOAD_ACCESS_FAULT = 5
    STORE_ADDRESS_MISALIGNED = 6
    STORE_ACCESS_FAULT = 7
    ECALL_FROM_U = 8
    ECALL_FROM_S = 9
    ECALL_FROM_M = 11
    INSTRUCTION_PAGE_FAULT = 12
    LOAD_PAGE_FAULT = 13
    STORE_PAGE_FAULT = 15


class InterruptCode(IntEnum):
    SUPERVISOR_SOFTWARE = 1
    MACHINE_SOFTWARE = 3
    SUPERVISOR_TIMER = 5
    MACHINE_TIMER = 7
    SUPERVISOR_EXTERNAL = 9
    MACHINE_EXTERNAL = 11


class AccessKind(IntEnum):
    FETCH = 0
    LOAD = 1
    STORE = 2


class CpuException:
    __slots__ = ("code", "value", "interrupt")

    def __init__(self, code, value=0, interrupt=False):
        self.code = code
        self.value = value
        self.interrupt = interrupt

    def is_none(self):
        return self.code is None

    @property
    def cause(self):
        """xCAUSE encoding: interrupt flag in bit 63."""
        if self.interrupt:
            return (1 << 63) | int(self.code)
        return int(self.code)

    def __eq__(self, other):
        if not isinstance(other, CpuException):
            return NotImplemented
        return (self.code, self.value, self.interrupt) == (other.code, other.value, other.interrupt)

    def __hash__(self):
        return hash((self.code, self.value, self.interrupt))

    def __repr__(self):
        if self.is_none():
            return "CpuException(NONE)"
        return f"CpuException({self.code.name}, value=0x{self.value:x})"


NONE = CpuException(None, 0)


class TrapException(Exception):
    """Carries a CpuException out of nested execution helpers."""

    def __init__(self, exc):
        super().__init__(f"trap {exc!r}")
        self.exc = exc


def illegal_instruction(inst):
    return CpuException(ExceptionCode.ILLEGAL_INSTRUCTION, inst & 0xffffffff)


def breakpoint_exception(pc):
    return CpuException(ExceptionCode.BREAKPOINT, pc)


def environment_call(mode):
    code = {
        Mode.USER: ExceptionCode.ECALL_FROM_U,
        Mode.SUPERVISOR: ExceptionCode.ECALL_FROM_S,
        Mode.MACHINE: ExceptionCode.ECALL_FROM_M,
    }[mode]
    return CpuException(code, 0)


_PAGE_FAULTS = {
    AccessKind.FETCH: ExceptionCode.INSTRUCTION_PAGE_FAULT,
    AccessKind.LOAD: ExceptionCode.LOAD_PAGE_FAULT,
    AccessKind.STORE: ExceptionCode.STORE_PAGE_FAULT,
}

_ACCESS_FAULTS = {
    AccessKind.FETCH: ExceptionCode.INSTRUCTION_ACCESS_FAULT,
    AccessKind.LOAD: ExceptionCode.LOAD_ACCESS_FAULT,
    AccessKind.STORE: ExceptionCode.STORE_ACCESS_FAULT,
}

_MISALIGNED = {
    AccessKind.FETCH: ExceptionCode.INSTRUCTION_ADDRESS_MISALIGNED,
    AccessKind.LOAD: ExceptionCode.LOAD_ADDRESS_MISALIGNED,
    AccessKind.STORE: ExceptionCode.STORE_ADDRESS_MISALIGNED,
}


def page_fault(kind, va):
    return CpuException(_PAGE_FAULTS[kind], va)


def access_fault(kind, addr):
    return CpuException(_ACCESS_FAULTS[kind], addr)


def address_misaligned(kind, addr):
    return CpuException(_MISALIGNED[kind], addr)


def interrupt(code):
    return CpuException(InterruptCode(code), 0, interrupt=True)
