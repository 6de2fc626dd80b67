from enum import Enum

from exception import ExceptionCode


class Trap(Enum):
    CONTAINED = "contained"    # handled by in-environment software
    REQUESTED = "requested"    # explicit call into the environment
    INVISIBLE = "invisible"    # transparently serviced, guest resumes
    FATAL = "fatal"            # stops the run loop


_REQUESTED = {
    ExceptionCode.ECALL_FROM_U,
    ExceptionCode.ECALL_FROM_S,
    ExceptionCode.ECALL_FROM_M,
    ExceptionCode.BREAKPOINT,
}

_INVISIBLE = {
    ExceptionCode.INSTRUCTION_PAGE_FAULT,
    ExceptionCode.LOAD_PAGE_FAULT,
    ExceptionCode.STORE_PAGE_FAULT,
}


def classify(exc):
    """Map a non-none exception to the disposition that decides whether the run continues."""
    if exc.is_none():
        raise ValueError("NONE is not a trap")
    if exc.interrupt or exc.code in _INVISIBLE:
        return Trap.INVISIBLE
    if exc.code in _REQUESTED:
        return Trap.REQUESTED
    if exc.code == ExceptionCode.ILLEGAL_INSTRUCTION:
        return Trap.CONTAINED
    # the driver stops on Fatal only when no guest trap vector is set
    return Trap.FATAL
