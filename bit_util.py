MASK32 = 0xffffffff
MASK64 = 0xffffffffffffffff


def bit(val, pos):
    return (val >> pos) & 0x1


def bits(val, hi, lo):
    """Return val[hi:lo]."""
    return (val >> lo) & ((1 << (hi - lo + 1)) - 1)


def set_bit(val, pos):
    return val | (1 << pos)


def clear_bit(val, pos):
    return val & ~(1 << pos)


def sign_extend(val, width):
    """Sign-extend a width-bit field to a 64-bit two's-complement value.

    When the field's sign bit is set the complement of the field mask is
    OR'ed in, so the result is always an unsigned 64-bit integer.
    """
    mask = (1 << width) - 1
    val &= mask
    if (val >> (width - 1)) & 0x1:
        val |= ~mask & MASK64
    return val


def to_signed(val, width=64):
    val &= (1 << width) - 1
    return val - (1 << width) if val & (1 << (width - 1)) else val


def sext32(val):
    return sign_extend(val & MASK32, 32)
