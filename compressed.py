"""RV64C support: classify a 16-bit parcel, then expand it to its 32-bit form."""

import instruction as ins
from bit_util import bit, bits, sign_extend


def is_compressed(inst):
    return inst & 0b11 != 0b11


def _rd_prime(half):
    return bits(half, 4, 2) + 8


def _rs1_prime(half):
    return bits(half, 9, 7) + 8


def _quadrant0(half):
    if half == 0:
        return ins.INVALID
    funct3 = bits(half, 15, 13)
    if funct3 == 0b000:
        return ins.C_ADDI4SPN if _addi4spn_imm(half) else ins.INVALID
    return {
        0b001: ins.C_FLD,
        0b010: ins.C_LW,
        0b011: ins.C_LD,
        0b101: ins.C_FSD,
        0b110: ins.C_SW,
        0b111: ins.C_SD,
    }.get(funct3, ins.INVALID)


def _quadrant1(half):
    funct3 = bits(half, 15, 13)
    rd = bits(half, 11, 7)
    if funct3 == 0b000:
        return ins.C_NOP if rd == 0 else ins.C_ADDI
    if funct3 == 0b001:
        return ins.C_ADDIW if rd else ins.INVALID
    if funct3 == 0b010:
        return ins.C_LI
    if funct3 == 0b011:
        if rd == 2:
            return ins.C_ADDI16SP if _addi16sp_imm(half) else ins.INVALID
        if rd == 0 or _ci_imm(half) == 0:
            return ins.INVALID
        return ins.C_LUI
    if funct3 == 0b100:
        group = bits(half, 11, 10)
        if group == 0b00:
            return ins.C_SRLI
        if group == 0b01:
            return ins.C_SRAI
        if group == 0b10:
            return ins.C_ANDI
        if bit(half, 12) == 0:
            return (ins.C_SUB, ins.C_XOR, ins.C_OR, ins.C_AND)[bits(half, 6, 5)]
        return {0b00: ins.C_SUBW, 0b01: ins.C_ADDW}.get(bits(half, 6, 5), ins.INVALID)
    return {0b101: ins.C_J, 0b110: ins.C_BEQZ, 0b111: ins.C_BNEZ}[funct3]


def _quadrant2(half):
    funct3 = bits(half, 15, 13)
    rd = bits(half, 11, 7)
    rs2 = bits(half, 6, 2)
    if funct3 == 0b000:
        return ins.C_SLLI if rd else ins.INVALID
    if funct3 == 0b001:
        return ins.C_FLDSP
    if funct3 in (0b010, 0b011):
        if rd == 0:
            return ins.INVALID
        return ins.C_LWSP if funct3 == 0b010 else ins.C_LDSP
    if funct3 == 0b100:
        if bit(half, 12) == 0:
            if rs2:
                return ins.C_MV
            return ins.C_JR if rd else ins.INVALID
        if rs2:
            return ins.C_ADD
        return ins.C_JALR if rd else ins.C_EBREAK
    return {0b101: ins.C_FSDSP, 0b110: ins.C_SWSP, 0b111: ins.C_SDSP}[funct3]


_QUADRANTS = (_quadrant0, _quadrant1, _quadrant2)


def decode_compressed(half):
    """Classify a 16-bit instruction; reserved encodings give ``INVALID``.

    Callers must check ``is_compressed`` first, a 32-bit parcel here is a
    driver bug.
    """
    half &= 0xffff
    quadrant = half & 0b11
    if quadrant == 0b11:
        raise ValueError(f"not a compressed instruction: 0x{half:04x}")
    return _QUADRANTS[quadrant](half)


# Immediate scatters. All signed ones go through sign_extend.

def _ci_imm(half):
    return (bit(half, 12) << 5) | bits(half, 6, 2)


def _addi4spn_imm(half):
    return (
        (bits(half, 12, 11) << 4)
        | (bits(half, 10, 7) << 6)
        | (bit(half, 6) << 2)
        | (bit(half, 5) << 3)
    )


def _addi16sp_imm(half):
    imm = (
        (bit(half, 12) << 9)
        | (bit(half, 6) << 4)
        | (bit(half, 5) << 6)
        | (bits(half, 4, 3) << 7)
        | (bit(half, 2) << 5)
    )
    return sign_extend(imm, 10)


def _cj_imm(half):
    imm = (
        (bit(half, 12) << 11)
        | (bit(half, 11) << 4)
        | (bits(half, 10, 9) << 8)
        | (bit(half, 8) << 10)
        | (bit(half, 7) << 6)
        | (bit(half, 6) << 7)
        | (bits(half, 5, 3) << 1)
        | (bit(half, 2) << 5)
    )
    return sign_extend(imm, 12)


def _cb_imm(half):
    imm = (
        (bit(half, 12) << 8)
        | (bits(half, 11, 10) << 3)
        | (bits(half, 6, 5) << 6)
        | (bits(half, 4, 3) << 1)
        | (bit(half, 2) << 5)
    )
    return sign_extend(imm, 9)


def _cl_word_offset(half):
    return (bits(half, 12, 10) << 3) | (bit(half, 6) << 2) | (bit(half, 5) << 6)


def _cl_double_offset(half):
    return (bits(half, 12, 10) << 3) | (bits(half, 6, 5) << 6)


# Canonical 32-bit encoders

def _enc_r(funct7, rs2, rs1, funct3, rd, opcode):
    return (funct7 << 25) | (rs2 << 20) | (rs1 << 15) | (funct3 << 12) | (rd << 7) | opcode


def _enc_i(imm, rs1, funct3, rd, opcode):
    return ((imm & 0xfff) << 20) | (rs1 << 15) | (funct3 << 12) | (rd << 7) | opcode


def _enc_s(imm, rs2, rs1, funct3, opcode=0b0100011):
    imm &= 0xfff
    return ((imm >> 5) << 25) | (rs2 << 20) | (rs1 << 15) | (funct3 << 12) | ((imm & 0x1f) << 7) | opcode


def _enc_b(imm, rs2, rs1, funct3):
    imm &= 0x1fff
    return (
        (bit(imm, 12) << 31)
        | (bits(imm, 10, 5) << 25)
        | (rs2 << 20)
        | (rs1 << 15)
        | (funct3 << 12)
        | (bits(imm, 4, 1) << 8)
        | (bit(imm, 11) << 7)
        | 0b1100011
    )


def _enc_j(imm, rd):
    imm &= 0x1fffff
    return (
        (bit(imm, 20) << 31)
        | (bits(imm, 10, 1) << 21)
        | (bit(imm, 11) << 20)
        | (bits(imm, 19, 12) << 12)
        | (rd << 7)
        | 0b1101111
    )


_OP_IMM = 0b0010011
_OP_IMM_32 = 0b0011011
_OP = 0b0110011
_OP_32 = 0b0111011
_LOAD = 0b0000011
_JALR = 0b1100111


def _expand_q0(op, half):
    rd = _rd_prime(half)
    rs1 = _rs1_prime(half)
    if op == ins.C_ADDI4SPN:
        return _enc_i(_addi4spn_imm(half), 2, 0b000, rd, _OP_IMM)
    if op == ins.C_LW:
        return _enc_i(_cl_word_offset(half), rs1, 0b010, rd, _LOAD)
    if op == ins.C_LD:
        return _enc_i(_cl_double_offset(half), rs1, 0b011, rd, _LOAD)
    if op == ins.C_SW:
        return _enc_s(_cl_word_offset(half), rd, rs1, 0b010)
    if op == ins.C_SD:
        return _enc_s(_cl_double_offset(half), rd, rs1, 0b011)
    return None


def _expand_q1(op, half):
    rd = bits(half, 11, 7)
    rd_p = _rs1_prime(half)
    rs2_p = _rd_prime(half)
    imm6 = sign_extend(_ci_imm(half), 6)
    if op == ins.C_NOP:
        return _enc_i(0, 0, 0b000, 0, _OP_IMM)
    if op == ins.C_ADDI:
        return _enc_i(imm6, rd, 0b000, rd, _OP_IMM)
    if op == ins.C_ADDIW:
        return _enc_i(imm6, rd, 0b000, rd, _OP_IMM_32)
    if op == ins.C_LI:
        return _enc_i(imm6, 0, 0b000, rd, _OP_IMM)
    if op == ins.C_ADDI16SP:
        return _enc_i(_addi16sp_imm(half), 2, 0b000, 2, _OP_IMM)
    if op == ins.C_LUI:
        return ((imm6 & 0xfffff) << 12) | (rd << 7) | 0b0110111
    if op == ins.C_SRLI:
        return _enc_i(_ci_imm(half), rd_p, 0b101, rd_p, _OP_IMM)
    if op == ins.C_SRAI:
        return _enc_i(0x400 | _ci_imm(half), rd_p, 0b101, rd_p, _OP_IMM)
    if op == ins.C_ANDI:
        return _enc_i(imm6, rd_p, 0b111, rd_p, _OP_IMM)
    if op == ins.C_SUB:
        return _enc_r(0b0100000, rs2_p, rd_p, 0b000, rd_p, _OP)
    if op == ins.C_XOR:
        return _enc_r(0, rs2_p, rd_p, 0b100, rd_p, _OP)
    if op == ins.C_OR:
        return _enc_r(0, rs2_p, rd_p, 0b110, rd_p, _OP)
    if op == ins.C_AND:
        return _enc_r(0, rs2_p, rd_p, 0b111, rd_p, _OP)
    if op == ins.C_SUBW:
        return _enc_r(0b0100000, rs2_p, rd_p, 0b000, rd_p, _OP_32)
    if op == ins.C_ADDW:
        return _enc_r(0, rs2_p, rd_p, 0b000, rd_p, _OP_32)
    if op == ins.C_J:
        return _enc_j(_cj_imm(half), 0)
    if op == ins.C_BEQZ:
        return _enc_b(_cb_imm(half), 0, rd_p, 0b000)
    if op == ins.C_BNEZ:
        return _enc_b(_cb_imm(half), 0, rd_p, 0b001)
    return None


def _expand_q2(op, half):
    rd = bits(half, 11, 7)
    rs2 = bits(half, 6, 2)
    if op == ins.C_SLLI:
        return _enc_i(_ci_imm(half), rd, 0b001, rd, _OP_IMM)
    if op == ins.C_LWSP:
        offset = (bit(half, 12) << 5) | (bits(half, 6, 4) << 2) | (bits(half, 3, 2) << 6)
        return _enc_i(offset, 2, 0b010, rd, _LOAD)
    if op == ins.C_LDSP:
        offset = (bit(half, 12) << 5) | (bits(half, 6, 5) << 3) | (bits(half, 4, 2) << 6)
        return _enc_i(offset, 2, 0b011, rd, _LOAD)
    if op == ins.C_JR:
        return _enc_i(0, rd, 0b000, 0, _JALR)
    if op == ins.C_MV:
        return _enc_r(0, rs2, 0, 0b000, rd, _OP)
    if op == ins.C_EBREAK:
        return 0x00100073
    if op == ins.C_JALR:
        # implicit link register
        return _enc_i(0, rd, 0b000, 1, _JALR)
    if op == ins.C_ADD:
        return _enc_r(0, rs2, rd, 0b000, rd, _OP)
    if op == ins.C_SWSP:
        offset = (bits(half, 12, 9) << 2) | (bits(half, 8, 7) << 6)
        return _enc_s(offset, rs2, 2, 0b010)
    if op == ins.C_SDSP:
        offset = (bits(half, 12, 10) << 3) | (bits(half, 9, 7) << 6)
        return _enc_s(offset, rs2, 2, 0b011)
    return None


_EXPANDERS = (_expand_q0, _expand_q1, _expand_q2)


def expand_compressed(half, op=None):
    """Return the canonical 32-bit encoding, or None when there is none.

    ``None`` covers reserved encodings and the floating-point forms, both
    of which execute as illegal instructions.
    """
    half &= 0xffff
    if op is None:
        op = decode_compressed(half)
    if op == ins.INVALID or op in ins.FLOAT_COMPRESSED:
        return None
    return _EXPANDERS[half & 0b11](op, half)
