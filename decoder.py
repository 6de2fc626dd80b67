"""32-bit instruction decoder.

Decoding is a walk down nested lookup tiers keyed on opcode, then funct3,
then whichever high field disambiguates the family (funct7, the RV64
shift-immediate high bits, the AMO funct5 or the SYSTEM funct12). A miss at
any tier resolves to ``INVALID``, so every 32-bit word decodes to something.
"""

import instruction as ins
from bit_util import bits
from instruction_parse import parse_b, parse_i, parse_j, parse_r, parse_s, parse_u


def _funct3(inst):
    return bits(inst, 14, 12)


def _funct7(inst):
    return bits(inst, 31, 25)


def _funct5(inst):
    return bits(inst, 31, 27)


def _shift_hi(inst):
    # RV64 shamt is 6 bits wide, the mode bits sit above it
    return bits(inst, 31, 26)


def _rd(inst):
    return bits(inst, 11, 7)


def _funct12(inst):
    if bits(inst, 19, 15) or bits(inst, 11, 7):
        return None
    return bits(inst, 31, 20)


class _Tier:
    __slots__ = ("field", "entries", "default")

    def __init__(self, field, entries, default=ins.INVALID):
        self.field = field
        self.entries = entries
        self.default = default

    def lookup(self, inst):
        entry = self.entries.get(self.field(inst), self.default)
        if isinstance(entry, _Tier):
            return entry.lookup(inst)
        return entry


def _by_funct3(entries):
    return _Tier(_funct3, entries)


def _by_funct7(entries):
    return _Tier(_funct7, entries)


def _amo(suffix_ops):
    return _Tier(_funct5, dict(zip((0b00010, 0b00011, 0b00001, 0b00000, 0b00100,
                                    0b01100, 0b01000, 0b10000, 0b10100, 0b11000,
                                    0b11100), suffix_ops)))


_OPCODE_TABLE = {
    0b0000011: (ins.FORMAT_I, _by_funct3({
        0b000: ins.LB, 0b001: ins.LH, 0b010: ins.LW, 0b011: ins.LD,
        0b100: ins.LBU, 0b101: ins.LHU, 0b110: ins.LWU,
    })),
    0b0001111: (ins.FORMAT_I, _by_funct3({
        0b000: ins.FENCE, 0b001: ins.FENCE_I,
    })),
    0b0010011: (ins.FORMAT_I, _by_funct3({
        0b000: ins.ADDI,
        0b010: ins.SLTI,
        0b011: ins.SLTIU,
        0b100: ins.XORI,
        0b110: ins.ORI,
        0b111: ins.ANDI,
        0b001: _Tier(_shift_hi, {0b000000: ins.SLLI}),
        0b101: _Tier(_shift_hi, {0b000000: ins.SRLI, 0b010000: ins.SRAI}),
    })),
    0b0010111: (ins.FORMAT_U, ins.AUIPC),
    0b0011011: (ins.FORMAT_I, _by_funct3({
        0b000: ins.ADDIW,
        0b001: _by_funct7({0b0000000: ins.SLLIW}),
        0b101: _by_funct7({0b0000000: ins.SRLIW, 0b0100000: ins.SRAIW}),
    })),
    0b0100011: (ins.FORMAT_S, _by_funct3({
        0b000: ins.SB, 0b001: ins.SH, 0b010: ins.SW, 0b011: ins.SD,
    })),
    0b0101111: (ins.FORMAT_R, _by_funct3({
        0b010: _amo((ins.LR_W, ins.SC_W, ins.AMOSWAP_W, ins.AMOADD_W, ins.AMOXOR_W,
                     ins.AMOAND_W, ins.AMOOR_W, ins.AMOMIN_W, ins.AMOMAX_W,
                     ins.AMOMINU_W, ins.AMOMAXU_W)),
        0b011: _amo((ins.LR_D, ins.SC_D, ins.AMOSWAP_D, ins.AMOADD_D, ins.AMOXOR_D,
                     ins.AMOAND_D, ins.AMOOR_D, ins.AMOMIN_D, ins.AMOMAX_D,
                     ins.AMOMINU_D, ins.AMOMAXU_D)),
    })),
    0b0110011: (ins.FORMAT_R, _by_funct3({
        0b000: _by_funct7({0b0000000: ins.ADD, 0b0000001: ins.MUL, 0b0100000: ins.SUB}),
        0b001: _by_funct7({0b0000000: ins.SLL, 0b0000001: ins.MULH}),
        0b010: _by_funct7({0b0000000: ins.SLT, 0b0000001: ins.MULHSU}),
        0b011: _by_funct7({0b0000000: ins.SLTU, 0b0000001: ins.MULHU}),
        0b100: _by_funct7({0b0000000: ins.XOR, 0b0000001: ins.DIV}),
        0b101: _by_funct7({0b0000000: ins.SRL, 0b0000001: ins.DIVU, 0b0100000: ins.SRA}),
        0b110: _by_funct7({0b0000000: ins.OR, 0b0000001: ins.REM}),
        0b111: _by_funct7({0b0000000: ins.AND, 0b0000001: ins.REMU}),
    })),
    0b0110111: (ins.FORMAT_U, ins.LUI),
    0b0111011: (ins.FORMAT_R, _by_funct3({
        0b000: _by_funct7({0b0000000: ins.ADDW, 0b0000001: ins.MULW, 0b0100000: ins.SUBW}),
        0b001: _by_funct7({0b0000000: ins.SLLW}),
        0b100: _by_funct7({0b0000001: ins.DIVW}),
        0b101: _by_funct7({0b0000000: ins.SRLW, 0b0000001: ins.DIVUW, 0b0100000: ins.SRAW}),
        0b110: _by_funct7({0b0000001: ins.REMW}),
        0b111: _by_funct7({0b0000001: ins.REMUW}),
    })),
    0b1100011: (ins.FORMAT_B, _by_funct3({
        0b000: ins.BEQ, 0b001: ins.BNE, 0b100: ins.BLT,
        0b101: ins.BGE, 0b110: ins.BLTU, 0b111: ins.BGEU,
    })),
    0b1100111: (ins.FORMAT_I, _by_funct3({0b000: ins.JALR})),
    0b1101111: (ins.FORMAT_J, ins.JAL),
    0b1110011: (ins.FORMAT_I, _by_funct3({
        0b000: _Tier(
            _funct12,
            {
                0x000: ins.ECALL,
                0x001: ins.EBREAK,
                0x002: ins.URET,
                0x102: ins.SRET,
                0x302: ins.MRET,
                0x105: ins.WFI,
            },
            default=_by_funct7({0b0001001: _Tier(_rd, {0: ins.SFENCE_VMA})}),
        ),
        0b001: ins.CSRRW,
        0b010: ins.CSRRS,
        0b011: ins.CSRRC,
        0b101: ins.CSRRWI,
        0b110: ins.CSRRSI,
        0b111: ins.CSRRCI,
    })),
}

_PARSERS = {
    ins.FORMAT_R: parse_r,
    ins.FORMAT_I: parse_i,
    ins.FORMAT_S: parse_s,
    ins.FORMAT_B: parse_b,
    ins.FORMAT_U: parse_u,
    ins.FORMAT_J: parse_j,
}


def decode(inst):
    """Return ``(op, fmt)`` for a 32-bit word; ``(INVALID, FORMAT_NONE)`` on a miss."""
    inst &= 0xffffffff
    if inst & 0x3 != 0x3:
        return ins.INVALID, ins.FORMAT_NONE
    entry = _OPCODE_TABLE.get(bits(inst, 6, 0))
    if entry is None:
        return ins.INVALID, ins.FORMAT_NONE
    fmt, node = entry
    op = node.lookup(inst) if isinstance(node, _Tier) else node
    if op == ins.INVALID:
        return ins.INVALID, ins.FORMAT_NONE
    return op, fmt


def parse_fields(fmt, inst):
    parser = _PARSERS.get(fmt)
    if parser is None:
        return None
    return parser(inst)


def decode_instruction(inst, size=4, compressed_op=None):
    op, fmt = decode(inst)
    return ins.DecodedInstruction(inst & 0xffffffff, op, fmt, parse_fields(fmt, inst), size, compressed_op)
