from bit_util import bits, sign_extend


class _Fields:
    __slots__ = ()

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name in self.__slots__)

    def __repr__(self):
        inner = ", ".join(f"{name}=0x{getattr(self, name):x}" for name in self.__slots__)
        return f"{type(self).__name__}({inner})"


class InstructionR(_Fields):
    __slots__ = ("raw", "opcode", "rd", "funct3", "rs1", "rs2", "funct7")

    def __init__(self, raw, opcode, rd, funct3, rs1, rs2, funct7):
        self.raw = raw
        self.opcode = opcode
        self.rd = rd
        self.funct3 = funct3
        self.rs1 = rs1
        self.rs2 = rs2
        self.funct7 = funct7


class InstructionI(_Fields):
    __slots__ = ("raw", "opcode", "rd", "funct3", "rs1", "imm")

    def __init__(self, raw, opcode, rd, funct3, rs1, imm):
        self.raw = raw
        self.opcode = opcode
        self.rd = rd
        self.funct3 = funct3
        self.rs1 = rs1
        self.imm = imm


class InstructionS(_Fields):
    __slots__ = ("raw", "opcode", "funct3", "rs1", "rs2", "imm")

    def __init__(self, raw, opcode, funct3, rs1, rs2, imm):
        self.raw = raw
        self.opcode = opcode
        self.funct3 = funct3
        self.rs1 = rs1
        self.rs2 = rs2
        self.imm = imm


class InstructionB(InstructionS):
    __slots__ = ()


class InstructionU(_Fields):
    __slots__ = ("raw", "opcode", "rd", "imm")

    def __init__(self, raw, opcode, rd, imm):
        self.raw = raw
        self.opcode = opcode
        self.rd = rd
        self.imm = imm


class InstructionJ(InstructionU):
    __slots__ = ()


def parse_i_imm(inst):
    return sign_extend(bits(inst, 31, 20), 12)


def parse_s_imm(inst):
    imm = (bits(inst, 31, 25) << 5) | bits(inst, 11, 7)
    return sign_extend(imm, 12)


def parse_b_imm(inst):
    imm = (
        (bits(inst, 31, 31) << 12)
        | (bits(inst, 7, 7) << 11)
        | (bits(inst, 30, 25) << 5)
        | (bits(inst, 11, 8) << 1)
    )
    return sign_extend(imm, 13)


def parse_u_imm(inst):
    # RV64: LUI/AUIPC results are sign-extended from bit 31
    return sign_extend(bits(inst, 31, 12) << 12, 32)


def parse_j_imm(inst):
    imm = (
        (bits(inst, 31, 31) << 20)
        | (bits(inst, 19, 12) << 12)
        | (bits(inst, 20, 20) << 11)
        | (bits(inst, 30, 21) << 1)
    )
    return sign_extend(imm, 21)


def parse_r(inst):
    return InstructionR(
        inst,
        bits(inst, 6, 0),
        bits(inst, 11, 7),
        bits(inst, 14, 12),
        bits(inst, 19, 15),
        bits(inst, 24, 20),
        bits(inst, 31, 25),
    )


def parse_i(inst):
    return InstructionI(
        inst,
        bits(inst, 6, 0),
        bits(inst, 11, 7),
        bits(inst, 14, 12),
        bits(inst, 19, 15),
        parse_i_imm(inst),
    )


def parse_s(inst):
    return InstructionS(
        inst,
        bits(inst, 6, 0),
        bits(inst, 14, 12),
        bits(inst, 19, 15),
        bits(inst, 24, 20),
        parse_s_imm(inst),
    )


def parse_b(inst):
    return InstructionB(
        inst,
        bits(inst, 6, 0),
        bits(inst, 14, 12),
        bits(inst, 19, 15),
        bits(inst, 24, 20),
        parse_b_imm(inst),
    )


def parse_u(inst):
    return InstructionU(inst, bits(inst, 6, 0), bits(inst, 11, 7), parse_u_imm(inst))


def parse_j(inst):
    return InstructionJ(inst, bits(inst, 6, 0), bits(inst, 11, 7), parse_j_imm(inst))
