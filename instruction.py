INVALID = "_INVALID"

FORMAT_NONE = None
FORMAT_R = "R"
FORMAT_I = "I"
FORMAT_S = "S"
FORMAT_B = "B"
FORMAT_U = "U"
FORMAT_J = "J"

# RV32I / RV64I
LUI = "LUI"
AUIPC = "AUIPC"
JAL = "JAL"
JALR = "JALR"
BEQ = "BEQ"
BNE = "BNE"
BLT = "BLT"
BGE = "BGE"
BLTU = "BLTU"
BGEU = "BGEU"
LB = "LB"
LH = "LH"
LW = "LW"
LD = "LD"
LBU = "LBU"
LHU = "LHU"
LWU = "LWU"
SB = "SB"
SH = "SH"
SW = "SW"
SD = "SD"
ADDI = "ADDI"
SLTI = "SLTI"
SLTIU = "SLTIU"
XORI = "XORI"
ORI = "ORI"
ANDI = "ANDI"
SLLI = "SLLI"
SRLI = "SRLI"
SRAI = "SRAI"
ADD = "ADD"
SUB = "SUB"
SLL = "SLL"
SLT = "SLT"
SLTU = "SLTU"
XOR = "XOR"
SRL = "SRL"
SRA = "SRA"
OR = "OR"
AND = "AND"
ADDIW = "ADDIW"
SLLIW = "SLLIW"
SRLIW = "SRLIW"
SRAIW = "SRAIW"
ADDW = "ADDW"
SUBW = "SUBW"
SLLW = "SLLW"
SRLW = "SRLW"
SRAW = "SRAW"
FENCE = "FENCE"
FENCE_I = "FENCE.I"

# Zicsr
CSRRW = "CSRRW"
CSRRS = "CSRRS"
CSRRC = "CSRRC"
CSRRWI = "CSRRWI"
CSRRSI = "CSRRSI"
CSRRCI = "CSRRCI"

# Privileged
ECALL = "ECALL"
EBREAK = "EBREAK"
URET = "URET"
SRET = "SRET"
MRET = "MRET"
WFI = "WFI"
SFENCE_VMA = "SFENCE.VMA"

# M
MUL = "MUL"
MULH = "MULH"
MULHSU = "MULHSU"
MULHU = "MULHU"
DIV = "DIV"
DIVU = "DIVU"
REM = "REM"
REMU = "REMU"
MULW = "MULW"
DIVW = "DIVW"
DIVUW = "DIVUW"
REMW = "REMW"
REMUW = "REMUW"

# A
LR_W = "LR.W"
SC_W = "SC.W"
AMOSWAP_W = "AMOSWAP.W"
AMOADD_W = "AMOADD.W"
AMOXOR_W = "AMOXOR.W"
AMOAND_W = "AMOAND.W"
AMOOR_W = "AMOOR.W"
AMOMIN_W = "AMOMIN.W"
AMOMAX_W = "AMOMAX.W"
AMOMINU_W = "AMOMINU.W"
AMOMAXU_W = "AMOMAXU.W"
LR_D = "LR.D"
SC_D = "SC.D"
AMOSWAP_D = "AMOSWAP.D"
AMOADD_D = "AMOADD.D"
AMOXOR_D = "AMOXOR.D"
AMOAND_D = "AMOAND.D"
AMOOR_D = "AMOOR.D"
AMOMIN_D = "AMOMIN.D"
AMOMAX_D = "AMOMAX.D"
AMOMINU_D = "AMOMINU.D"
AMOMAXU_D = "AMOMAXU.D"

# RV64C
C_ADDI4SPN = "C.ADDI4SPN"
C_FLD = "C.FLD"
C_LW = "C.LW"
C_LD = "C.LD"
C_FSD = "C.FSD"
C_SW = "C.SW"
C_SD = "C.SD"
C_NOP = "C.NOP"
C_ADDI = "C.ADDI"
C_ADDIW = "C.ADDIW"
C_LI = "C.LI"
C_ADDI16SP = "C.ADDI16SP"
C_LUI = "C.LUI"
C_SRLI = "C.SRLI"
C_SRAI = "C.SRAI"
C_ANDI = "C.ANDI"
C_SUB = "C.SUB"
C_XOR = "C.XOR"
C_OR = "C.OR"
C_AND = "C.AND"
C_SUBW = "C.SUBW"
C_ADDW = "C.ADDW"
C_J = "C.J"
C_BEQZ = "C.BEQZ"
C_BNEZ = "C.BNEZ"
C_SLLI = "C.SLLI"
C_FLDSP = "C.FLDSP"
C_LWSP = "C.LWSP"
C_LDSP = "C.LDSP"
C_JR = "C.JR"
C_MV = "C.MV"
C_EBREAK = "C.EBREAK"
C_JALR = "C.JALR"
C_ADD = "C.ADD"
C_FSDSP = "C.FSDSP"
C_SWSP = "C.SWSP"
C_SDSP = "C.SDSP"

# Decoded but not executable: no F/D extension
FLOAT_COMPRESSED = frozenset((C_FLD, C_FSD, C_FLDSP, C_FSDSP))


class DecodedInstruction:
    __slots__ = ("raw", "op", "fmt", "fields", "size", "compressed_op")

    def __init__(self, raw, op, fmt, fields, size=4, compressed_op=None):
        self.raw = raw
        self.op = op
        self.fmt = fmt
        self.fields = fields
        self.size = size
        self.compressed_op = compressed_op

    @property
    def name(self):
        return self.compressed_op or self.op

    def __repr__(self):
        return f"DecodedInstruction({self.name}, raw=0x{self.raw:x}, size={self.size})"
