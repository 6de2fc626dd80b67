import pytest

import csr
from exception import NONE, ExceptionCode
from mode import Mode
from rv_encoding import (
    BASE,
    DATA,
    encode_amo,
    encode_b_type,
    encode_csr,
    encode_i_type,
    encode_j_type,
    encode_r_type,
    encode_s_type,
    encode_u_type,
    make_cpu,
    run_single,
)

MASK64 = 0xffffffffffffffff


def run_r(funct7, funct3, a, b, opcode=0x33):
    cpu = make_cpu()
    cpu.regs[1] = a
    cpu.regs[2] = b
    assert run_single(cpu, encode_r_type(funct7, 2, 1, funct3, 3, opcode)) == NONE
    return cpu.regs[3]


def run_i(imm, funct3, a, opcode=0x13):
    cpu = make_cpu()
    cpu.regs[1] = a
    assert run_single(cpu, encode_i_type(imm, 1, funct3, 3, opcode)) == NONE
    return cpu.regs[3]


def test_r_type_basic_ops():
    assert run_r(0x00, 0x0, 5, 7) == 12  # ADD
    assert run_r(0x20, 0x0, 5, 7) == 0xfffffffffffffffe  # SUB
    assert run_r(0x00, 0x2, MASK64, 1) == 1  # SLT
    assert run_r(0x00, 0x3, MASK64, 1) == 0  # SLTU
    assert run_r(0x00, 0x4, 0xf0f0, 0x0ff0) == 0xff00  # XOR
    assert run_r(0x00, 0x6, 0xf0f0, 0x0ff0) == 0xfff0  # OR
    assert run_r(0x00, 0x7, 0xf0f0, 0x0ff0) == 0x00f0  # AND


def test_add_wraps_at_64_bits():
    assert run_r(0x00, 0x0, MASK64, 2) == 1


def test_register_shifts_use_six_bits():
    assert run_r(0x20, 0x5, 0x8000000000000000, 4) == 0xf800000000000000  # SRA
    assert run_r(0x00, 0x5, 0x8000000000000000, 4) == 0x0800000000000000  # SRL
    assert run_r(0x00, 0x1, 1, 63) == 1 << 63  # SLL
    assert run_r(0x00, 0x1, 1, 65) == 2  # SLL uses rs2[5:0]


def test_immediate_ops():
    assert run_i(7, 0x0, 5) == 12  # ADDI
    assert run_i(-1, 0x0, 0) == MASK64  # ADDI negative
    assert run_i(0x0ff, 0x4, 0xf0f0) == 0xf00f  # XORI
    assert run_i(0x0ff, 0x6, 0xf0f0) == 0xf0ff  # ORI
    assert run_i(0x0ff, 0x7, 0xf0f0) == 0x00f0  # ANDI
    assert run_i(1, 0x2, MASK64) == 1  # SLTI
    assert run_i(1, 0x3, MASK64) == 0  # SLTIU
    # SLTIU compares against the sign-extended immediate as unsigned
    assert run_i(-1, 0x3, 5) == 1


def test_immediate_shifts():
    assert run_i(0x400 | 4, 0x5, 0x8000000000000000) == 0xf800000000000000  # SRAI
    assert run_i(4, 0x5, 0x8000000000000000) == 0x0800000000000000  # SRLI
    assert run_i(40, 0x1, 1) == 1 << 40  # SLLI


def test_word_ops_sign_extend_results():
    assert run_i(1, 0x0, 0x7fffffff, opcode=0x1b) == 0xffffffff80000000  # ADDIW
    assert run_i(0x400 | 4, 0x5, 0x80000000, opcode=0x1b) == 0xfffffffff8000000  # SRAIW
    assert run_i(1, 0x5, 0xffffffff80000000, opcode=0x1b) == 0x40000000  # SRLIW
    assert run_i(31, 0x1, 1, opcode=0x1b) == 0xffffffff80000000  # SLLIW
    assert run_r(0x00, 0x0, 0xffffffff, 1, opcode=0x3b) == 0  # ADDW
    assert run_r(0x20, 0x0, 0, 1, opcode=0x3b) == MASK64  # SUBW
    assert run_r(0x00, 0x1, 1, 31, opcode=0x3b) == 0xffffffff80000000  # SLLW
    assert run_r(0x00, 0x5, 0x80000000, 1, opcode=0x3b) == 0x40000000  # SRLW
    assert run_r(0x20, 0x5, 0x80000000, 4, opcode=0x3b) == 0xfffffffff8000000  # SRAW


def test_m_extension_multiply():
    assert run_r(0x01, 0x0, 3, MASK64) == 0xfffffffffffffffd  # MUL
    assert run_r(0x01, 0x1, MASK64, MASK64) == 0  # MULH
    assert run_r(0x01, 0x2, MASK64, MASK64) == MASK64  # MULHSU
    assert run_r(0x01, 0x3, MASK64, MASK64) == 0xfffffffffffffffe  # MULHU
    assert run_r(0x01, 0x0, 0x10000, 0x10000, opcode=0x3b) == 0  # MULW


def test_m_extension_div_rem_edges():
    assert run_r(0x01, 0x4, 1 << 63, MASK64) == 1 << 63  # DIV overflow
    assert run_r(0x01, 0x4, 123, 0) == MASK64  # DIV by zero
    assert run_r(0x01, 0x5, 123, 0) == MASK64  # DIVU by zero
    assert run_r(0x01, 0x6, 1 << 63, MASK64) == 0  # REM overflow
    assert run_r(0x01, 0x6, 0x12345678, 0) == 0x12345678  # REM by zero
    assert run_r(0x01, 0x7, 0x12345678, 0) == 0x12345678  # REMU by zero
    assert run_r(0x01, 0x4, -7 & MASK64, 2) == -3 & MASK64  # DIV truncates
    assert run_r(0x01, 0x6, -7 & MASK64, 2) == MASK64  # REM keeps dividend sign


def test_m_extension_word_div_rem():
    assert run_r(0x01, 0x4, 0x80000000, MASK64, opcode=0x3b) == 0xffffffff80000000  # DIVW overflow
    assert run_r(0x01, 0x5, 5, 0, opcode=0x3b) == MASK64  # DIVUW by zero
    assert run_r(0x01, 0x6, 0x80000000, 0, opcode=0x3b) == 0xffffffff80000000  # REMW by zero
    assert run_r(0x01, 0x7, 7, 2, opcode=0x3b) == 1  # REMUW


def test_lui_and_auipc():
    cpu = make_cpu()
    run_single(cpu, encode_u_type(0x80000000, 5))
    assert cpu.regs[5] == 0xffffffff80000000

    cpu = make_cpu()
    run_single(cpu, encode_u_type(0x1000, 5, opcode=0x17))
    assert cpu.regs[5] == BASE + 0x1000


def test_writes_to_x0_are_discarded():
    cpu = make_cpu()
    run_single(cpu, encode_i_type(5, 0, 0x0, 0))
    assert cpu.regs[0] == 0
    cpu.regs[0] = 123
    assert cpu.regs.read(0) == 0


def test_addi_advances_pc():
    cpu = make_cpu()
    assert run_single(cpu, encode_i_type(3, 0, 0x0, 16)) == NONE
    assert cpu.regs[16] == 3
    assert cpu.pc == BASE + 4


def test_loads_sign_and_zero_extend():
    cases = [
        (0x0, MASK64),  # LB
        (0x1, 0xffffffffffffeeff),  # LH
        (0x2, 0xffffffffccddeeff),  # LW
        (0x3, 0x8899aabbccddeeff),  # LD
        (0x4, 0xff),  # LBU
        (0x5, 0xeeff),  # LHU
        (0x6, 0xccddeeff),  # LWU
    ]
    for funct3, expected in cases:
        cpu = make_cpu()
        cpu.bus.write(DATA, 0x8899aabbccddeeff, 64)
        cpu.regs[1] = DATA
        assert run_single(cpu, encode_i_type(0, 1, funct3, 3, opcode=0x03)) == NONE
        assert cpu.regs[3] == expected


def test_load_with_negative_offset():
    cpu = make_cpu()
    cpu.bus.write(DATA, 0x1234, 16)
    cpu.regs[1] = DATA + 8
    run_single(cpu, encode_i_type(-8, 1, 0x5, 3, opcode=0x03))
    assert cpu.regs[3] == 0x1234


def test_stores():
    for funct3, size in ((0x0, 8), (0x1, 16), (0x2, 32), (0x3, 64)):
        cpu = make_cpu()
        cpu.regs[1] = DATA
        cpu.regs[2] = 0x1122334455667788
        assert run_single(cpu, encode_s_type(8, 2, 1, funct3)) == NONE
        assert cpu.bus.read(DATA + 8, 64) == 0x1122334455667788 & ((1 << size) - 1)


def test_misaligned_load_is_allowed():
    cpu = make_cpu()
    cpu.bus.write(DATA + 1, 0xdeadbeef, 32)
    cpu.regs[1] = DATA + 1
    assert run_single(cpu, encode_i_type(0, 1, 0x6, 3, opcode=0x03)) == NONE
    assert cpu.regs[3] == 0xdeadbeef


def test_unmapped_load_is_access_fault():
    cpu = make_cpu()
    cpu.regs[1] = 0x1000
    exc = run_single(cpu, encode_i_type(0, 1, 0x3, 3, opcode=0x03))
    assert exc.code == ExceptionCode.LOAD_ACCESS_FAULT
    assert exc.value == 0x1000
    assert cpu.csr.read(csr.MEPC) == BASE
    assert cpu.csr.read(csr.MTVAL) == 0x1000


def test_unmapped_store_is_access_fault():
    cpu = make_cpu()
    cpu.regs[1] = 0x2000
    exc = run_single(cpu, encode_s_type(0, 2, 1, 0x3))
    assert exc.code == ExceptionCode.STORE_ACCESS_FAULT


def test_jal_links_and_jumps():
    cpu = make_cpu()
    run_single(cpu, encode_j_type(8, 1))
    assert cpu.pc == BASE + 8
    assert cpu.regs[1] == BASE + 4

    cpu = make_cpu()
    run_single(cpu, encode_j_type(-4, 0), pc=BASE + 0x10)
    assert cpu.pc == BASE + 0x0c
    assert cpu.regs[0] == 0


def test_jalr_clears_low_bit():
    cpu = make_cpu()
    cpu.regs[2] = BASE + 0x101
    run_single(cpu, encode_i_type(0, 2, 0x0, 1, opcode=0x67))
    assert cpu.pc == BASE + 0x100
    assert cpu.regs[1] == BASE + 4


def test_jalr_with_rd_equal_rs1_uses_old_value():
    cpu = make_cpu()
    cpu.regs[5] = BASE + 0x200
    run_single(cpu, encode_i_type(4, 5, 0x0, 5, opcode=0x67))
    assert cpu.pc == BASE + 0x204
    assert cpu.regs[5] == BASE + 4


def test_branches():
    cpu = make_cpu()
    cpu.regs[1] = 7
    cpu.regs[2] = 7
    run_single(cpu, encode_b_type(16, 2, 1, 0x0))  # BEQ taken
    assert cpu.pc == BASE + 16

    cpu = make_cpu()
    cpu.regs[1] = MASK64
    cpu.regs[2] = 1
    run_single(cpu, encode_b_type(16, 2, 1, 0x4))  # BLT taken (signed)
    assert cpu.pc == BASE + 16

    cpu = make_cpu()
    cpu.regs[1] = MASK64
    cpu.regs[2] = 1
    run_single(cpu, encode_b_type(16, 2, 1, 0x6))  # BLTU not taken
    assert cpu.pc == BASE + 4

    cpu = make_cpu()
    cpu.regs[1] = 1
    run_single(cpu, encode_b_type(-16, 0, 1, 0x1), pc=BASE + 0x10)  # BNE backwards
    assert cpu.pc == BASE

    cpu = make_cpu()
    cpu.regs[1] = 3
    cpu.regs[2] = 3
    run_single(cpu, encode_b_type(8, 2, 1, 0x5))  # BGE equal
    assert cpu.pc == BASE + 8

    cpu = make_cpu()
    cpu.regs[1] = 3
    cpu.regs[2] = 3
    run_single(cpu, encode_b_type(8, 2, 1, 0x7))  # BGEU equal
    assert cpu.pc == BASE + 8


def test_ecall_code_depends_on_mode():
    for mode, code in (
        (Mode.MACHINE, ExceptionCode.ECALL_FROM_M),
        (Mode.SUPERVISOR, ExceptionCode.ECALL_FROM_S),
        (Mode.USER, ExceptionCode.ECALL_FROM_U),
    ):
        cpu = make_cpu()
        cpu.mode = mode
        exc = run_single(cpu, 0x00000073)
        assert exc.code == code
        assert cpu.csr.read(csr.MCAUSE) == int(code)
        assert cpu.csr.read(csr.MEPC) == BASE
        assert cpu.mode == Mode.MACHINE


def test_ebreak_reports_pc():
    cpu = make_cpu()
    exc = run_single(cpu, 0x00100073, pc=BASE + 8)
    assert exc.code == ExceptionCode.BREAKPOINT
    assert exc.value == BASE + 8
    assert cpu.csr.read(csr.MTVAL) == BASE + 8


def test_csr_read_modify_write():
    cpu = make_cpu()
    cpu.regs[1] = 0x1234
    run_single(cpu, encode_csr(csr.MSCRATCH, 1, 0x1, 3))  # CSRRW
    assert cpu.csr.read(csr.MSCRATCH) == 0x1234
    assert cpu.regs[3] == 0

    cpu.regs[1] = 0x0f00
    run_single(cpu, encode_csr(csr.MSCRATCH, 1, 0x2, 4))  # CSRRS
    assert cpu.csr.read(csr.MSCRATCH) == 0x1f34
    assert cpu.regs[4] == 0x1234

    cpu.regs[1] = 0x0030
    run_single(cpu, encode_csr(csr.MSCRATCH, 1, 0x3, 5))  # CSRRC
    assert cpu.csr.read(csr.MSCRATCH) == 0x1f04
    assert cpu.regs[5] == 0x1f34

    run_single(cpu, encode_csr(csr.MSCRATCH, 7, 0x5, 6))  # CSRRWI
    assert cpu.csr.read(csr.MSCRATCH) == 7
    assert cpu.regs[6] == 0x1f04

    run_single(cpu, encode_csr(csr.MSCRATCH, 8, 0x6, 0))  # CSRRSI
    assert cpu.csr.read(csr.MSCRATCH) == 15

    run_single(cpu, encode_csr(csr.MSCRATCH, 1, 0x7, 0))  # CSRRCI
    assert cpu.csr.read(csr.MSCRATCH) == 14


def test_csr_read_only_access_rules():
    cpu = make_cpu()
    # CSRRS with rs1=x0 only reads
    assert run_single(cpu, encode_csr(csr.MHARTID, 0, 0x2, 3)) == NONE
    assert cpu.regs[3] == 0

    cpu = make_cpu()
    exc = run_single(cpu, encode_csr(csr.MHARTID, 1, 0x1, 3))
    assert exc.code == ExceptionCode.ILLEGAL_INSTRUCTION


def test_csr_privilege_is_enforced():
    cpu = make_cpu()
    cpu.mode = Mode.USER
    inst = encode_csr(csr.MSTATUS, 0, 0x2, 3)
    exc = run_single(cpu, inst)
    assert exc.code == ExceptionCode.ILLEGAL_INSTRUCTION
    assert exc.value == inst

    cpu = make_cpu()
    cpu.mode = Mode.SUPERVISOR
    assert run_single(cpu, encode_csr(csr.SSCRATCH, 0, 0x2, 3)) == NONE


@pytest.mark.parametrize("counter", [csr.CYCLE, csr.TIME, csr.INSTRET])
def test_user_counters_follow_counter_enables(counter):
    bit = 1 << (counter - csr.CYCLE)
    inst = encode_csr(counter, 0, 0x2, 3)

    cpu = make_cpu()
    cpu.mode = Mode.SUPERVISOR
    assert run_single(cpu, inst).code == ExceptionCode.ILLEGAL_INSTRUCTION
    cpu = make_cpu()
    cpu.csr.write(csr.MCOUNTEREN, bit)
    cpu.mode = Mode.SUPERVISOR
    assert run_single(cpu, inst) == NONE

    # user mode also needs scounteren
    cpu = make_cpu()
    cpu.csr.write(csr.MCOUNTEREN, bit)
    cpu.mode = Mode.USER
    assert run_single(cpu, inst).code == ExceptionCode.ILLEGAL_INSTRUCTION
    cpu = make_cpu()
    cpu.csr.write(csr.MCOUNTEREN, bit)
    cpu.csr.write(csr.SCOUNTEREN, bit)
    cpu.mode = Mode.USER
    assert run_single(cpu, inst) == NONE

    cpu = make_cpu()
    assert run_single(cpu, inst) == NONE


def test_csrrs_on_mip_does_not_latch_device_lines():
    cpu = make_cpu()
    cpu.csr.set_pending(csr.SEIP)
    cpu.regs[1] = csr.SSIP
    run_single(cpu, encode_csr(csr.MIP, 1, 0x2, 3))
    assert cpu.regs[3] == csr.SEIP
    cpu.csr.set_pending(csr.SEIP, False)
    assert cpu.csr.read(csr.MIP) == csr.SSIP


def test_satp_write_updates_paging_flag():
    cpu = make_cpu()
    cpu.regs[1] = (csr.SATP_MODE_SV39 << 60) | 0x80010
    run_single(cpu, encode_csr(csr.SATP, 1, 0x1, 0))
    assert cpu.paging_enabled
    run_single(cpu, encode_csr(csr.SATP, 0, 0x1, 0), pc=BASE + 4)
    assert not cpu.paging_enabled


def test_satp_is_illegal_in_s_mode_with_tvm():
    cpu = make_cpu()
    cpu.csr.write(csr.MSTATUS, csr.MSTATUS_TVM)
    cpu.mode = Mode.SUPERVISOR
    exc = run_single(cpu, encode_csr(csr.SATP, 0, 0x2, 3))
    assert exc.code == ExceptionCode.ILLEGAL_INSTRUCTION


def test_invalid_encoding_is_illegal_instruction():
    cpu = make_cpu()
    exc = run_single(cpu, 0xffffffff)
    assert exc.code == ExceptionCode.ILLEGAL_INSTRUCTION
    assert exc.value == 0xffffffff
    assert cpu.csr.read(csr.MEPC) == BASE


def test_all_zero_parcel_is_illegal():
    cpu = make_cpu()
    exc = run_single(cpu, 0x0000)
    assert exc.code == ExceptionCode.ILLEGAL_INSTRUCTION
    assert exc.value == 0


def test_compressed_instruction_advances_by_two():
    cpu = make_cpu()
    assert run_single(cpu, 0x4515) == NONE  # c.li x10, 5
    assert cpu.regs[10] == 5
    assert cpu.pc == BASE + 2


def test_compressed_jalr_links_to_ra():
    cpu = make_cpu()
    cpu.regs[5] = BASE + 0x100
    run_single(cpu, 0x9282)  # c.jalr x5
    assert cpu.pc == BASE + 0x100
    assert cpu.regs[1] == BASE + 2


def test_compressed_float_load_is_illegal():
    cpu = make_cpu()
    exc = run_single(cpu, 0x2000)  # c.fld
    assert exc.code == ExceptionCode.ILLEGAL_INSTRUCTION
    assert exc.value == 0x2000


def test_amo_add_and_swap():
    cpu = make_cpu()
    cpu.bus.write(DATA, 5, 64)
    cpu.regs[1] = DATA
    cpu.regs[2] = 3
    assert run_single(cpu, encode_amo(0b00000, 2, 1, 0x3, 3)) == NONE  # AMOADD.D
    assert cpu.regs[3] == 5
    assert cpu.bus.read(DATA, 64) == 8

    cpu = make_cpu()
    cpu.bus.write(DATA, 0xffffffff, 32)
    cpu.regs[1] = DATA
    cpu.regs[2] = 9
    run_single(cpu, encode_amo(0b00001, 2, 1, 0x2, 3))  # AMOSWAP.W
    assert cpu.regs[3] == MASK64
    assert cpu.bus.read(DATA, 32) == 9


def test_amo_min_signed_and_unsigned():
    cpu = make_cpu()
    cpu.bus.write(DATA, 0xffffffff, 32)
    cpu.regs[1] = DATA
    cpu.regs[2] = 1
    run_single(cpu, encode_amo(0b10000, 2, 1, 0x2, 3))  # AMOMIN.W
    assert cpu.bus.read(DATA, 32) == 0xffffffff

    cpu = make_cpu()
    cpu.bus.write(DATA, 0xffffffff, 32)
    cpu.regs[1] = DATA
    cpu.regs[2] = 1
    run_single(cpu, encode_amo(0b11000, 2, 1, 0x2, 3))  # AMOMINU.W
    assert cpu.bus.read(DATA, 32) == 1


def test_misaligned_amo_is_store_misaligned():
    cpu = make_cpu()
    cpu.regs[1] = DATA + 1
    exc = run_single(cpu, encode_amo(0b00000, 2, 1, 0x2, 3))
    assert exc.code == ExceptionCode.STORE_ADDRESS_MISALIGNED
    assert exc.value == DATA + 1


def test_lr_sc_pair():
    cpu = make_cpu()
    cpu.bus.write(DATA, 41, 64)
    cpu.regs[1] = DATA
    cpu.regs[2] = 99
    run_single(cpu, encode_amo(0b00010, 0, 1, 0x3, 3))  # LR.D
    assert cpu.regs[3] == 41
    run_single(cpu, encode_amo(0b00011, 2, 1, 0x3, 4), pc=BASE + 4)  # SC.D
    assert cpu.regs[4] == 0
    assert cpu.bus.read(DATA, 64) == 99

    # the reservation is consumed
    cpu.regs[2] = 7
    run_single(cpu, encode_amo(0b00011, 2, 1, 0x3, 4), pc=BASE + 8)
    assert cpu.regs[4] == 1
    assert cpu.bus.read(DATA, 64) == 99


def test_mret_restores_mode_and_pc():
    cpu = make_cpu()
    cpu.csr.write(csr.MSTATUS, (1 << 11) | csr.MSTATUS_MPIE)
    cpu.csr.write(csr.MEPC, BASE + 0x40)
    assert run_single(cpu, 0x30200073) == NONE
    assert cpu.mode == Mode.SUPERVISOR
    assert cpu.pc == BASE + 0x40
    mstatus = cpu.csr.read(csr.MSTATUS)
    assert mstatus & csr.MSTATUS_MIE
    assert mstatus & csr.MSTATUS_MPIE
    assert mstatus & csr.MSTATUS_MPP == 0


def test_sret_returns_to_user():
    cpu = make_cpu()
    cpu.mode = Mode.SUPERVISOR
    cpu.csr.write(csr.MSTATUS, csr.MSTATUS_SPIE)
    cpu.csr.write(csr.SEPC, BASE + 0x80)
    assert run_single(cpu, 0x10200073) == NONE
    assert cpu.mode == Mode.USER
    assert cpu.pc == BASE + 0x80
    assert cpu.csr.read(csr.MSTATUS) & csr.MSTATUS_SIE


def test_privileged_returns_below_their_level_are_illegal():
    cpu = make_cpu()
    cpu.mode = Mode.USER
    assert run_single(cpu, 0x10200073).code == ExceptionCode.ILLEGAL_INSTRUCTION

    cpu = make_cpu()
    cpu.mode = Mode.SUPERVISOR
    assert run_single(cpu, 0x30200073).code == ExceptionCode.ILLEGAL_INSTRUCTION

    cpu = make_cpu()
    cpu.mode = Mode.SUPERVISOR
    cpu.csr.write(csr.MSTATUS, csr.MSTATUS_TSR)
    assert run_single(cpu, 0x10200073).code == ExceptionCode.ILLEGAL_INSTRUCTION

    cpu = make_cpu()
    assert run_single(cpu, 0x00200073).code == ExceptionCode.ILLEGAL_INSTRUCTION  # URET


def test_wfi_sleeps_and_is_illegal_in_user_mode():
    cpu = make_cpu()
    assert run_single(cpu, 0x10500073) == NONE
    assert cpu.wfi
    assert cpu.pc == BASE + 4

    cpu = make_cpu()
    cpu.mode = Mode.USER
    assert run_single(cpu, 0x10500073).code == ExceptionCode.ILLEGAL_INSTRUCTION


def test_fences_and_sfence_vma():
    cpu = make_cpu()
    assert run_single(cpu, 0x0ff0000f) == NONE
    assert run_single(cpu, 0x0000100f, pc=BASE + 4) == NONE
    assert run_single(cpu, 0x12000073, pc=BASE + 8) == NONE
    assert cpu.pc == BASE + 12

    cpu = make_cpu()
    cpu.mode = Mode.USER
    assert run_single(cpu, 0x12000073).code == ExceptionCode.ILLEGAL_INSTRUCTION


def test_counters_advance_per_step():
    cpu = make_cpu()
    run_single(cpu, encode_i_type(1, 0, 0, 1))
    run_single(cpu, 0xffffffff, pc=BASE + 4)
    assert cpu.csr.read(csr.MCYCLE) == 2
    assert cpu.csr.read(csr.MINSTRET) == 1
