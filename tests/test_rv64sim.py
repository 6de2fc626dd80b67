import io
import json
import sys

import pytest

import csr
import rv64sim
import uart
from elf_utils import build_elf64
from plic import PLIC_BASE, SENABLE, UART_IRQ
from rv64sim import RV64Sim, main
from rv_encoding import (
    BASE,
    encode_csr,
    encode_i_type,
    encode_j_type,
    encode_s_type,
    encode_u_type,
)
from trap import Trap

TOHOST = BASE + 0x1000


def program(*words):
    return b"".join(w.to_bytes(4, "little") for w in words)


PASS_PROGRAM = program(
    encode_i_type(1, 0, 0x0, 1),  # addi x1, x0, 1
    encode_u_type(0x1000, 2, opcode=0x17),  # auipc x2, 1
    encode_s_type(-4, 1, 2, 0x3),  # sd x1, -4(x2)
    encode_j_type(0, 0),  # j .
)


def write_elf(tmp_path, code, name="prog.elf", **kwargs):
    path = tmp_path / name
    path.write_bytes(build_elf64(code, **kwargs))
    return str(path)


def make_sim(**kwargs):
    return RV64Sim(memory_size=0x100000, uart_output=io.StringIO(), **kwargs)


def test_single_step(tmp_path):
    sim = make_sim()
    sim.load_elf(write_elf(tmp_path, program(encode_i_type(3, 0, 0x0, 16))))
    assert sim.pc == BASE
    assert sim.step() is None
    assert sim.regs[16] == 3
    assert sim.pc == BASE + 4
    assert sim.instr_count == 1


def test_load_elf_reports_entry_and_tohost(tmp_path, capsys):
    sim = make_sim()
    image = sim.load_elf(write_elf(tmp_path, PASS_PROGRAM, entry=BASE + 4, tohost=TOHOST))
    out = capsys.readouterr().out
    assert "[SIM] Loaded ELF" in out
    assert "Entry point: 0x0000000080000004" in out
    assert image.tohost == TOHOST
    assert sim.bus.tohost_addr == TOHOST
    assert sim.pc == BASE + 4


def test_load_elf_reads_file_through_loader(tmp_path, monkeypatch):
    calls = []
    real = rv64sim.load_elf_file

    def recording(filename):
        calls.append(filename)
        return real(filename)

    monkeypatch.setattr(rv64sim, "load_elf_file", recording)
    path = write_elf(tmp_path, PASS_PROGRAM)
    make_sim().load_elf(path)
    assert calls == [path]


def test_load_elf_missing_file(tmp_path):
    sim = make_sim()
    with pytest.raises(FileNotFoundError):
        sim.load_elf(str(tmp_path / "missing.elf"))


def test_run_until_tohost(tmp_path):
    sim = make_sim()
    sim.load_elf(write_elf(tmp_path, PASS_PROGRAM, tohost=TOHOST))
    assert sim.run(100) == "tohost"
    assert sim.exit_code == 1
    # the halting store does not complete its step
    assert sim.instr_count == 2
    assert sim.bus.read(TOHOST, 64) == 1


def test_run_stops_on_fatal_trap():
    sim = make_sim()
    sim.bus.write(BASE, encode_i_type(0, 0, 0x3, 5, opcode=0x03), 32)  # ld x5, 0(x0)
    assert sim.run(10) == "fatal"
    assert sim.last_trap.value == 0


def test_fatal_trap_with_guest_handler_keeps_running():
    sim = make_sim()
    sim.configure_tohost(BASE + 0x1100)
    sim.cpu.csr.write(csr.MTVEC, BASE + 0x100)
    sim.bus.write(BASE, encode_i_type(0, 0, 0x3, 5, opcode=0x03), 32)  # ld x5, 0(x0)
    sim.bus.write_bytes(BASE + 0x100, PASS_PROGRAM)
    assert sim.run(10) == "tohost"
    assert sim.exit_code == 1
    assert sim.cpu.csr.read(csr.MCAUSE) == 5


def test_run_stops_after_max_steps():
    sim = make_sim()
    sim.bus.write(BASE, encode_j_type(0, 0), 32)
    assert sim.run(10) == "max_steps"
    assert sim.instr_count == 10
    assert sim.pc == BASE


def test_requested_and_contained_traps_continue():
    sim = make_sim()
    sim.cpu.csr.write(csr.MTVEC, BASE + 0x100)
    sim.bus.write(BASE, 0x00000073, 32)  # ecall
    sim.bus.write(BASE + 0x100, 0xffffffff, 32)
    assert sim.step() == Trap.REQUESTED
    assert sim.pc == BASE + 0x100
    assert sim.step() == Trap.CONTAINED


def test_uart_output_through_bus():
    out = io.StringIO()
    sim = RV64Sim(memory_size=0x100000, uart_output=out)
    code = program(
        encode_u_type(uart.UART_BASE, 1),  # lui x1, 0x10000
        encode_i_type(ord("A"), 0, 0x0, 2),
        encode_s_type(0, 2, 1, 0x0),  # sb x2, 0(x1)
    )
    sim.bus.write_bytes(BASE, code)
    sim.run(3)
    assert out.getvalue() == "A"


def test_uart_receive_raises_supervisor_external_interrupt():
    sim = make_sim()
    sim.bus.write(BASE, encode_i_type(0, 0, 0x0, 0), 32)
    sim.bus.write(uart.UART_BASE + uart.IER, uart.IER_RX, 8)
    sim.bus.write(PLIC_BASE + 4 * UART_IRQ, 1, 32)
    sim.bus.write(PLIC_BASE + SENABLE, 1 << UART_IRQ, 32)
    sim.uart.queue_input("k")
    sim.step()
    assert sim.cpu.csr.read(csr.MIP) & csr.SEIP
    assert sim.bus.read(uart.UART_BASE, 8) == ord("k")
    sim.step()
    assert not sim.cpu.csr.read(csr.MIP) & csr.SEIP


def test_software_set_seip_survives_steps():
    sim = make_sim()
    code = program(
        encode_i_type(csr.SEIP, 0, 0x0, 5),  # addi x5, x0, 0x200
        encode_csr(csr.MIP, 5, 0x2, 0),  # csrrs x0, mip, x5
        encode_csr(csr.MIP, 0, 0x2, 6),  # csrrs x6, mip, x0
    )
    sim.bus.write_bytes(BASE, code)
    for _ in range(3):
        sim.step()
    assert sim.regs[6] & csr.SEIP
    assert sim.cpu.csr.read(csr.MIP) & csr.SEIP


def test_trace_output(capsys):
    sim = make_sim(trace=True)
    sim.bus.write(BASE, encode_i_type(1, 0, 0x0, 1), 32)
    sim.step()
    out = capsys.readouterr().out
    assert "[TRACE] pc=0x0000000080000000 ADDI" in out


def test_dump_regs(capsys):
    sim = make_sim()
    sim.cpu.regs[10] = 0x1234
    sim.dump_regs()
    out = capsys.readouterr().out
    assert "a0" in out
    assert "0x0000000000001234" in out
    assert "mode           = MACHINE" in out


def test_load_config(tmp_path, capsys):
    config = {
        "memory_regions": [{"name": "extra", "start": "0x90000000", "size": "0x1000"}],
        "tohost": "0x90000000",
        "max_steps": 5,
    }
    path = tmp_path / "sim.json"
    path.write_text(json.dumps(config))
    sim = make_sim()
    sim.load_config(str(path))
    assert sim.memory.find_region(0x90000800).name == "extra"
    assert sim.memory.find_region(BASE).name == "dram"
    assert sim.bus.tohost_addr == 0x90000000
    assert sim.max_steps == 5
    assert "Memory region: extra" in capsys.readouterr().out


def test_main_argument_errors(tmp_path, capsys):
    assert main([]) == 1
    assert main(["-h"]) == 0
    assert main(["--bogus"]) == 1
    assert main(["a.elf", "b.elf"]) == 1
    assert main([str(tmp_path / "missing.elf")]) == 1
    assert "[ERROR]" in capsys.readouterr().out


def test_main_runs_program(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"")))
    path = write_elf(tmp_path, PASS_PROGRAM, tohost=TOHOST)
    assert main([path, "--max-steps=100"]) == 0
    assert "[SIM] PASS" in capsys.readouterr().out


def test_main_reports_failure(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(b"")))
    code = program(
        encode_i_type(7, 0, 0x0, 1),  # addi x1, x0, 7
        encode_u_type(0x1000, 2, opcode=0x17),
        encode_s_type(-4, 1, 2, 0x3),
    )
    path = write_elf(tmp_path, code, tohost=TOHOST)
    assert main([path]) == 1
    assert "FAIL (test 3)" in capsys.readouterr().out
