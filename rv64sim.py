# rv64sim.py
# RV64IMAC simulator: SV39 paging, M/S/U privilege, 16550 UART and PLIC

import json
import os
import sys

import csr
from bus import Bus, HaltException
from cpu import CPU
from elf_loader import load_elf_file, load_segments
from memory_map import DRAM_BASE, MemoryMap
from mode import Mode
from plic import PLIC_BASE, PLIC_SIZE, UART_IRQ, Plic
from trap import Trap, classify
from uart import UART_BASE, UART_SIZE, Uart16550


class RV64Sim:
    def __init__(self, memory_size=128 * 1024 * 1024, dram_base=DRAM_BASE, trace=False, uart_output=None):
        self.memory = MemoryMap(memory_size, dram_base)
        self.memory.ensure_regions()
        self.bus = Bus(self.memory)
        self.uart = Uart16550(output=uart_output)
        self.plic = Plic()
        self.bus.add_device(UART_BASE, UART_SIZE, self.uart, "uart")
        self.bus.add_device(PLIC_BASE, PLIC_SIZE, self.plic, "plic")
        self.cpu = CPU(self.bus)
        self.cpu.pc = dram_base
        self.trace = trace
        self.max_steps = None
        self.instr_count = 0
        self.elf_path = None
        self.halt_reason = None
        self.exit_code = None
        self.last_trap = None

    @property
    def regs(self):
        return self.cpu.regs

    @property
    def pc(self):
        return self.cpu.pc

    def configure_tohost(self, addr):
        self.bus.configure_tohost(addr)

    def load_elf(self, filename):
        if not os.path.isfile(filename):
            raise FileNotFoundError(f"ELF file not found: {filename}")
        image = load_elf_file(filename)
        load_segments(image, self.bus)
        self.cpu.pc = image.entry
        if image.tohost is not None:
            self.configure_tohost(image.tohost)
        self.elf_path = os.path.abspath(filename)
        print(f"[SIM] Loaded ELF: {self.elf_path}")
        print(f"[SIM] Entry point: 0x{self.cpu.pc:016x}")
        if image.tohost is not None:
            print(f"[SIM] tohost at 0x{image.tohost:016x}")
        return image

    def load_config(self, filename):
        with open(filename, "r") as f:
            config = json.load(f)
        for region in config.get("memory_regions", []):
            name = region.get("name", "mem")
            start = int(str(region["start"]), 0)
            size = int(str(region["size"]), 0)
            self.memory.add_region(start, start + size, name)
            print(f"[SIM] Memory region: {name} 0x{start:x}-0x{start + size:x}")
        if "tohost" in config:
            self.configure_tohost(int(str(config["tohost"]), 0))
        if "max_steps" in config:
            self.max_steps = int(config["max_steps"])
        print(f"[SIM] Loaded config from {filename}")

    def _update_interrupts(self):
        self.uart.tick()
        self.plic.set_pending(UART_IRQ, self.uart.interrupting())
        self.cpu.csr.set_pending(csr.SEIP, self.plic.has_interrupt())

    def step(self):
        """Execute one instruction; return its trap disposition or None."""
        self._update_interrupts()
        pc = self.cpu.pc
        exc = self.cpu.step()
        self.instr_count += 1
        if self.trace:
            decoded = self.cpu.last_decoded
            name = decoded.name if decoded is not None else "?"
            print(f"[TRACE] pc=0x{pc:016x} {name} raw=0x{self.cpu.last_instr:08x}")
        if exc.is_none():
            return None
        self.last_trap = exc
        disposition = classify(exc)
        if self.trace:
            print(f"[TRACE] trap {exc!r} -> {disposition.value}")
        return disposition

    def run(self, max_steps=None):
        """Run until an unhandled Fatal trap, a halt or ``max_steps`` instructions."""
        if max_steps is None:
            max_steps = self.max_steps
        steps = 0
        try:
            while max_steps is None or steps < max_steps:
                steps += 1
                if self.step() == Trap.FATAL and not self._has_handler():
                    self.halt_reason = "fatal"
                    print(f"[SIM] Fatal trap {self.last_trap!r}, mepc=0x{self.cpu.csr.read(csr.MEPC):016x}")
                    break
            else:
                self.halt_reason = "max_steps"
                print(f"[SIM] Stopped after {steps} steps")
        except HaltException as e:
            self.halt_reason = e.reason
            self.exit_code = e.code
            print(f"[SIM] Halted: {e}")
        return self.halt_reason

    def _has_handler(self):
        """True when the mode the last trap entered has a trap vector set.

        A fatal trap that reached a guest handler is left to the guest, so
        test programs that provoke access faults on purpose keep running.
        """
        vector = csr.MTVEC if self.cpu.mode == Mode.MACHINE else csr.STVEC
        return self.cpu.csr.read(vector) & ~0x3 != 0

    def dump_regs(self):
        for line in self.cpu.regs.dump():
            print(line)
        print(f"pc             = 0x{self.cpu.pc:016x}")
        print(f"mode           = {self.cpu.mode.name}")


def _usage():
    print("Usage: python rv64sim.py program.elf [OPTIONS]")
    print("Options:")
    print("  --max-steps=N    Stop after N instructions")
    print("  --trace          Print every executed instruction")
    print("  --config=FILE    Load memory regions / tohost from a JSON config")


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    elf_file = None
    max_steps = None
    trace = False
    config = None

    args = list(argv)
    while args:
        arg = args.pop(0)
        if arg.startswith("--max-steps="):
            max_steps = int(arg.split("=", 1)[1], 0)
        elif arg == "--trace":
            trace = True
        elif arg.startswith("--config="):
            config = arg.split("=", 1)[1]
        elif arg in ("-h", "--help"):
            _usage()
            return 0
        elif arg.startswith("-"):
            print(f"Unknown option: {arg}")
            return 1
        else:
            if elf_file:
                print("Only one ELF file allowed")
                return 1
            elf_file = arg

    if not elf_file:
        _usage()
        return 1

    sim = RV64Sim(trace=trace)
    try:
        if config:
            sim.load_config(config)
        sim.load_elf(elf_file)
    except (OSError, ValueError) as e:
        print(f"[ERROR] {e}")
        return 1

    sim.cpu.regs.write(2, sim.memory.get_stack_top() - 16)
    sim.uart.start_input_thread()
    sim.run(max_steps)

    if sim.halt_reason == "tohost":
        if sim.exit_code == 1:
            print("[SIM] PASS")
            return 0
        print(f"[SIM] FAIL (test {sim.exit_code >> 1})")
        return 1
    if sim.halt_reason == "fatal":
        sim.dump_regs()
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
