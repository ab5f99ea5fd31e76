# rv32emu.py
# Small RV32I subset emulator: fetch/decode/execute over separate instruction
# and data memories, halting on `jal x0, 0` or on an illegal instruction.

import dataclasses
import logging
import sys

from bounded_memory import BoundedMemory, OutOfRangeError
from cpu_core import (
    Continue,
    CPUCore,
    EngineState,
    Halt,
    Illegal,
    StepLimitExceeded,
)
from hex_loader import load_hex_program, load_words
from regfile import InvalidRegisterError, RegisterFile, format_regs
from sim_config import SimConfig, _parse_int, load_config

logger = logging.getLogger(__name__)

DEFAULT_DUMP_ADDR = 0x00010000
DEFAULT_DUMP_WORDS = 16

__all__ = [
    "Continue",
    "EngineState",
    "Halt",
    "Illegal",
    "InvalidRegisterError",
    "OutOfRangeError",
    "RV32Emu",
    "SimConfig",
    "StepLimitExceeded",
    "main",
]


class RV32Emu:
    def __init__(self, config=None):
        self.config = config if config is not None else SimConfig()
        self.imem = BoundedMemory(self.config.imem_size, "imem")
        self.dmem = BoundedMemory(self.config.dmem_size, "dmem")
        self.regs = RegisterFile()
        self.core = CPUCore(self)
        self.pc = 0
        self.state = EngineState.RUNNING
        self.instr_count = 0
        self.last_instr = None
        self.last_outcome = None

    def reset(self):
        self.regs.reset()
        self.pc = 0
        self.state = EngineState.RUNNING
        self.instr_count = 0
        self.last_instr = None
        self.last_outcome = None

    def load_program(self, words, base_index=0):
        return load_words(self.imem, words, base_index)

    def load_hex_program(self, path):
        return load_hex_program(self.imem, path)

    @property
    def terminated(self):
        return self.state is not EngineState.RUNNING

    def step(self):
        """Execute one instruction and return its outcome.

        OutOfRangeError and InvalidRegisterError propagate to the caller with
        the PC left on the faulting instruction. Once halted or stopped on an
        illegal instruction the engine stays there; further calls return the
        same outcome.
        """
        if self.terminated:
            return self.last_outcome

        outcome = self.core.execute()
        self.instr_count += 1
        self.last_outcome = outcome
        if isinstance(outcome, Halt):
            self.state = EngineState.HALTED
            logger.debug("Halted at PC=0x%08x", outcome.pc)
        elif isinstance(outcome, Illegal):
            self.state = EngineState.ILLEGAL
            logger.error(
                "Illegal or unsupported instruction at PC=0x%08x, INSN=0x%08x", outcome.pc, outcome.word
            )
        return outcome

    def run(self, max_steps=None):
        if max_steps is None:
            max_steps = self.config.max_steps
        if max_steps < 0:
            raise ValueError(f"Invalid step limit: {max_steps}")
        steps = 0
        while steps < max_steps:
            outcome = self.step()
            steps += 1
            if not isinstance(outcome, Continue):
                return outcome
        logger.warning("Max steps (%d) reached; stopping to avoid hang", max_steps)
        return StepLimitExceeded(steps)

    def dump_regs(self):
        return format_regs(self.regs.snapshot()) + f"\npc            = 0x{self.pc:08x}"

    def dump_mem_words(self, addr, words, memory=None):
        memory = memory if memory is not None else self.dmem
        return "\n".join(f"[0x{a:08x}] = 0x{w:08x}" for a, w in memory.read_words(addr, words))


def _usage():
    print("Usage: python rv32emu.py PROGRAM.hex [OPTIONS]")
    print("Options:")
    print("  --config=FILE         Load simulator settings from a JSON config")
    print("  --imem=SIZE           Instruction memory size in bytes")
    print("  --dmem=SIZE           Data memory size in bytes")
    print("  --max-steps=N         Stop after N instructions (default: 5000000)")
    print("  --trace               Log every executed instruction")
    print("  --no-warn-unaligned   Do not warn on unaligned LW/SW")
    print("  --dump=ADDR:WORDS     Data memory window to print (default: 0x00010000:16)")


def _parse_dump(text):
    addr, sep, count = text.partition(":")
    if not sep:
        raise ValueError(f"Invalid dump window: {text!r}")
    return _parse_int(addr), _parse_int(count)


def main(argv=None):
    args = list(sys.argv[1:] if argv is None else argv)
    hex_file = None
    config_file = None
    overrides = {}
    dump_addr, dump_words = DEFAULT_DUMP_ADDR, DEFAULT_DUMP_WORDS

    try:
        while args:
            arg = args.pop(0)
            if arg.startswith("--config="):
                config_file = arg.split("=", 1)[1]
            elif arg.startswith("--imem="):
                overrides["imem_size"] = _parse_int(arg.split("=", 1)[1])
            elif arg.startswith("--dmem="):
                overrides["dmem_size"] = _parse_int(arg.split("=", 1)[1])
            elif arg.startswith("--max-steps="):
                overrides["max_steps"] = _parse_int(arg.split("=", 1)[1])
            elif arg == "--trace":
                overrides["trace"] = True
            elif arg == "--no-warn-unaligned":
                overrides["warn_unaligned"] = False
            elif arg.startswith("--dump="):
                dump_addr, dump_words = _parse_dump(arg.split("=", 1)[1])
            elif arg in ("-h", "--help"):
                _usage()
                return 0
            elif arg.startswith("-"):
                print(f"Unknown option: {arg}")
                return 1
            else:
                if hex_file:
                    print("Only one program file allowed")
                    return 1
                hex_file = arg
    except ValueError as e:
        print(f"[ERROR] {e}")
        return 1

    if not hex_file:
        _usage()
        return 1

    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    try:
        config = load_config(config_file) if config_file else SimConfig()
        config = dataclasses.replace(config, **overrides)
        sim = RV32Emu(config)
        count = sim.load_hex_program(hex_file)
    except (OSError, ValueError, OutOfRangeError) as e:
        print(f"[ERROR] {e}")
        return 1
    print(f"[SIM] Loaded {count} words from {hex_file}")

    try:
        outcome = sim.run()
    except (OutOfRangeError, InvalidRegisterError) as e:
        print(f"[SIM] Execution stopped at PC=0x{sim.pc:08x}: {e}")
        outcome = None

    if isinstance(outcome, Halt):
        print(f"[SIM] Halted at PC=0x{outcome.pc:08x} after {sim.instr_count} instructions")
        status = 0
    elif isinstance(outcome, Illegal):
        print(f"[SIM] Illegal instruction 0x{outcome.word:08x} at PC=0x{outcome.pc:08x}")
        status = 1
    elif isinstance(outcome, StepLimitExceeded):
        print(f"[SIM] Step limit reached after {outcome.steps} instructions")
        status = 2
    else:
        status = 1

    print("\n==== FINAL REGISTER DUMP ====")
    print(sim.dump_regs())
    print(f"\n==== DATA MEM [0x{dump_addr:08x} .. 0x{dump_addr + dump_words * 4:08x}) ====")
    print(sim.dump_mem_words(dump_addr, dump_words))
    return status


if __name__ == "__main__":
    sys.exit(main())
