import logging
import runpy
import sys

import pytest

from bounded_memory import OutOfRangeError
from rv32emu import (
    Continue,
    EngineState,
    Halt,
    Illegal,
    InvalidRegisterError,
    RV32Emu,
    SimConfig,
    StepLimitExceeded,
    main,
)

HALT = 0x0000006f  # jal x0, 0


def encode_r_type(funct7, rs2, rs1, funct3, rd, opcode=0x33):
    return (
        ((funct7 & 0x7f) << 25)
        | ((rs2 & 0x1f) << 20)
        | ((rs1 & 0x1f) << 15)
        | ((funct3 & 0x7) << 12)
        | ((rd & 0x1f) << 7)
        | (opcode & 0x7f)
    )


def encode_i_type(imm, rs1, funct3, rd, opcode=0x13):
    imm &= 0xfff
    return (imm << 20) | ((rs1 & 0x1f) << 15) | ((funct3 & 0x7) << 12) | ((rd & 0x1f) << 7) | (opcode & 0x7f)


def encode_s_type(imm, rs2, rs1, funct3, opcode=0x23):
    imm &= 0xfff
    return (
        ((imm >> 5) & 0x7f) << 25
        | ((rs2 & 0x1f) << 20)
        | ((rs1 & 0x1f) << 15)
        | ((funct3 & 0x7) << 12)
        | (imm & 0x1f) << 7
        | (opcode & 0x7f)
    )


def encode_b_type(imm, rs2, rs1, funct3, opcode=0x63):
    imm &= 0x1fff
    return (
        ((imm >> 12) & 0x1) << 31
        | ((imm >> 5) & 0x3f) << 25
        | ((rs2 & 0x1f) << 20)
        | ((rs1 & 0x1f) << 15)
        | ((funct3 & 0x7) << 12)
        | ((imm >> 1) & 0xf) << 8
        | ((imm >> 11) & 0x1) << 7
        | (opcode & 0x7f)
    )


def addi(rd, rs1, imm):
    return encode_i_type(imm, rs1, 0x0, rd)


# Sums 5 + 4 + 3 + 2 + 1 into x2 and stores it at 0x100.
SUM_PROGRAM = [
    addi(1, 0, 5),
    addi(2, 0, 0),
    encode_r_type(0x00, 1, 2, 0x0, 2),  # loop: add x2, x2, x1
    addi(1, 1, -1),
    encode_b_type(-8, 0, 1, 0x1),  # bne x1, x0, loop
    encode_s_type(0x100, 2, 0, 0x2),  # sw x2, 0x100(x0)
    HALT,
]


def make_sim(**kwargs):
    kwargs.setdefault("imem_size", 0x1000)
    kwargs.setdefault("dmem_size", 0x1000)
    return RV32Emu(SimConfig(**kwargs))


def write_hex(path, words):
    path.write_text("".join(f"{w:08x}\n" for w in words))
    return path


def test_default_config():
    sim = RV32Emu()
    assert sim.imem.size == 1 << 20
    assert sim.dmem.size == 1 << 20
    assert sim.imem is not sim.dmem
    assert sim.state is EngineState.RUNNING
    assert sim.pc == 0


def test_run_program_to_halt():
    sim = make_sim()
    sim.load_program(SUM_PROGRAM)
    outcome = sim.run()
    assert outcome == Halt(24)
    assert sim.state is EngineState.HALTED
    assert sim.regs[2] == 15
    assert sim.dmem.load_u32(0x100) == 15
    assert sim.instr_count == 2 + 5 * 3 + 2


def test_halt_stops_driver_after_that_step():
    sim = make_sim()
    sim.load_program([addi(1, 0, 1), HALT, addi(1, 0, 2)])
    outcome = sim.run(max_steps=100)
    assert isinstance(outcome, Halt)
    assert sim.instr_count == 2
    assert sim.regs[1] == 1


def test_step_after_halt_is_inert():
    sim = make_sim()
    sim.load_program([HALT])
    first = sim.step()
    again = sim.step()
    assert first == again == Halt(0)
    assert sim.instr_count == 1
    assert sim.pc == 0


def test_illegal_instruction_terminates_run(caplog):
    sim = make_sim()
    sim.load_program([addi(1, 0, 1), 0x00000073])
    with caplog.at_level(logging.ERROR, logger="rv32emu"):
        outcome = sim.run()
    assert outcome == Illegal(4, 0x00000073)
    assert sim.state is EngineState.ILLEGAL
    assert sim.pc == 4
    assert "PC=0x00000004, INSN=0x00000073" in caplog.text
    assert sim.step() == outcome


def test_step_limit_exceeded(caplog):
    sim = make_sim()
    sim.load_program([encode_b_type(0, 0, 0, 0x0)])  # beq x0, x0, 0 never halts
    with caplog.at_level(logging.WARNING, logger="rv32emu"):
        outcome = sim.run(max_steps=10)
    assert outcome == StepLimitExceeded(10)
    assert sim.instr_count == 10
    assert sim.state is EngineState.RUNNING
    assert "Max steps (10) reached" in caplog.text


def test_step_limit_from_config():
    sim = make_sim(max_steps=7)
    sim.load_program([encode_b_type(0, 0, 0, 0x0)])
    assert sim.run() == StepLimitExceeded(7)


def test_zero_step_limit_and_negative():
    sim = make_sim()
    sim.load_program([HALT])
    assert sim.run(max_steps=0) == StepLimitExceeded(0)
    assert sim.instr_count == 0
    with pytest.raises(ValueError):
        sim.run(max_steps=-1)


def test_fetch_out_of_range():
    sim = make_sim(imem_size=8)
    sim.load_program([addi(1, 0, 1), addi(2, 0, 2)])
    with pytest.raises(OutOfRangeError) as excinfo:
        sim.run()
    assert excinfo.value.name == "imem"
    assert excinfo.value.addr == 8
    assert sim.pc == 8
    assert sim.state is EngineState.RUNNING


def test_out_of_range_not_mapped_to_illegal():
    sim = make_sim(dmem_size=0x10)
    sim.load_program([encode_i_type(0x10, 0, 0x2, 1, opcode=0x03), HALT])  # lw x1, 16(x0)
    with pytest.raises(OutOfRangeError):
        sim.step()
    assert sim.state is EngineState.RUNNING
    assert sim.instr_count == 0


def test_invalid_register_propagates():
    sim = make_sim()
    with pytest.raises(InvalidRegisterError):
        sim.regs.write(32, 1)


def test_program_too_large():
    sim = make_sim(imem_size=4)
    with pytest.raises(OutOfRangeError):
        sim.load_program([HALT, HALT])


def test_execution_is_deterministic():
    results = []
    for _ in range(2):
        sim = make_sim()
        sim.load_program(SUM_PROGRAM)
        sim.run()
        results.append((sim.regs.snapshot(), sim.pc, bytes(sim.dmem.data)))
    assert results[0] == results[1]


def test_reset_keeps_memory():
    sim = make_sim()
    sim.load_program(SUM_PROGRAM)
    sim.run()
    sim.reset()
    assert sim.pc == 0
    assert sim.state is EngineState.RUNNING
    assert sim.regs.snapshot() == (0,) * 32
    assert sim.dmem.load_u32(0x100) == 15
    assert sim.run() == Halt(24)


def test_step_returns_continue():
    sim = make_sim()
    sim.load_program([addi(3, 0, 9), HALT])
    assert sim.step() == Continue(4)
    assert sim.regs[3] == 9


def test_dumps_are_read_only():
    sim = make_sim()
    sim.load_program(SUM_PROGRAM)
    sim.run()
    before = (sim.regs.snapshot(), sim.pc, bytes(sim.dmem.data))
    regs = sim.dump_regs()
    mem = sim.dump_mem_words(0x100, 2)
    assert "x2  (  sp) = 0x0000000f" in regs
    assert "pc            = 0x00000018" in regs
    assert mem.splitlines() == ["[0x00000100] = 0x0000000f", "[0x00000104] = 0x00000000"]
    assert sim.dump_mem_words(0, 1, memory=sim.imem) == f"[0x00000000] = 0x{SUM_PROGRAM[0]:08x}"
    assert (sim.regs.snapshot(), sim.pc, bytes(sim.dmem.data)) == before


def test_load_hex_program(tmp_path):
    sim = make_sim()
    count = sim.load_hex_program(write_hex(tmp_path / "prog.hex", SUM_PROGRAM))
    assert count == len(SUM_PROGRAM)
    assert sim.run() == Halt(24)


def test_main_halts(tmp_path, capsys):
    prog = write_hex(tmp_path / "prog.hex", SUM_PROGRAM)
    status = main([str(prog), "--dmem=0x1000", "--imem=4096", "--dump=0x100:2"])
    out = capsys.readouterr().out
    assert status == 0
    assert "[SIM] Loaded 7 words" in out
    assert "[SIM] Halted at PC=0x00000018" in out
    assert "==== FINAL REGISTER DUMP ====" in out
    assert "[0x00000100] = 0x0000000f" in out


def test_main_step_limit(tmp_path, capsys):
    prog = write_hex(tmp_path / "loop.hex", [encode_b_type(0, 0, 0, 0x0)])
    assert main([str(prog), "--max-steps=5", "--dmem=0x100", "--dump=0:1"]) == 2
    assert "Step limit reached after 5 instructions" in capsys.readouterr().out


def test_main_illegal(tmp_path, capsys):
    prog = write_hex(tmp_path / "bad.hex", [0xffffffff])
    assert main([str(prog), "--dmem=0x100"]) == 1
    assert "Illegal instruction 0xffffffff at PC=0x00000000" in capsys.readouterr().out


def test_main_runtime_error(tmp_path, capsys):
    prog = write_hex(tmp_path / "oob.hex", [encode_i_type(0x7fc, 0, 0x2, 1, opcode=0x03)])
    assert main([str(prog), "--dmem=0x100"]) == 1
    assert "Execution stopped at PC=0x00000000" in capsys.readouterr().out


def test_main_with_config_file(tmp_path, capsys):
    prog = write_hex(tmp_path / "loop.hex", [encode_b_type(0, 0, 0, 0x0)])
    cfg = tmp_path / "sim.json"
    cfg.write_text('{"imem_size": "0x100", "dmem_size": 256, "max_steps": 3}')
    assert main([str(prog), f"--config={cfg}"]) == 2
    assert "after 3 instructions" in capsys.readouterr().out


def test_main_usage_errors(tmp_path, capsys):
    assert main([]) == 1
    assert main(["--bogus"]) == 1
    assert main(["a.hex", "b.hex"]) == 1
    assert main(["a.hex", "--dump=16"]) == 1
    assert main(["--help"]) == 0
    assert main([str(tmp_path / "missing.hex")]) == 1
    assert main([str(tmp_path / "missing.hex"), "--imem=0"]) == 1
    out = capsys.readouterr().out
    assert "Usage: python rv32emu.py" in out
    assert "Unknown option: --bogus" in out


def test_module_entry_point(tmp_path, monkeypatch, capsys):
    prog = write_hex(tmp_path / "prog.hex", [HALT])
    monkeypatch.setattr(sys, "argv", ["rv32emu.py", str(prog), "--dmem=0x100"])
    with pytest.raises(SystemExit) as excinfo:
        runpy.run_module("rv32emu", run_name="__main__")
    assert excinfo.value.code == 0
    assert "[SIM] Halted" in capsys.readouterr().out
