import logging
import operator
from dataclasses import dataclass
from enum import Enum

from alu import AluOp
from alu import apply as alu_apply
from bitfield import u32
from decoder import (
    OPCODE_AUIPC,
    OPCODE_BRANCH,
    OPCODE_JAL,
    OPCODE_JALR,
    OPCODE_LOAD,
    OPCODE_LUI,
    OPCODE_OP,
    OPCODE_OP_IMM,
    OPCODE_STORE,
    decode,
)

logger = logging.getLogger(__name__)

ANY = None


@dataclass(frozen=True)
class Continue:
    next_pc: int


@dataclass(frozen=True)
class Halt:
    pc: int


@dataclass(frozen=True)
class Illegal:
    pc: int
    word: int


@dataclass(frozen=True)
class StepLimitExceeded:
    steps: int


class EngineState(Enum):
    RUNNING = "running"
    HALTED = "halted"
    ILLEGAL = "illegal"


class CPUCore:
    # (opcode, funct3, funct7) -> (mnemonic, handler, argument).
    # ANY matches every value of that field; a key with no entry is illegal.
    _INSTRUCTIONS = {
        (OPCODE_OP, 0x0, 0x00): ("add", "_handle_r_type", AluOp.ADD),
        (OPCODE_OP, 0x0, 0x20): ("sub", "_handle_r_type", AluOp.SUB),
        (OPCODE_OP, 0x7, 0x00): ("and", "_handle_r_type", AluOp.AND),
        (OPCODE_OP, 0x6, 0x00): ("or", "_handle_r_type", AluOp.OR),
        (OPCODE_OP, 0x4, 0x00): ("xor", "_handle_r_type", AluOp.XOR),
        (OPCODE_OP, 0x1, 0x00): ("sll", "_handle_r_type", AluOp.SLL),
        (OPCODE_OP, 0x5, 0x00): ("srl", "_handle_r_type", AluOp.SRL),
        (OPCODE_OP, 0x5, 0x20): ("sra", "_handle_r_type", AluOp.SRA),
        (OPCODE_OP_IMM, 0x0, ANY): ("addi", "_handle_addi", AluOp.ADD),
        (OPCODE_LOAD, 0x2, ANY): ("lw", "_handle_load", None),
        (OPCODE_STORE, 0x2, ANY): ("sw", "_handle_store", None),
        (OPCODE_BRANCH, 0x0, ANY): ("beq", "_handle_branch", operator.eq),
        (OPCODE_BRANCH, 0x1, ANY): ("bne", "_handle_branch", operator.ne),
        (OPCODE_JAL, ANY, ANY): ("jal", "_handle_jal", None),
        (OPCODE_JALR, ANY, ANY): ("jalr", "_handle_jalr", None),
        (OPCODE_LUI, ANY, ANY): ("lui", "_handle_lui", None),
        (OPCODE_AUIPC, ANY, ANY): ("auipc", "_handle_auipc", None),
    }

    _WRITES_RD = frozenset(
        ("add", "sub", "and", "or", "xor", "sll", "srl", "sra", "addi", "lw", "jal", "jalr", "lui", "auipc")
    )

    def __init__(self, sim):
        object.__setattr__(self, "sim", sim)

    def __getattr__(self, name):
        return getattr(self.sim, name)

    def __setattr__(self, name, value):
        if name == "sim":
            object.__setattr__(self, name, value)
        else:
            setattr(self.sim, name, value)

    @classmethod
    def lookup(cls, decoded):
        table = cls._INSTRUCTIONS
        entry = table.get((decoded.opcode, decoded.funct3, decoded.funct7))
        if entry is None:
            entry = table.get((decoded.opcode, decoded.funct3, ANY))
        if entry is None:
            entry = table.get((decoded.opcode, ANY, ANY))
        return entry

    def fetch(self):
        return self.imem.load_u32(self.pc)

    def _check_alignment(self, kind, addr):
        if self.config.warn_unaligned and addr & 0x3:
            logger.warning("Unaligned %s at 0x%08x (PC=0x%08x)", kind, addr, self.pc)

    def _handle_r_type(self, decoded, op, rs1_u, rs2_u, next_pc):
        self.regs.write(decoded.rd, alu_apply(op, rs1_u, rs2_u))
        return Continue(next_pc)

    def _handle_addi(self, decoded, op, rs1_u, _rs2_u, next_pc):
        self.regs.write(decoded.rd, alu_apply(op, rs1_u, u32(decoded.imm)))
        return Continue(next_pc)

    def _handle_load(self, decoded, _arg, rs1_u, _rs2_u, next_pc):
        addr = u32(rs1_u + decoded.imm)
        self._check_alignment("LW", addr)
        self.regs.write(decoded.rd, self.dmem.load_u32(addr))
        return Continue(next_pc)

    def _handle_store(self, decoded, _arg, rs1_u, rs2_u, next_pc):
        addr = u32(rs1_u + decoded.imm)
        self._check_alignment("SW", addr)
        self.dmem.store_u32(addr, rs2_u)
        return Continue(next_pc)

    def _handle_branch(self, decoded, compare, rs1_u, rs2_u, next_pc):
        if compare(rs1_u, rs2_u):
            next_pc = u32(self.pc + decoded.imm)
        return Continue(next_pc)

    def _handle_jal(self, decoded, _arg, _rs1_u, _rs2_u, next_pc):
        # jal x0, 0 jumps to itself forever; it is the program's halt marker.
        if decoded.rd == 0 and decoded.imm == 0:
            return Halt(self.pc)
        self.regs.write(decoded.rd, next_pc)
        return Continue(u32(self.pc + decoded.imm))

    def _handle_jalr(self, decoded, _arg, rs1_u, _rs2_u, next_pc):
        target = u32(rs1_u + decoded.imm) & ~1
        self.regs.write(decoded.rd, next_pc)
        return Continue(target)

    def _handle_lui(self, decoded, _arg, _rs1_u, _rs2_u, next_pc):
        self.regs.write(decoded.rd, u32(decoded.imm))
        return Continue(next_pc)

    def _handle_auipc(self, decoded, _arg, _rs1_u, _rs2_u, next_pc):
        self.regs.write(decoded.rd, u32(self.pc + decoded.imm))
        return Continue(next_pc)

    def _trace(self, pc, decoded, mnemonic, outcome, rs1_u):
        line = f"PC=0x{pc:08x} INSN=0x{decoded.word:08x} {mnemonic or '???':<5}"
        if isinstance(outcome, Halt):
            line += " HALT"
        elif isinstance(outcome, Illegal):
            line += " ILLEGAL"
        elif mnemonic == "sw":
            addr = u32(rs1_u + decoded.imm)
            line += f" mem[0x{addr:08x}] = 0x{self.regs.read(decoded.rs2):08x}"
        elif mnemonic in self._WRITES_RD:
            line += f" x{decoded.rd} = 0x{self.regs.read(decoded.rd):08x}"
        if isinstance(outcome, Continue) and outcome.next_pc != u32(pc + 4):
            line += f" -> PC=0x{outcome.next_pc:08x}"
        logger.info("%s", line)

    def execute(self):
        pc = self.pc
        decoded = decode(self.fetch())
        self.last_instr = decoded.word
        rs1_u = self.regs.read(decoded.rs1)
        rs2_u = self.regs.read(decoded.rs2)

        entry = self.lookup(decoded)
        if entry is None:
            mnemonic = None
            outcome = Illegal(pc, decoded.word)
        else:
            mnemonic, handler_name, arg = entry
            handler = getattr(self, handler_name)
            outcome = handler(decoded, arg, rs1_u, rs2_u, u32(pc + 4))

        if self.config.trace:
            self._trace(pc, decoded, mnemonic, outcome, rs1_u)
        if isinstance(outcome, Continue):
            self.pc = outcome.next_pc
        return outcome
