from enum import Enum

from bitfield import extract_bits, sign_extend

OPCODE_OP = 0b0110011
OPCODE_OP_IMM = 0b0010011
OPCODE_LOAD = 0b0000011
OPCODE_STORE = 0b0100011
OPCODE_BRANCH = 0b1100011
OPCODE_JAL = 0b1101111
OPCODE_JALR = 0b1100111
OPCODE_LUI = 0b0110111
OPCODE_AUIPC = 0b0010111


class Format(Enum):
    R = "R"
    I = "I"  # noqa: E741
    S = "S"
    B = "B"
    U = "U"
    J = "J"


FORMAT_BY_OPCODE = {
    OPCODE_OP: Format.R,
    OPCODE_OP_IMM: Format.I,
    OPCODE_LOAD: Format.I,
    OPCODE_JALR: Format.I,
    OPCODE_STORE: Format.S,
    OPCODE_BRANCH: Format.B,
    OPCODE_LUI: Format.U,
    OPCODE_AUIPC: Format.U,
    OPCODE_JAL: Format.J,
}


def imm_i(word):
    return sign_extend(extract_bits(word, 31, 20), 12)


def imm_s(word):
    return sign_extend((extract_bits(word, 31, 25) << 5) | extract_bits(word, 11, 7), 12)


def imm_b(word):
    return sign_extend(
        (extract_bits(word, 31, 31) << 12)
        | (extract_bits(word, 7, 7) << 11)
        | (extract_bits(word, 30, 25) << 5)
        | (extract_bits(word, 11, 8) << 1),
        13,
    )


def imm_u(word):
    return sign_extend(extract_bits(word, 31, 12) << 12, 32)


def imm_j(word):
    return sign_extend(
        (extract_bits(word, 31, 31) << 20)
        | (extract_bits(word, 19, 12) << 12)
        | (extract_bits(word, 20, 20) << 11)
        | (extract_bits(word, 30, 21) << 1),
        21,
    )


_IMMEDIATE_BUILDERS = {
    Format.R: lambda word: 0,
    Format.I: imm_i,
    Format.S: imm_s,
    Format.B: imm_b,
    Format.U: imm_u,
    Format.J: imm_j,
}


class DecodedInstruction:
    __slots__ = (
        "word",
        "opcode",
        "rd",
        "funct3",
        "rs1",
        "rs2",
        "funct7",
        "fmt",
        "imm",
    )

    def __init__(self, word, opcode, rd, funct3, rs1, rs2, funct7, fmt, imm):
        self.word = word
        self.opcode = opcode
        self.rd = rd
        self.funct3 = funct3
        self.rs1 = rs1
        self.rs2 = rs2
        self.funct7 = funct7
        self.fmt = fmt
        self.imm = imm

    def __repr__(self):
        fmt = self.fmt.value if self.fmt else "?"
        return (
            f"DecodedInstruction(word=0x{self.word:08x}, fmt={fmt}, opcode=0x{self.opcode:02x}, "
            f"rd={self.rd}, funct3={self.funct3}, rs1={self.rs1}, rs2={self.rs2}, "
            f"funct7=0x{self.funct7:02x}, imm={self.imm})"
        )


def decode(word):
    """Split a 32-bit instruction word into its fields.

    The immediate is built for the format implied by the opcode and is a
    signed Python int; opcodes outside the supported subset decode with
    fmt=None and imm=0. Legality is left to the dispatcher.
    """
    word &= 0xffffffff
    opcode = extract_bits(word, 6, 0)
    fmt = FORMAT_BY_OPCODE.get(opcode)
    imm = _IMMEDIATE_BUILDERS[fmt](word) if fmt is not None else 0
    return DecodedInstruction(
        word,
        opcode,
        extract_bits(word, 11, 7),
        extract_bits(word, 14, 12),
        extract_bits(word, 19, 15),
        extract_bits(word, 24, 20),
        extract_bits(word, 31, 25),
        fmt,
        imm,
    )
