from enum import Enum

from bitfield import s32, u32


class AluOp(Enum):
    ADD = "add"
    SUB = "sub"
    AND = "and"
    OR = "or"
    XOR = "xor"
    SLL = "sll"
    SRL = "srl"
    SRA = "sra"


def apply(op, a, b):
    """Compute op(a, b) on 32-bit operands; the result is always a u32."""
    a = u32(a)
    b = u32(b)
    shamt = b & 0x1f
    if op is AluOp.ADD:
        return u32(a + b)
    if op is AluOp.SUB:
        return u32(a - b)
    if op is AluOp.AND:
        return a & b
    if op is AluOp.OR:
        return a | b
    if op is AluOp.XOR:
        return a ^ b
    if op is AluOp.SLL:
        return u32(a << shamt)
    if op is AluOp.SRL:
        return a >> shamt
    if op is AluOp.SRA:
        return u32(s32(a) >> shamt)
    raise ValueError(f"Unknown ALU op: {op!r}")
