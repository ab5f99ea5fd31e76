ABI_NAMES = [
    "zero", "ra", "sp", "gp", "tp", "t0", "t1", "t2", "fp", "s1",
    "a0", "a1", "a2", "a3", "a4", "a5", "a6", "a7",
    "s2", "s3", "s4", "s5", "s6", "s7", "s8", "s9", "s10", "s11",
    "t3", "t4", "t5", "t6",
]

NUM_REGS = 32


class InvalidRegisterError(IndexError):
    def __init__(self, index):
        super().__init__(f"bad register index {index!r}")
        self.index = index


class RegisterFile:
    """32 general purpose registers; x0 is hardwired to zero."""

    def __init__(self):
        self._regs = [0] * NUM_REGS

    def _check(self, index):
        if not isinstance(index, int) or not 0 <= index < NUM_REGS:
            raise InvalidRegisterError(index)

    def read(self, index):
        self._check(index)
        return self._regs[index]

    def write(self, index, value):
        self._check(index)
        if index == 0:
            return
        self._regs[index] = value & 0xffffffff

    def reset(self):
        self._regs = [0] * NUM_REGS

    def snapshot(self):
        return tuple(self._regs)

    def __getitem__(self, index):
        return self.read(index)

    def __len__(self):
        return NUM_REGS

    def __repr__(self):
        nonzero = {f"x{i}": f"0x{v:08x}" for i, v in enumerate(self._regs) if v}
        return f"RegisterFile({nonzero})"


def format_regs(values, per_row=4):
    lines = []
    for row in range(0, len(values), per_row):
        cells = []
        for i in range(row, min(row + per_row, len(values))):
            cells.append(f"x{i:<2} ({ABI_NAMES[i]:>4}) = 0x{values[i]:08x}")
        lines.append("  ".join(cells))
    return "\n".join(lines)
