class OutOfRangeError(IndexError):
    def __init__(self, name, addr, size):
        super().__init__(f"{name} access out of range at 0x{addr:08x} (size {size})")
        self.name = name
        self.addr = addr
        self.size = size


class BoundedMemory:
    def __init__(self, size, name="mem"):
        if size <= 0:
            raise ValueError(f"Invalid memory size for {name}: {size}")
        self.size = size
        self.name = name
        self.data = bytearray(size)

    def in_range(self, addr, length=1):
        return addr >= 0 and addr + length <= self.size

    def _check(self, addr, length):
        if not self.in_range(addr, length):
            raise OutOfRangeError(self.name, addr, length)

    def load_u32(self, addr):
        self._check(addr, 4)
        return int.from_bytes(self.data[addr:addr + 4], "little")

    def store_u32(self, addr, value):
        self._check(addr, 4)
        self.data[addr:addr + 4] = (value & 0xffffffff).to_bytes(4, "little")

    def write_word_at_index(self, index, value):
        self.store_u32(index * 4, value)

    def read_bytes(self, addr, size):
        self._check(addr, size)
        return bytes(self.data[addr:addr + size])

    def read_words(self, addr, count):
        # Window stops at the end of the store instead of raising.
        words = []
        for i in range(count):
            cur = addr + i * 4
            if not self.in_range(cur, 4):
                break
            words.append((cur, self.load_u32(cur)))
        return words

    def __len__(self):
        return self.size

    def __repr__(self):
        return f"BoundedMemory(name={self.name!r}, size=0x{self.size:x})"
