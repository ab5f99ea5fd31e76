MASK32 = 0xffffffff


def extract_bits(word, hi, lo):
    """Return bits hi..lo (inclusive, 0 = LSB) of a 32-bit word as an unsigned int."""
    assert 0 <= lo <= hi <= 31, f"bad bit range [{hi}:{lo}]"
    width = hi - lo + 1
    return (word >> lo) & ((1 << width) - 1)


def sign_extend(value, width):
    """Interpret the low `width` bits of value as two's complement."""
    assert 1 <= width <= 32, f"bad sign-extend width {width}"
    value &= (1 << width) - 1
    return value - (1 << width) if (value & (1 << (width - 1))) else value


def u32(value):
    return value & MASK32


def s32(value):
    return sign_extend(value, 32)
