import logging

logger = logging.getLogger(__name__)

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


class HexFormatError(ValueError):
    def __init__(self, lineno, text, reason):
        super().__init__(f"line {lineno}: {reason}: {text!r}")
        self.lineno = lineno
        self.text = text


def parse_hex_lines(lines):
    """Parse a hex listing, one 32-bit word per line, into a list of ints.

    Blank lines are skipped. Each word is at most 8 hex digits, without a
    0x prefix; shorter words are zero-padded on the left.
    """
    words = []
    for lineno, raw in enumerate(lines, 1):
        text = raw.strip()
        if not text:
            continue
        if len(text) > 8:
            raise HexFormatError(lineno, text, "invalid hex word length")
        if not set(text) <= _HEX_DIGITS:
            raise HexFormatError(lineno, text, "invalid hex number")
        words.append(int(text, 16))
    return words


def load_words(memory, words, base_index=0):
    for offset, word in enumerate(words):
        memory.write_word_at_index(base_index + offset, word)
    return len(words)


def load_hex_program(memory, path):
    with open(path, "r") as f:
        words = parse_hex_lines(f)
    count = load_words(memory, words)
    logger.info("Loaded %d words from %s into %s", count, path, memory.name)
    return count
