import json
import logging
from dataclasses import asdict, dataclass, fields

logger = logging.getLogger(__name__)

DEFAULT_MEM_SIZE = 1 << 20
DEFAULT_MAX_STEPS = 5_000_000


def _parse_int(value, default=0):
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, str):
        return int(value.strip(), 0)
    return int(value)


def _parse_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Invalid boolean value: {value!r}")
    return bool(value)


@dataclass(frozen=True)
class SimConfig:
    imem_size: int = DEFAULT_MEM_SIZE
    dmem_size: int = DEFAULT_MEM_SIZE
    trace: bool = False
    warn_unaligned: bool = True
    max_steps: int = DEFAULT_MAX_STEPS

    def __post_init__(self):
        if self.imem_size <= 0:
            raise ValueError(f"Invalid instruction memory size: {self.imem_size}")
        if self.dmem_size <= 0:
            raise ValueError(f"Invalid data memory size: {self.dmem_size}")
        if self.max_steps < 0:
            raise ValueError(f"Invalid step limit: {self.max_steps}")

    @classmethod
    def from_dict(cls, data):
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.warning("Ignoring unknown config key %r", key)
        defaults = cls()
        return cls(
            imem_size=_parse_int(data.get("imem_size"), defaults.imem_size),
            dmem_size=_parse_int(data.get("dmem_size"), defaults.dmem_size),
            trace=_parse_bool(data.get("trace"), defaults.trace),
            warn_unaligned=_parse_bool(data.get("warn_unaligned"), defaults.warn_unaligned),
            max_steps=_parse_int(data.get("max_steps"), defaults.max_steps),
        )

    def to_dict(self):
        return asdict(self)


def load_config(filename):
    """Load a SimConfig from a JSON object file."""
    with open(filename, "r") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {filename} must contain a JSON object")
    config = SimConfig.from_dict(data)
    logger.info("Loaded config from %s: %s", filename, config)
    return config
