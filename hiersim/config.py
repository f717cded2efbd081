from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict
from pathlib import Path
import yaml

from .utils.logging import get_logger

logger = get_logger(__name__)

LEVEL_NAMES = ("icache", "dcache", "l2cache")


class ConfigError(ValueError):
    """Raised when a cache hierarchy configuration cannot be built."""


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def log2_exact(n: int, what: str = "value") -> int:
    """log2 of an exact power of two. Anything else is a configuration error."""
    if not is_power_of_two(n):
        raise ConfigError(f"{what} must be a power of two, got {n}.")
    return n.bit_length() - 1


def require_int(value: Any, what: str) -> int:
    # bool is an int subclass, but 'true' is never a valid size or latency
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{what} must be an integer, got {value!r}.")
    return value


def require_bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{what} must be true or false, got {value!r}.")
    return value


@dataclass(frozen=True)
class LevelConfig:
    """Geometry and timing of a single cache level. sets == 0 disables the level."""
    sets: int = 0
    associativity: int = 0
    hit_time: int = 0

    @property
    def enabled(self) -> bool:
        return self.sets != 0

    def validate(self, name: str = "cache"):
        for f in fields(self):
            require_int(getattr(self, f.name), f"{name} {f.name}")
        if self.sets < 0:
            raise ConfigError(f"{name}: number of sets cannot be negative ({self.sets}).")
        if not self.enabled:
            return
        if not is_power_of_two(self.sets):
            raise ConfigError(f"{name}: number of sets must be a power of two, got {self.sets}.")
        if self.associativity <= 0:
            raise ConfigError(f"{name}: associativity must be positive when the level is enabled.")
        if self.hit_time <= 0:
            raise ConfigError(f"{name}: hit time must be positive, got {self.hit_time}.")

    @classmethod
    def parse(cls, value: Any) -> LevelConfig:
        """Builds a LevelConfig from 'sets:assoc:hit_time', a mapping, or a LevelConfig."""
        if isinstance(value, LevelConfig):
            return value
        if isinstance(value, dict):
            known = {f.name for f in fields(cls)}
            unknown = set(value) - known
            if unknown:
                raise ConfigError(f"Unknown cache level keys: {', '.join(sorted(unknown))}")
            return cls(**{k: require_int(v, f"Cache level {k}") for k, v in value.items()})
        if isinstance(value, str):
            parts = value.split(":")
            if len(parts) != 3:
                raise ConfigError(f"Cache level must be given as sets:assoc:hit_time, got '{value}'.")
            try:
                sets, assoc, hit_time = (int(p, 0) for p in parts)
            except ValueError as e:
                raise ConfigError(f"Cache level must be given as sets:assoc:hit_time, got '{value}'.") from e
            return cls(sets, assoc, hit_time)
        # Unquoted a:b:c in YAML 1.1 loads as a base-60 integer
        raise ConfigError(f"Cannot build a cache level from {value!r} (quote 'sets:assoc:hit_time' in YAML).")

    def __str__(self) -> str:
        return f"{self.sets}:{self.associativity}:{self.hit_time}"


@dataclass
class SimConfig:
    """Cache hierarchy simulator configuration."""
    # Cache levels (all disabled by default, like the original command line)
    icache: LevelConfig = field(default_factory=LevelConfig)
    dcache: LevelConfig = field(default_factory=LevelConfig)
    l2cache: LevelConfig = field(default_factory=LevelConfig)
    inclusive: bool = False

    # Shared parameters
    block_size: int = 64
    memory_latency: int = 100

    # Driver
    trace: str = ""
    config_file: str = ""
    report_dir: str = "out/default_run"
    verbose: bool = False

    def __post_init__(self):
        for name in LEVEL_NAMES:
            setattr(self, name, LevelConfig.parse(getattr(self, name)))
        self.validate()

    def validate(self):
        """Rejects any configuration the hierarchy cannot be built from."""
        require_int(self.block_size, "Block size")
        require_int(self.memory_latency, "Memory latency")
        require_bool(self.inclusive, "inclusive")
        require_bool(self.verbose, "verbose")
        for name in LEVEL_NAMES:
            if not isinstance(getattr(self, name), LevelConfig):
                raise ConfigError(f"{name} must be a cache level, got {getattr(self, name)!r}.")
        log2_exact(self.block_size, "Block size")
        if self.memory_latency <= 0:
            raise ConfigError(f"Memory latency must be positive, got {self.memory_latency}.")
        for name in LEVEL_NAMES:
            getattr(self, name).validate(name)

    def levels(self) -> Dict[str, LevelConfig]:
        return {name: getattr(self, name) for name in LEVEL_NAMES}

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Derived geometry of every level, for display."""
        offset_bits = log2_exact(self.block_size, "Block size")
        out = {}
        for name, level in self.levels().items():
            if not level.enabled:
                out[name] = {"enabled": False}
                continue
            index_bits = log2_exact(level.sets, f"{name} sets")
            out[name] = {
                "enabled": True,
                "sets": level.sets,
                "associativity": level.associativity,
                "hit_time": level.hit_time,
                "capacity_bytes": level.sets * level.associativity * self.block_size,
                "offset_bits": offset_bits,
                "index_bits": index_bits,
                "tag_bits": 32 - index_bits - offset_bits,
            }
        return out

    def to_dict(self) -> Dict[str, Any]:
        d = {f.name: getattr(self, f.name) for f in fields(self)}
        for name in LEVEL_NAMES:
            d[name] = str(d[name])
        return d

    def update_from_yaml(self, yaml_path: str):
        """Updates config fields from a YAML file."""
        with open(yaml_path, 'r') as f:
            yaml_config = yaml.safe_load(f) or {}
        if not isinstance(yaml_config, dict):
            raise ConfigError(f"{yaml_path}: top level must be a mapping.")
        for key, value in yaml_config.items():
            if key in LEVEL_NAMES:
                value = LevelConfig.parse(value)
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                logger.warning("Ignoring unknown config key '%s' in %s", key, yaml_path)

    @classmethod
    def from_args(cls, args) -> SimConfig:
        """Factory method to create a SimConfig from parsed argparse arguments."""
        config = cls()

        # 1. Load from YAML config file if provided
        if getattr(args, 'config', None):
            config.config_file = args.config
            if not Path(config.config_file).exists():
                raise ConfigError(f"Config file {config.config_file} not found.")
            config.update_from_yaml(config.config_file)

        # 2. Override with command-line arguments
        for key, value in vars(args).items():
            if value is None or not hasattr(config, key) or key == 'config':
                continue
            if key in LEVEL_NAMES:
                value = LevelConfig.parse(value)
            setattr(config, key, value)

        config.validate()
        return config
