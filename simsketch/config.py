"""
Configuration for the similarity sketches.

Each component has a small dataclass validated on construction; SketchConfig
bundles them for YAML files and environment overrides. Invalid values raise
ConfigurationError and are never clamped into range.
"""

import logging
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax

from .errors import ConfigurationError
from .hashing import DEFAULT_SEED

logger = logging.getLogger(__name__)


def _require_int(option: str, value: Any, minimum: int, maximum: Optional[int] = None) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigurationError(
            f"{option} must be an integer, got {value!r}", option=option, value=value
        )
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f"between {minimum} and {maximum}" if maximum is not None else f">= {minimum}"
        raise ConfigurationError(
            f"{option} must be {bounds}, got {value}", option=option, value=value
        )


@dataclass(frozen=True)
class ShingleConfig:
    """How text is turned into shingles/features."""

    use_word_shingles: bool = True
    word_shingle_size: int = 2
    char_shingle_size: int = 3
    normalize: bool = True  # Unicode NFKC
    lowercase: bool = True

    def __post_init__(self):
        _require_int("word_shingle_size", self.word_shingle_size, 1)
        _require_int("char_shingle_size", self.char_shingle_size, 1)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ShingleConfig":
        return cls(**(data or {}))


@dataclass(frozen=True)
class MinHashConfig:
    num_hashes: int = 128
    seed: int = DEFAULT_SEED
    shingles: ShingleConfig = field(default_factory=ShingleConfig)

    def __post_init__(self):
        _require_int("num_hashes", self.num_hashes, 1)
        if not isinstance(self.seed, int) or isinstance(self.seed, bool):
            raise ConfigurationError(
                f"seed must be an integer, got {self.seed!r}", option="seed", value=self.seed
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MinHashConfig":
        data = dict(data or {})
        shingles = ShingleConfig.from_dict(data.pop("shingles", {}))
        return cls(shingles=shingles, **data)


@dataclass(frozen=True)
class LSHConfig:
    """
    Banding parameters.

    rows_per_band is derived as signature_length // num_bands and must be
    at least 1.
    """

    num_bands: int = 16
    signature_length: int = 128
    threshold: float = 0.5

    def __post_init__(self):
        _require_int("num_bands", self.num_bands, 1)
        _require_int("signature_length", self.signature_length, 1)
        if isinstance(self.threshold, bool) or not isinstance(self.threshold, (int, float)):
            raise ConfigurationError(
                f"threshold must be a number, got {self.threshold!r}",
                option="threshold", value=self.threshold,
            )
        if not (0.0 <= self.threshold <= 1.0):
            raise ConfigurationError(
                f"threshold must be between 0 and 1, got {self.threshold}",
                option="threshold", value=self.threshold,
            )
        if self.signature_length // self.num_bands < 1:
            raise ConfigurationError(
                "Number of bands too large for signature length. Need at least 1 row per band.",
                option="num_bands", value=self.num_bands,
                details={"signature_length": self.signature_length},
            )

    @property
    def rows_per_band(self) -> int:
        return self.signature_length // self.num_bands

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LSHConfig":
        return cls(**(data or {}))


@dataclass(frozen=True)
class SimHashConfig:
    hash_bits: int = 64
    shingles: ShingleConfig = field(default_factory=ShingleConfig)

    def __post_init__(self):
        if not isinstance(self.hash_bits, int) or isinstance(self.hash_bits, bool) \
                or not (1 <= self.hash_bits <= 64):
            raise ConfigurationError(
                f"Hash bits must be between 1 and 64, got {self.hash_bits!r}",
                option="hash_bits", value=self.hash_bits,
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimHashConfig":
        data = dict(data or {})
        shingles = ShingleConfig.from_dict(data.pop("shingles", {}))
        return cls(shingles=shingles, **data)


@dataclass(frozen=True)
class SketchConfig:
    """All sketch settings, as stored in ``.simsketch.yml``."""

    minhash: MinHashConfig = field(default_factory=MinHashConfig)
    lsh: LSHConfig = field(default_factory=LSHConfig)
    simhash: SimHashConfig = field(default_factory=SimHashConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SketchConfig":
        data = data or {}
        unknown = set(data) - {"minhash", "lsh", "simhash"}
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration sections: {', '.join(sorted(unknown))}",
                option="sections", value=sorted(unknown),
            )
        try:
            return cls(
                minhash=MinHashConfig.from_dict(data.get("minhash", {})),
                lsh=LSHConfig.from_dict(data.get("lsh", {})),
                simhash=SimHashConfig.from_dict(data.get("simhash", {})),
            )
        except TypeError as e:
            # unexpected keyword in one of the sections
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def save_to_file(self, file_path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def load_from_file(cls, file_path: Union[str, Path]) -> "SketchConfig":
        """Load configuration from YAML file."""
        file_path = Path(file_path)

        if not file_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(file_path, "r") as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Look for config in current directory, then home directory."""
        current_dir_config = Path(ConfigManager.DEFAULT_CONFIG_FILE)
        if current_dir_config.exists():
            return current_dir_config
        return Path.home() / ConfigManager.DEFAULT_CONFIG_FILE

    @classmethod
    def load_or_default(cls, config_path: Optional[Union[str, Path]] = None) -> "SketchConfig":
        """
        Load configuration from file or return default if not found.

        Args:
            config_path: Optional path to configuration file

        Returns:
            SketchConfig instance
        """
        if config_path:
            config_path = Path(config_path)
            if config_path.exists():
                return cls.load_from_file(config_path)
        else:
            default_path = cls.get_default_config_path()
            if default_path.exists():
                return cls.load_from_file(default_path)

        return cls()


class ConfigManager:
    """Loads, saves and displays a SketchConfig with env overrides."""

    DEFAULT_CONFIG_FILE = ".simsketch.yml"
    ENV_PREFIX = "SIMSKETCH_"

    # env suffix -> (section, field, parser)
    ENV_OVERRIDES = {
        "NUM_HASHES": ("minhash", "num_hashes", int),
        "SEED": ("minhash", "seed", lambda v: int(v, 0)),
        "NUM_BANDS": ("lsh", "num_bands", int),
        "SIGNATURE_LENGTH": ("lsh", "signature_length", int),
        "THRESHOLD": ("lsh", "threshold", float),
        "HASH_BITS": ("simhash", "hash_bits", int),
    }

    def __init__(self, config_path: Optional[Path] = None, console: Optional[Console] = None):
        self.console = console or Console(stderr=True)
        self.config_path = Path(config_path) if config_path else Path(self.DEFAULT_CONFIG_FILE)
        self._config: Optional[SketchConfig] = None

    def load(self) -> SketchConfig:
        """
        Load configuration from file or create default, then apply
        environment overrides.
        """
        if self._config is not None:
            return self._config

        if self.config_path.exists():
            self._config = SketchConfig.load_from_file(self.config_path)
            logger.debug("Loaded config from %s", self.config_path)
        else:
            self._config = SketchConfig()
            logger.debug("Using default configuration")

        self._config = self._apply_env_overrides(self._config)
        return self._config

    def save(self, config: Optional[SketchConfig] = None) -> Path:
        """Save configuration to the managed path and return it."""
        config = config or self._config or SketchConfig()
        config.save_to_file(self.config_path)
        self._config = config
        logger.info("Saved config to %s", self.config_path)
        return self.config_path

    def display(self, config: Optional[SketchConfig] = None) -> None:
        """Display configuration in a formatted panel."""
        config = config or self.load()
        yaml_str = yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False)
        syntax = Syntax(yaml_str, "yaml", theme="monokai", line_numbers=False)
        self.console.print(Panel(syntax, title="[bold cyan]simsketch configuration[/bold cyan]",
                                 border_style="cyan"))

    def _apply_env_overrides(self, config: SketchConfig) -> SketchConfig:
        sections = {
            "minhash": config.minhash,
            "lsh": config.lsh,
            "simhash": config.simhash,
        }
        for suffix, (section, name, parse) in self.ENV_OVERRIDES.items():
            raw = os.getenv(f"{self.ENV_PREFIX}{suffix}")
            if raw is None:
                continue
            try:
                value = parse(raw)
            except ValueError:
                logger.warning("Ignoring invalid env value %s%s=%r", self.ENV_PREFIX, suffix, raw)
                continue
            # replace() re-runs validation
            sections[section] = replace(sections[section], **{name: value})
            logger.debug("Applied env override: %s.%s=%r", section, name, value)

        return SketchConfig(**sections)
