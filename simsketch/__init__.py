"""simsketch - MinHash, LSH and SimHash similarity sketches for text."""

__version__ = "0.1.0"

from .config import LSHConfig, MinHashConfig, ShingleConfig, SimHashConfig, SketchConfig
from .errors import ConfigurationError, InputValidationError, SketchError
from .hashing import HashFamily
from .lsh import LSHBuckets
from .minhash import MinHasher
from .simhash import SimHasher

__all__ = [
    "MinHasher",
    "LSHBuckets",
    "SimHasher",
    "HashFamily",
    "ShingleConfig",
    "MinHashConfig",
    "LSHConfig",
    "SimHashConfig",
    "SketchConfig",
    "SketchError",
    "ConfigurationError",
    "InputValidationError",
    "__version__",
]
