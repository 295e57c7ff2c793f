# simsketch/hashing.py
"""
Deterministic hash primitives shared by the sketches.

- HashFamily: frozen table of (a, b) coefficients for universal hashing
  h_i(x) = (a_i * x + b_i) mod (2^61 - 1), generated once from a seed.
- token_hash64: stable 64-bit hash of a token (blake2b), the "x" above.
- fnv1a_64: feature hash used by SimHash bit voting.
- band_key: short hex digest over a band slice of a MinHash signature.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .errors import ConfigurationError

MERSENNE_PRIME = (1 << 61) - 1
MASK_64 = 0xFFFFFFFFFFFFFFFF

# Empty-set sentinel ("infinity"); above every value a HashFamily can produce
MAX_HASH = MASK_64

DEFAULT_SEED = 0x5151_1EAF

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3


class SplitMix64:
    """
    Small deterministic PRNG for coefficient generation.
    """
    __slots__ = ("state",)

    def __init__(self, seed: int) -> None:
        self.state = seed & MASK_64

    def next(self) -> int:
        z = (self.state + 0x9E3779B97F4A7C15) & MASK_64
        self.state = z
        z = (z ^ (z >> 30)) * 0xBF58476D1CE4E5B9 & MASK_64
        z = (z ^ (z >> 27)) * 0x94D049BB133111EB & MASK_64
        z = z ^ (z >> 31)
        return z


@dataclass(frozen=True)
class HashFamily:
    """
    Immutable family of seeded hash functions for MinHash.

    Two signatures are only comparable when produced by equal families.
    """
    seed: int
    coefficients: Tuple[Tuple[int, int], ...]

    @classmethod
    def generate(cls, num_hashes: int, seed: int = DEFAULT_SEED) -> "HashFamily":
        if not isinstance(num_hashes, int) or isinstance(num_hashes, bool) or num_hashes < 1:
            raise ConfigurationError(
                f"num_hashes must be a positive integer, got {num_hashes!r}",
                option="num_hashes",
                value=num_hashes,
            )
        rng = SplitMix64(seed)
        coeffs: List[Tuple[int, int]] = []
        for _ in range(num_hashes):
            # a must be non-zero mod p
            a = rng.next() % (MERSENNE_PRIME - 1) + 1
            b = rng.next() % MERSENNE_PRIME
            coeffs.append((a, b))
        return cls(seed=seed, coefficients=tuple(coeffs))

    def __len__(self) -> int:
        return len(self.coefficients)

    def apply(self, value: int) -> List[int]:
        """Hash a 64-bit token value with every function of the family."""
        return [(a * value + b) % MERSENNE_PRIME for a, b in self.coefficients]


def token_hash64(token: str) -> int:
    """Stable 64-bit hash of a token string."""
    digest = hashlib.blake2b(token.encode("utf-8", errors="surrogatepass"), digest_size=8).digest()
    return int.from_bytes(digest, "little")


def fnv1a_64(text: str) -> int:
    """FNV-1a over the UTF-8 bytes of *text*, 64-bit."""
    h = _FNV64_OFFSET
    for byte in text.encode("utf-8", errors="surrogatepass"):
        h ^= byte
        h = (h * _FNV64_PRIME) & MASK_64
    return h


def band_key(rows: Sequence[int]) -> str:
    """
    Stable, concise key for a band slice of a signature.
    """
    m = hashlib.blake2b(digest_size=8)
    for r in rows:
        m.update(r.to_bytes(8, "little"))
    return m.hexdigest()
