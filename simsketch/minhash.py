# simsketch/minhash.py
"""
MinHash signatures for Jaccard-similarity estimation.

A signature holds, for each function of a HashFamily, the minimum hash
value over the members of a shingle set. The fraction of positions two
signatures agree on is an unbiased estimate of the Jaccard similarity of
the underlying sets; its variance shrinks as num_hashes grows.
"""
from __future__ import annotations

import logging
from collections import abc
from typing import Any, Iterable, List, Optional, Sequence

import numpy as np

from .batch import fold_valid, is_str
from .config import MinHashConfig, ShingleConfig
from .errors import ConfigurationError, InputValidationError
from .hashing import DEFAULT_SEED, MAX_HASH, HashFamily, token_hash64
from .shingles import extract_shingles

logger = logging.getLogger(__name__)


def _require_signature(sig: Any, argument: str) -> Sequence[int]:
    if isinstance(sig, np.ndarray):
        if sig.ndim != 1 or not np.issubdtype(sig.dtype, np.integer):
            raise InputValidationError(f"{argument} must be a 1-D integer array", argument=argument)
        return [int(v) for v in sig]
    if isinstance(sig, (str, bytes)) or not isinstance(sig, abc.Sequence):
        raise InputValidationError(f"{argument} must be a sequence of integers", argument=argument)
    return sig


def signature_agreement(sig1: Sequence[int], sig2: Sequence[int]) -> float:
    """
    Fraction of positions where two signatures hold the same value.

    Raises InputValidationError when the lengths differ.
    """
    sig1 = _require_signature(sig1, "sig1")
    sig2 = _require_signature(sig2, "sig2")
    if len(sig1) != len(sig2):
        raise InputValidationError(
            f"Signature length mismatch: {len(sig1)} != {len(sig2)}",
            argument="sig2",
            details={"length_a": len(sig1), "length_b": len(sig2)},
        )
    if not sig1:
        return 0.0
    matches = sum(1 for a, b in zip(sig1, sig2) if a == b)
    return matches / len(sig1)


class MinHasher:
    """
    MinHash signature generator over a fixed, injected HashFamily.

    Stateless after construction; safe to share across threads.
    """
    __slots__ = ("family", "shingles")

    def __init__(
        self,
        num_hashes: Optional[int] = None,
        seed: int = DEFAULT_SEED,
        *,
        family: Optional[HashFamily] = None,
        shingles: Optional[ShingleConfig] = None,
    ) -> None:
        if family is None:
            family = HashFamily.generate(128 if num_hashes is None else num_hashes, seed)
        elif num_hashes is not None and len(family) != num_hashes:
            raise ConfigurationError(
                f"num_hashes {num_hashes} does not match hash family size {len(family)}",
                option="num_hashes", value=num_hashes,
            )
        self.family = family
        self.shingles = shingles or ShingleConfig()
        logger.debug("MinHasher created (num_hashes=%d, seed=%#x)", len(family), family.seed)

    @classmethod
    def from_config(cls, config: MinHashConfig) -> "MinHasher":
        return cls(config.num_hashes, config.seed, shingles=config.shingles)

    @property
    def num_hashes(self) -> int:
        return len(self.family)

    def is_compatible(self, other: "MinHasher") -> bool:
        """True when signatures from *other* can be compared with ours."""
        return self.family == other.family

    # --- signatures ---

    def compute_signature(self, shingles: Iterable[str]) -> List[int]:
        """
        Signature of a shingle set.

        Non-string members are skipped. An empty set yields the all-MAX_HASH
        vector, so two empty sets compare as identical.
        """
        if isinstance(shingles, (str, bytes)) or not isinstance(shingles, abc.Iterable):
            raise InputValidationError(
                "Shingles must be a collection of strings",
                argument="shingles",
            )

        folded = fold_valid(shingles, is_str, context="MinHasher.compute_signature")

        mins = [MAX_HASH] * self.num_hashes
        for shingle in set(folded.values):
            hashed = self.family.apply(token_hash64(shingle))
            mins = [h if h < m else m for h, m in zip(hashed, mins)]
        return mins

    def compute_text_signature(self, text: str) -> List[int]:
        return self.compute_signature(extract_shingles(text, self.shingles))

    def compute_text_signatures(self, texts: Sequence[str]) -> List[List[int]]:
        """Signatures for several texts; any non-string fails the whole call."""
        if isinstance(texts, str) or not isinstance(texts, abc.Sequence):
            raise InputValidationError("Input must be a list of strings", argument="texts")
        for i, text in enumerate(texts):
            if not isinstance(text, str):
                raise InputValidationError(f"All inputs must be strings (index {i})", argument="texts")
        return [self.compute_text_signature(t) for t in texts]

    # --- similarity ---

    def estimate_similarity(self, sig1: Sequence[int], sig2: Sequence[int]) -> float:
        """Estimated Jaccard similarity from two signatures of this family."""
        return signature_agreement(sig1, sig2)

    @staticmethod
    def compute_jaccard_similarity(set1: Iterable[Any], set2: Iterable[Any]) -> float:
        """
        Exact |A & B| / |A | B|. Two empty sets are identical (1.0).
        """
        for arg, value in (("set1", set1), ("set2", set2)):
            if isinstance(value, (str, bytes)) or not isinstance(value, abc.Iterable):
                raise InputValidationError(f"{arg} must be a collection", argument=arg)
        a = set(set1)
        b = set(set2)
        union = a | b
        if not union:
            return 1.0
        return len(a & b) / len(union)
