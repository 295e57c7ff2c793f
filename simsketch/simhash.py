"""
SimHash fingerprints for near-duplicate detection.

A fingerprint is a hash_bits-wide unsigned integer built by weighted bit
voting: every feature adds its weight to the counter of each bit set in
its 64-bit FNV-1a hash and subtracts it from every other counter. Bits
whose counter ends >= 0 are set (ties resolve to 1). Similar texts give
fingerprints at small Hamming distance.

Search and clustering are linear scans; the fingerprint is small enough
that no index is kept.
"""
from __future__ import annotations

import logging
import math
import numbers
import re
from collections import abc
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .batch import fold_valid, is_int, is_str
from .config import ShingleConfig, SimHashConfig
from .errors import InputValidationError
from .hashing import fnv1a_64
from .shingles import feature_counts

logger = logging.getLogger(__name__)

_BINARY_RE = re.compile(r"[01]+")
_HEX_RE = re.compile(r"[0-9a-fA-F]+")


@dataclass(frozen=True)
class SimilarMatch:
    hash: int
    distance: int
    similarity: float
    index: int


@dataclass(frozen=True)
class TextMatch:
    text: str
    hash: int
    distance: int
    similarity: float
    index: int


@dataclass
class Cluster:
    """Greedy cluster: the seed text plus every later text near the seed."""
    representative: str
    members: List[str] = field(default_factory=list)
    hashes: List[int] = field(default_factory=list)


@dataclass
class DistanceDistribution:
    total_pairs: int = 0
    distance_distribution: Dict[int, int] = field(default_factory=dict)
    mean_distance: float = 0.0
    median_distance: int = 0
    min_distance: int = 0
    max_distance: int = 0
    hash_bits: int = 64


def _weight_check(entry: Tuple[Any, Any]) -> Optional[str]:
    feature, weight = entry
    if not isinstance(feature, str):
        return f"feature must be str, got {type(feature).__name__}"
    if isinstance(weight, bool) or not isinstance(weight, numbers.Real):
        return f"weight must be a real number, got {type(weight).__name__}"
    try:
        finite = math.isfinite(weight)
    except OverflowError:
        return "weight out of float range"
    if not finite:
        return f"weight must be finite, got {weight!r}"
    return None


class SimHasher:
    """
    Fixed-width SimHash fingerprint generator.

    Immutable after construction; safe to share across threads.
    """

    def __init__(
        self,
        hash_bits: int = 64,
        use_word_shingles: bool = True,
        word_shingle_size: int = 2,
        char_shingle_size: int = 3,
        normalize: bool = True,
        lowercase: bool = True,
    ):
        """
        Args:
            hash_bits: Fingerprint width, 1 to 64
            use_word_shingles: Word n-grams (True) or character n-grams (False)
            word_shingle_size: Size of word n-grams
            char_shingle_size: Size of character n-grams
            normalize: Apply Unicode NFKC normalization
            lowercase: Case-fold before shingling
        """
        shingles = ShingleConfig(
            use_word_shingles=use_word_shingles,
            word_shingle_size=word_shingle_size,
            char_shingle_size=char_shingle_size,
            normalize=normalize,
            lowercase=lowercase,
        )
        self.config = SimHashConfig(hash_bits=hash_bits, shingles=shingles)
        self.hash_bits = hash_bits
        self.bit_mask = (1 << hash_bits) - 1
        self._shifts = np.arange(hash_bits, dtype=np.uint64)
        logger.debug("SimHasher created (hash_bits=%d, word_shingles=%s)", hash_bits, use_word_shingles)

    @classmethod
    def from_config(cls, config: SimHashConfig) -> "SimHasher":
        s = config.shingles
        return cls(
            hash_bits=config.hash_bits,
            use_word_shingles=s.use_word_shingles,
            word_shingle_size=s.word_shingle_size,
            char_shingle_size=s.char_shingle_size,
            normalize=s.normalize,
            lowercase=s.lowercase,
        )

    def _require_hash(self, value: Any, argument: str) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise InputValidationError(f"{argument} must be an integer", argument=argument)
        return value & self.bit_mask

    @staticmethod
    def _require_list(value: Any, argument: str, message: str) -> Sequence[Any]:
        if isinstance(value, (str, bytes)) or not isinstance(value, abc.Sequence):
            raise InputValidationError(message, argument=argument)
        return value

    # ----------------------------
    # Fingerprinting
    # ----------------------------

    def extract_features(self, text: str) -> Dict[str, int]:
        """Feature -> frequency map from word or character n-grams."""
        return feature_counts(text, self.config.shingles)

    def compute_from_features(self, features: Mapping[str, float]) -> int:
        """
        Fingerprint from weighted features.

        Entries with a non-string feature or a non-finite/non-numeric weight
        are skipped. An empty map sets every bit.
        """
        if not isinstance(features, abc.Mapping):
            raise InputValidationError("Features must be a mapping of feature -> weight",
                                       argument="features")

        folded = fold_valid(features.items(), _weight_check, context="SimHasher.compute_from_features")
        entries = folded.values

        hashes = np.array([fnv1a_64(f) for f, _ in entries], dtype=np.uint64)
        weights = np.array([float(w) for _, w in entries], dtype=np.float64)

        # votes[i, bit] is +1 when bit is set in feature i's hash, else -1
        bits = (hashes[:, None] >> self._shifts[None, :]) & np.uint64(1)
        votes = bits.astype(np.int8) * 2 - 1
        counters = weights @ votes if len(entries) else np.zeros(self.hash_bits)

        fingerprint = 0
        for bit in np.flatnonzero(counters >= 0):
            fingerprint |= 1 << int(bit)
        return fingerprint & self.bit_mask

    def compute_from_text(self, text: str) -> int:
        return self.compute_from_features(self.extract_features(text))

    def compute_batch(self, texts: Sequence[str]) -> List[int]:
        """Fingerprints for several texts; any non-string fails the whole call."""
        texts = self._require_list(texts, "texts", "Input must be an array of strings")
        for i, text in enumerate(texts):
            if not isinstance(text, str):
                raise InputValidationError(f"All inputs must be strings (index {i})", argument="texts")
        return [self.compute_from_text(t) for t in texts]

    # ----------------------------
    # Comparison
    # ----------------------------

    def hamming_distance(self, hash1: int, hash2: int) -> int:
        """Number of differing bits within the configured width."""
        a = self._require_hash(hash1, "hash1")
        b = self._require_hash(hash2, "hash2")
        return bin(a ^ b).count("1")

    def similarity(self, hash1: int, hash2: int) -> float:
        return 1 - self.hamming_distance(hash1, hash2) / self.hash_bits

    def find_similar(
        self,
        query_hash: int,
        candidate_hashes: Sequence[int],
        max_distance: int = 3,
        max_results: int = 10,
    ) -> List[SimilarMatch]:
        """
        Linear scan for candidates within *max_distance* of the query.

        Non-integer candidates are skipped; indices refer to the original
        list. Results are sorted by distance, nearest first.
        """
        query = self._require_hash(query_hash, "query_hash")
        candidates = self._require_list(candidate_hashes, "candidate_hashes",
                                        "Candidate hashes must be an array")

        results: List[SimilarMatch] = []
        for index, candidate in fold_valid(candidates, is_int, context="SimHasher.find_similar").accepted:
            distance = self.hamming_distance(query, candidate)
            if distance <= max_distance:
                results.append(SimilarMatch(
                    hash=candidate,
                    distance=distance,
                    similarity=1 - distance / self.hash_bits,
                    index=index,
                ))

        results.sort(key=lambda m: m.distance)
        return results[:max_results]

    def find_similar_texts(
        self,
        query_text: str,
        candidate_texts: Sequence[str],
        max_distance: int = 3,
        max_results: int = 10,
    ) -> List[TextMatch]:
        if not isinstance(query_text, str):
            raise InputValidationError("Query text must be a string", argument="query_text")
        candidates = self._require_list(candidate_texts, "candidate_texts",
                                        "Candidate texts must be an array")

        query = self.compute_from_text(query_text)
        folded = fold_valid(candidates, is_str, context="SimHasher.find_similar_texts")

        results: List[TextMatch] = []
        for index, text in folded.accepted:
            h = self.compute_from_text(text)
            distance = self.hamming_distance(query, h)
            if distance <= max_distance:
                results.append(TextMatch(
                    text=text,
                    hash=h,
                    distance=distance,
                    similarity=1 - distance / self.hash_bits,
                    index=index,
                ))

        results.sort(key=lambda m: m.distance)
        return results[:max_results]

    def cluster_similar(self, texts: Sequence[str], max_distance: int = 2) -> List[Cluster]:
        """
        Greedy single-pass clustering.

        In input order, each unassigned text seeds a cluster and absorbs every
        later unassigned text within *max_distance* of the seed (distance to
        other members is not considered). Clusters are returned largest first.
        """
        texts = self._require_list(texts, "texts", "Texts must be an array")
        signatures = self.compute_batch(texts)

        clusters: List[Cluster] = []
        assigned = [False] * len(signatures)
        for i, seed in enumerate(signatures):
            if assigned[i]:
                continue
            assigned[i] = True
            cluster = Cluster(representative=texts[i], members=[texts[i]], hashes=[seed])
            for j in range(i + 1, len(signatures)):
                if assigned[j]:
                    continue
                if self.hamming_distance(seed, signatures[j]) <= max_distance:
                    cluster.members.append(texts[j])
                    cluster.hashes.append(signatures[j])
                    assigned[j] = True
            clusters.append(cluster)

        clusters.sort(key=lambda c: len(c.members), reverse=True)
        return clusters

    def analyze_distribution(self, signatures: Sequence[int]) -> DistanceDistribution:
        """
        Pairwise Hamming-distance statistics, O(n^2); meant for small sets.
        """
        signatures = self._require_list(signatures, "signatures", "Signatures must be an array")
        hashes = [self._require_hash(s, "signatures") for s in signatures]

        distances: List[int] = []
        for i in range(len(hashes)):
            for j in range(i + 1, len(hashes)):
                distances.append(self.hamming_distance(hashes[i], hashes[j]))

        if not distances:
            return DistanceDistribution(hash_bits=self.hash_bits)

        arr = np.sort(np.array(distances, dtype=np.int64))
        values, counts = np.unique(arr, return_counts=True)
        return DistanceDistribution(
            total_pairs=len(distances),
            distance_distribution={int(v): int(c) for v, c in zip(values, counts)},
            mean_distance=float(arr.mean()),
            median_distance=int(arr[len(arr) // 2]),
            min_distance=int(arr[0]),
            max_distance=int(arr[-1]),
            hash_bits=self.hash_bits,
        )

    # ----------------------------
    # Serialization
    # ----------------------------

    @property
    def hex_length(self) -> int:
        return (self.hash_bits + 3) // 4

    def to_binary_string(self, hash_value: int) -> str:
        return format(self._require_hash(hash_value, "hash_value"), f"0{self.hash_bits}b")

    def from_binary_string(self, binary_string: str) -> int:
        if not isinstance(binary_string, str):
            raise InputValidationError("Binary string must be a string", argument="binary_string")
        if not _BINARY_RE.fullmatch(binary_string):
            raise InputValidationError("Binary string must contain only 0s and 1s",
                                       argument="binary_string")
        if len(binary_string) != self.hash_bits:
            raise InputValidationError(
                f"Binary string length {len(binary_string)} does not match hash bits {self.hash_bits}",
                argument="binary_string",
            )
        return int(binary_string, 2)

    def to_hex_string(self, hash_value: int) -> str:
        return format(self._require_hash(hash_value, "hash_value"), f"0{self.hex_length}x")

    def from_hex_string(self, hex_string: str) -> int:
        if not isinstance(hex_string, str):
            raise InputValidationError("Hex string must be a string", argument="hex_string")
        if not _HEX_RE.fullmatch(hex_string):
            raise InputValidationError("Hex string must contain only hexadecimal characters",
                                       argument="hex_string")
        if len(hex_string) != self.hex_length:
            raise InputValidationError(
                f"Hex string length {len(hex_string)} does not match expected length {self.hex_length}",
                argument="hex_string",
            )
        value = int(hex_string, 16)
        if value > self.bit_mask:
            raise InputValidationError("Hex string represents value too large for hash bits",
                                       argument="hex_string")
        return value
