# simsketch/lsh.py
"""
Locality-Sensitive Hashing over MinHash signatures.

Each signature is split into num_bands bands of rows_per_band rows; each
band is hashed into a per-band bucket table. Two items become candidates
when any band lands in the same bucket, so for true similarity s the
collision probability is

    P(s) = 1 - (1 - s^rows_per_band)^num_bands

an S-curve: rows AND-amplify (sharpen), bands OR-amplify (widen). Exact
duplicates always collide. Scores reported by search() are re-estimated
from the stored signatures (fraction of equal positions), so they remain
MinHash estimates rather than exact Jaccard values.
"""
from __future__ import annotations

import logging
import numbers
import threading
from collections import abc
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

import numpy as np
from scipy import integrate

from .config import LSHConfig
from .errors import ConfigurationError, InputValidationError
from .hashing import MASK_64, band_key
from .minhash import signature_agreement

logger = logging.getLogger(__name__)


def collision_probability(similarity: float, rows_per_band: int, num_bands: int) -> float:
    """Probability that two items of the given similarity share a bucket."""
    return 1 - (1 - similarity ** rows_per_band) ** num_bands


@dataclass(frozen=True)
class BandConfig:
    """Recommended banding for a target threshold."""
    num_bands: int
    rows_per_band: int
    signature_length: int  # rows_per_band * num_bands actually used
    collision_probability: float


@dataclass(frozen=True)
class SearchResult:
    item_id: int
    item: Any
    similarity: float  # MinHash estimate, not exact Jaccard


@dataclass
class LSHStats:
    total_items: int = 0
    total_bands: int = 0
    used_buckets: int = 0
    avg_bucket_size: float = 0.0
    max_bucket_size: int = 0
    min_bucket_size: int = 0
    load_factor: float = 0.0
    avg_items_per_bucket: float = 0.0
    rows_per_band: int = 0
    signature_length: int = 0
    threshold: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LSHBuckets:
    """
    Banded bucket index for sub-linear candidate retrieval.

    Items are kept in id-keyed parallel maps (item, signature) and bucket
    tables hold integer ids only. Ids are assigned sequentially and never
    reused until clear(). To update an item, remove it and add it again.

    All public methods take an internal re-entrant lock, so one index can be
    shared between threads.
    """

    def __init__(self, num_bands: int = 16, signature_length: int = 128, threshold: float = 0.5) -> None:
        self.config = LSHConfig(num_bands=num_bands, signature_length=signature_length, threshold=threshold)
        self.num_bands = num_bands
        self.signature_length = signature_length
        self.threshold = threshold
        self.rows_per_band = self.config.rows_per_band
        self.actual_signature_length = self.rows_per_band * num_bands

        # buckets[band] : bucket key -> ids
        self.buckets: List[Dict[str, Set[int]]] = [{} for _ in range(num_bands)]
        self.signatures: Dict[int, Tuple[int, ...]] = {}
        self.items: Dict[int, Any] = {}
        self.next_item_id = 0
        self._lock = threading.RLock()

        logger.debug(
            "LSHBuckets created (bands=%d, rows=%d, signature_length=%d, threshold=%.2f)",
            num_bands, self.rows_per_band, signature_length, threshold,
        )

    @classmethod
    def from_config(cls, config: LSHConfig) -> "LSHBuckets":
        return cls(config.num_bands, config.signature_length, config.threshold)

    # ----------------------------
    # Banding
    # ----------------------------

    def hash_band(self, band: Sequence[int]) -> str:
        """Bucket key for one band slice."""
        return band_key(band)

    def _band_keys(self, signature: Sequence[int]) -> Iterator[Tuple[int, str]]:
        r = self.rows_per_band
        for b in range(self.num_bands):
            yield b, self.hash_band(signature[b * r:(b + 1) * r])

    def _validate_signature(self, signature: Any, argument: str = "signature") -> Tuple[int, ...]:
        if isinstance(signature, np.ndarray):
            if signature.ndim != 1 or not np.issubdtype(signature.dtype, np.integer):
                raise InputValidationError(f"{argument} must be a 1-D integer array", argument=argument)
        elif isinstance(signature, (str, bytes)) or not isinstance(signature, abc.Sequence):
            raise InputValidationError(f"{argument} must be a sequence of integers", argument=argument)
        if len(signature) != self.signature_length:
            raise InputValidationError(
                f"Signature length {len(signature)} does not match expected length {self.signature_length}",
                argument=argument,
            )
        for v in signature:
            if not isinstance(v, numbers.Integral) or isinstance(v, (bool, np.bool_)) or not (0 <= v <= MASK_64):
                raise InputValidationError(
                    f"{argument} values must be unsigned 64-bit integers, got {v!r}",
                    argument=argument,
                )
        return tuple(int(v) for v in signature)

    # ----------------------------
    # Mutation
    # ----------------------------

    def add(self, item: Any, signature: Sequence[int]) -> int:
        """
        Index *item* under *signature*.

        Returns:
            The new item id
        """
        sig = self._validate_signature(signature)
        with self._lock:
            return self._insert(item, sig)

    def _insert(self, item: Any, sig: Tuple[int, ...]) -> int:
        item_id = self.next_item_id
        self.next_item_id += 1
        self.items[item_id] = item
        self.signatures[item_id] = sig
        for b, key in self._band_keys(sig):
            self.buckets[b].setdefault(key, set()).add(item_id)
        return item_id

    def add_batch(self, items_with_signatures: Iterable[Tuple[Any, Sequence[int]]]) -> List[int]:
        """
        Index several (item, signature) pairs.

        Every pair is validated before the first insert, so a bad pair
        leaves the index untouched.
        """
        if isinstance(items_with_signatures, (str, bytes)) or not isinstance(items_with_signatures, abc.Iterable):
            raise InputValidationError("Input must be a list of (item, signature) pairs",
                                       argument="items_with_signatures")
        validated: List[Tuple[Any, Tuple[int, ...]]] = []
        for i, pair in enumerate(items_with_signatures):
            if not isinstance(pair, abc.Sequence) or isinstance(pair, (str, bytes)) or len(pair) != 2:
                raise InputValidationError(f"Entry {i} is not an (item, signature) pair",
                                           argument="items_with_signatures")
            item, signature = pair
            validated.append((item, self._validate_signature(signature, f"signature[{i}]")))

        with self._lock:
            ids = [self._insert(item, sig) for item, sig in validated]
        logger.debug("LSHBuckets.add_batch indexed %d item(s)", len(ids))
        return ids

    def remove(self, item_id: int) -> bool:
        """
        Drop *item_id* from every bucket it occupies.

        Returns:
            True if the item was removed, False if it was not indexed
        """
        with self._lock:
            sig = self.signatures.pop(item_id, None)
            if sig is None:
                return False
            del self.items[item_id]
            for b, key in self._band_keys(sig):
                bucket = self.buckets[b].get(key)
                if bucket is None:
                    continue
                bucket.discard(item_id)
                if not bucket:
                    del self.buckets[b][key]
            return True

    def clear(self) -> None:
        """Remove every item and reset the id counter."""
        with self._lock:
            self.signatures.clear()
            self.items.clear()
            self.next_item_id = 0
            for band in self.buckets:
                band.clear()
        logger.debug("LSHBuckets cleared")

    # ----------------------------
    # Queries
    # ----------------------------

    def get_candidates(self, query_signature: Sequence[int]) -> Set[int]:
        """Ids sharing at least one band bucket with the query."""
        sig = self._validate_signature(query_signature, "query_signature")
        candidates: Set[int] = set()
        with self._lock:
            for b, key in self._band_keys(sig):
                ids = self.buckets[b].get(key)
                if ids:
                    candidates.update(ids)
        return candidates

    def estimate_similarity(self, sig1: Sequence[int], sig2: Sequence[int]) -> float:
        return signature_agreement(sig1, sig2)

    def search(
        self,
        query_signature: Sequence[int],
        threshold: Optional[float] = None,
        max_results: int = 10,
    ) -> List[SearchResult]:
        """
        Candidates re-scored against their stored signatures.

        Args:
            query_signature: MinHash signature to search for
            threshold: Minimum estimated similarity (defaults to the index threshold)
            max_results: Maximum number of results

        Returns:
            Results sorted by similarity, highest first; ties keep id order
        """
        if threshold is None:
            threshold = self.threshold
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not (0.0 <= threshold <= 1.0):
            raise InputValidationError(f"threshold must be between 0 and 1, got {threshold!r}",
                                       argument="threshold")
        if isinstance(max_results, bool) or not isinstance(max_results, int) or max_results < 0:
            raise InputValidationError(f"max_results must be a non-negative integer, got {max_results!r}",
                                       argument="max_results")

        sig = self._validate_signature(query_signature, "query_signature")
        results: List[SearchResult] = []
        with self._lock:
            for item_id in sorted(self.get_candidates(sig)):
                similarity = signature_agreement(sig, self.signatures[item_id])
                if similarity >= threshold:
                    results.append(SearchResult(item_id=item_id, item=self.items[item_id],
                                                similarity=similarity))

        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:max_results]

    def candidate_pairs(self) -> List[Tuple[int, int]]:
        """
        Unique (id_i, id_j) pairs, i < j, that share at least one bucket.
        """
        seen: Set[Tuple[int, int]] = set()
        with self._lock:
            for band in self.buckets:
                for ids in band.values():
                    if len(ids) < 2:
                        continue
                    ordered = sorted(ids)
                    for i, a in enumerate(ordered):
                        for b in ordered[i + 1:]:
                            seen.add((a, b))
        return sorted(seen)

    def get_item(self, item_id: int) -> Any:
        with self._lock:
            return self.items[item_id]

    def get_signature(self, item_id: int) -> Tuple[int, ...]:
        with self._lock:
            return self.signatures[item_id]

    def __len__(self) -> int:
        return len(self.signatures)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.signatures

    # ----------------------------
    # Introspection / tuning
    # ----------------------------

    def get_stats(self) -> LSHStats:
        with self._lock:
            total_items = len(self.signatures)
            sizes = [len(ids) for band in self.buckets for ids in band.values()]

        used = len(sizes)
        total_size = sum(sizes)
        return LSHStats(
            total_items=total_items,
            total_bands=self.num_bands,
            used_buckets=used,
            avg_bucket_size=total_size / used if used else 0.0,
            max_bucket_size=max(sizes) if sizes else 0,
            min_bucket_size=min(sizes) if sizes else 0,
            load_factor=used / self.num_bands if total_items else 0.0,
            avg_items_per_bucket=total_size / used if total_items and used else 0.0,
            rows_per_band=self.rows_per_band,
            signature_length=self.signature_length,
            threshold=self.threshold,
        )

    def estimate_collision_probability(self, jaccard_similarity: float) -> float:
        """
        P(s) = 1 - (1 - s^r)^b for this index's rows r and bands b.
        """
        if isinstance(jaccard_similarity, bool) or not isinstance(jaccard_similarity, (int, float)) \
                or not (0.0 <= jaccard_similarity <= 1.0):
            raise InputValidationError("Jaccard similarity must be between 0 and 1",
                                       argument="jaccard_similarity")
        return collision_probability(jaccard_similarity, self.rows_per_band, self.num_bands)

    def estimate_error_rates(self, threshold: Optional[float] = None) -> Tuple[float, float]:
        """
        Areas under the S-curve around *threshold*.

        Returns:
            (false_positive, false_negative): integral of P(s) over [0, t]
            and of 1 - P(s) over [t, 1]
        """
        t = self.threshold if threshold is None else threshold
        if isinstance(t, bool) or not isinstance(t, (int, float)) or not (0.0 <= t <= 1.0):
            raise InputValidationError("threshold must be between 0 and 1", argument="threshold")
        r, b = self.rows_per_band, self.num_bands
        fp, _ = integrate.quad(lambda s: collision_probability(s, r, b), 0.0, t)
        fn, _ = integrate.quad(lambda s: 1 - collision_probability(s, r, b), t, 1.0)
        return fp, fn

    @staticmethod
    def find_optimal_bands(threshold: float, signature_length: int = 128) -> BandConfig:
        """
        Banding whose collision probability at *threshold* is closest to 0.5.

        Scans bands = 1..signature_length with rows = signature_length // bands
        and keeps the first strictly better score |P(threshold) - 0.5|.
        """
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) \
                or threshold <= 0 or threshold >= 1:
            raise ConfigurationError("Threshold must be between 0 and 1 (exclusive)",
                                     option="threshold", value=threshold)
        if isinstance(signature_length, bool) or not isinstance(signature_length, int) or signature_length < 1:
            raise ConfigurationError("signature_length must be a positive integer",
                                     option="signature_length", value=signature_length)

        best_bands = 1
        best_score = float("inf")
        for bands in range(1, signature_length + 1):
            rows = signature_length // bands
            if rows < 1:
                continue
            score = abs(collision_probability(threshold, rows, bands) - 0.5)
            if score < best_score:
                best_score = score
                best_bands = bands

        best_rows = signature_length // best_bands
        return BandConfig(
            num_bands=best_bands,
            rows_per_band=best_rows,
            signature_length=best_rows * best_bands,
            collision_probability=collision_probability(threshold, best_rows, best_bands),
        )

    @classmethod
    def create_optimal(cls, threshold: float = 0.5, signature_length: int = 128) -> "LSHBuckets":
        """
        Index tuned for *threshold* that accepts signatures of *signature_length*.
        """
        optimal = cls.find_optimal_bands(threshold, signature_length)
        return cls(num_bands=optimal.num_bands, signature_length=signature_length, threshold=threshold)
