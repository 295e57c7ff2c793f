"""
Tests for SimHash fingerprints.
"""

import pytest

from simsketch.config import ShingleConfig, SimHashConfig
from simsketch.errors import ConfigurationError, InputValidationError
from simsketch.hashing import fnv1a_64
from simsketch.simhash import SimHasher


@pytest.fixture
def hasher():
    return SimHasher()


@pytest.fixture
def hasher8():
    return SimHasher(hash_bits=8)


class TestConstruction:
    """Test width validation."""

    @pytest.mark.parametrize("bits", [0, 65, -1, 8.0])
    def test_invalid_width(self, bits):
        with pytest.raises(ConfigurationError):
            SimHasher(hash_bits=bits)

    def test_mask(self, hasher8):
        assert hasher8.bit_mask == 0xFF

    def test_from_config(self):
        config = SimHashConfig(hash_bits=16, shingles=ShingleConfig(use_word_shingles=False))
        hasher = SimHasher.from_config(config)

        assert hasher.hash_bits == 16
        assert hasher.extract_features("hello") == {"hel": 1, "ell": 1, "llo": 1}


class TestFeatures:
    """Test feature extraction."""

    def test_word_shingles(self, hasher):
        assert hasher.extract_features("hello world test") == {"hello world": 1, "world test": 1}

    def test_counts_repeats(self, hasher):
        assert hasher.extract_features("a b a b")["a b"] == 2

    def test_case_folded(self, hasher):
        assert hasher.extract_features("Hello WORLD") == hasher.extract_features("hello world")

    def test_case_preserved_when_disabled(self):
        hasher = SimHasher(lowercase=False)
        assert hasher.extract_features("Hello World") == {"Hello World": 1}


class TestFingerprint:
    """Test weighted bit voting."""

    def test_deterministic(self, hasher):
        text = "the quick brown fox jumps over the lazy dog"
        assert hasher.compute_from_text(text) == hasher.compute_from_text(text)

    def test_within_width(self, hasher8):
        assert 0 <= hasher8.compute_from_text("some text to fingerprint") <= 0xFF

    def test_single_feature_copies_its_hash(self, hasher):
        assert hasher.compute_from_features({"x": 1}) == fnv1a_64("x")

    def test_negative_weight_inverts(self, hasher8):
        assert hasher8.compute_from_features({"x": -1}) == (~fnv1a_64("x")) & 0xFF

    def test_ties_set_bits(self, hasher8):
        assert hasher8.compute_from_features({"x": 0}) == 0xFF
        assert hasher8.compute_from_features({}) == 0xFF

    def test_invalid_entries_skipped(self, hasher):
        expected = hasher.compute_from_features({"a": 1, "b": 2.5})
        noisy = {"a": 1, "b": 2.5, 5: 3, "c": float("nan"), "d": True, "e": "heavy", "f": float("inf"),
                 "g": 10 ** 400}

        assert hasher.compute_from_features(noisy) == expected

    def test_huge_integer_weight_skipped(self, hasher):
        assert hasher.compute_from_features({"a": 1, "b": 10 ** 400}) == hasher.compute_from_features({"a": 1})

    def test_features_must_be_mapping(self, hasher):
        with pytest.raises(InputValidationError):
            hasher.compute_from_features(["a", "b"])

    def test_near_duplicates_close(self, hasher):
        base = " ".join(f"word{i}" for i in range(60))
        edited = base.replace("word30", "changed")
        unrelated = " ".join(f"other{i}" for i in range(60))

        near = hasher.hamming_distance(hasher.compute_from_text(base), hasher.compute_from_text(edited))
        far = hasher.hamming_distance(hasher.compute_from_text(base), hasher.compute_from_text(unrelated))
        assert near < far

    def test_batch(self, hasher):
        texts = ["one two", "three four"]
        assert hasher.compute_batch(texts) == [hasher.compute_from_text(t) for t in texts]

    def test_batch_strict(self, hasher):
        with pytest.raises(InputValidationError):
            hasher.compute_batch(["one two", 3])
        with pytest.raises(InputValidationError):
            hasher.compute_batch("one two")


class TestComparison:
    """Test Hamming distance and similarity."""

    def test_hamming_distance(self, hasher8):
        assert hasher8.hamming_distance(0b11110000, 0b11111111) == 4
        assert hasher8.similarity(0b11110000, 0b11111111) == 0.5

    def test_hamming_identity_and_symmetry(self, hasher):
        a, b = 0x0123456789ABCDEF, 0xFEDCBA9876543210
        assert hasher.hamming_distance(a, a) == 0
        assert hasher.hamming_distance(a, b) == hasher.hamming_distance(b, a)

    def test_bits_outside_width_ignored(self, hasher8):
        assert hasher8.hamming_distance(0x1FF, 0xFF) == 0

    @pytest.mark.parametrize("bad", ["5", 1.0, None, True])
    def test_non_integer_rejected(self, hasher8, bad):
        with pytest.raises(InputValidationError):
            hasher8.hamming_distance(bad, 0)


class TestSearchAndClustering:
    """Test linear-scan search, clustering and distribution stats."""

    def test_find_similar(self, hasher8):
        query = 0b10101010
        candidates = [query, query ^ 0b1, "bad", query ^ 0b111, None, query ^ 0b1111]

        results = hasher8.find_similar(query, candidates, max_distance=3)

        assert [(r.index, r.distance) for r in results] == [(0, 0), (1, 1), (3, 3)]
        assert results[1].similarity == 1 - 1 / 8

    def test_find_similar_limit(self, hasher8):
        results = hasher8.find_similar(0, [0, 0, 0], max_distance=0, max_results=2)
        assert [r.index for r in results] == [0, 1]

    def test_find_similar_rejects_non_list(self, hasher8):
        with pytest.raises(InputValidationError):
            hasher8.find_similar(0, 5)

    def test_find_similar_texts(self, hasher):
        results = hasher.find_similar_texts(
            "the cat sat on the mat",
            [42, "the cat sat on the mat", "completely different words here"],
            max_distance=0,
        )

        assert len(results) == 1
        assert results[0].index == 1
        assert results[0].text == "the cat sat on the mat"
        assert results[0].distance == 0

    def test_cluster_similar(self, hasher):
        texts = ["alpha beta gamma", "delta epsilon zeta", "alpha beta gamma", "eta theta iota"]

        clusters = hasher.cluster_similar(texts, max_distance=0)

        assert clusters[0].representative == "alpha beta gamma"
        assert clusters[0].members == ["alpha beta gamma", "alpha beta gamma"]
        assert len(clusters[0].hashes) == 2
        assert [c.representative for c in clusters[1:]] == ["delta epsilon zeta", "eta theta iota"]

    def test_cluster_distance_measured_from_seed(self):
        class FixedHasher(SimHasher):
            def compute_batch(self, texts):
                return [0b00, 0b01, 0b11][:len(texts)]

        clusters = FixedHasher(hash_bits=8).cluster_similar(["a", "b", "c"], max_distance=1)

        # c is 1 bit from b but 2 bits from the seed a
        assert [c.members for c in clusters] == [["a", "b"], ["c"]]
        assert clusters[0].hashes == [0b00, 0b01]
        assert clusters[1].representative == "c"

    def test_cluster_empty(self, hasher):
        assert hasher.cluster_similar([]) == []

    def test_analyze_distribution(self, hasher8):
        stats = hasher8.analyze_distribution([0b0000, 0b0001, 0b0011])

        assert stats.total_pairs == 3
        assert stats.distance_distribution == {1: 2, 2: 1}
        assert stats.mean_distance == pytest.approx(4 / 3)
        assert stats.median_distance == 1
        assert stats.min_distance == 1
        assert stats.max_distance == 2
        assert stats.hash_bits == 8

    def test_analyze_distribution_too_few(self, hasher8):
        stats = hasher8.analyze_distribution([5])

        assert stats.total_pairs == 0
        assert stats.distance_distribution == {}
        assert stats.mean_distance == 0.0
        assert stats.hash_bits == 8


class TestSerialization:
    """Test binary and hex string conversion."""

    def test_binary(self, hasher8):
        assert hasher8.to_binary_string(5) == "00000101"
        assert hasher8.from_binary_string("00000101") == 5

    def test_hex(self, hasher8):
        assert hasher8.to_hex_string(5) == "05"
        assert hasher8.from_hex_string("05") == 5
        assert hasher8.from_hex_string("FF") == 255

    def test_round_trip_full_width(self, hasher):
        value = hasher.compute_from_text("round trip me")
        assert hasher.from_binary_string(hasher.to_binary_string(value)) == value
        assert hasher.from_hex_string(hasher.to_hex_string(value)) == value

    def test_odd_width_hex(self):
        hasher = SimHasher(hash_bits=10)
        assert hasher.to_hex_string(1023) == "3ff"
        assert hasher.from_hex_string("3ff") == 1023
        with pytest.raises(InputValidationError, match="too large"):
            hasher.from_hex_string("400")

    @pytest.mark.parametrize("bad", ["0101", "0000000011", "0000012x", "", 101])
    def test_binary_rejects(self, hasher8, bad):
        with pytest.raises(InputValidationError):
            hasher8.from_binary_string(bad)

    @pytest.mark.parametrize("bad", ["5", "005", "zz", "", 0x05])
    def test_hex_rejects(self, hasher8, bad):
        with pytest.raises(InputValidationError):
            hasher8.from_hex_string(bad)
