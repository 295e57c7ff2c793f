"""
Tests for shingling and the per-element validation fold.
"""

import pytest

from simsketch.batch import fold_valid, is_int, is_str
from simsketch.config import ShingleConfig
from simsketch.errors import InputValidationError
from simsketch.shingles import (
    char_ngrams,
    extract_shingles,
    feature_counts,
    normalize_text,
    word_ngrams,
)


class TestNormalization:

    def test_casefold(self):
        assert normalize_text("Straße") == "strasse"

    def test_nfkc(self):
        assert normalize_text("ﬁle", lowercase=False) == "file"

    def test_disabled(self):
        assert normalize_text("ﬁLE", normalize=False, lowercase=False) == "ﬁLE"


class TestNgrams:

    def test_word_ngrams(self):
        assert word_ngrams("hello world test", 2) == ["hello world", "world test"]

    def test_word_ngrams_short_text(self):
        assert word_ngrams("hello", 2) == ["hello"]
        assert word_ngrams("  ...  ", 2) == []

    def test_word_ngrams_strip_punctuation(self):
        assert word_ngrams("hello, world!", 2) == ["hello world"]

    def test_char_ngrams(self):
        assert char_ngrams("hello", 3) == ["hel", "ell", "llo"]

    def test_char_ngrams_collapse_whitespace(self):
        assert char_ngrams("a  \n b", 3) == ["a b"]

    def test_char_ngrams_short_text(self):
        assert char_ngrams("hi", 3) == ["hi"]
        assert char_ngrams("   ", 3) == []


class TestShingleSets:

    def test_extract_shingles_dedupes(self):
        assert extract_shingles("a b a b") == {"a b", "b a"}

    def test_char_mode(self):
        config = ShingleConfig(use_word_shingles=False, char_shingle_size=2)
        assert extract_shingles("abab", config) == {"ab", "ba"}

    def test_feature_counts(self):
        assert feature_counts("a b a b") == {"a b": 2, "b a": 1}

    def test_non_string_rejected(self):
        with pytest.raises(InputValidationError):
            extract_shingles(None)


class TestFoldValid:

    def test_partition_keeps_indices(self):
        result = fold_valid(["a", 1, "b", None], is_str)

        assert result.accepted == [(0, "a"), (2, "b")]
        assert result.values == ["a", "b"]
        assert [r.index for r in result.rejected] == [1, 3]
        assert not result.ok

    def test_all_valid(self):
        result = fold_valid([1, 2, 3], is_int)
        assert result.ok
        assert result.values == [1, 2, 3]

    def test_bool_is_not_int(self):
        result = fold_valid([True, 2], is_int)
        assert result.values == [2]
        assert "bool" in result.rejected[0].reason

    def test_accepts_generators(self):
        assert fold_valid((x for x in ["a", 2]), is_str).values == ["a"]
