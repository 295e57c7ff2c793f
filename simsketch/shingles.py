"""
Text shingling used by both sketches.

Pure functions: normalization, word/character n-grams, and the two shapes
the sketches consume (a deduplicated shingle set for MinHash, a
feature -> frequency map for SimHash).
"""
from __future__ import annotations

import re
import unicodedata
from collections import Counter
from typing import Dict, List, Optional, Set

from .config import ShingleConfig
from .errors import InputValidationError

_WORD_RE = re.compile(r"\w+", re.UNICODE)
_SPACE_RE = re.compile(r"\s+", re.UNICODE)


def normalize_text(text: str, *, normalize: bool = True, lowercase: bool = True) -> str:
    if normalize:
        text = unicodedata.normalize("NFKC", text)
    if lowercase:
        text = text.casefold()
    return text


def tokenize_words(text: str) -> List[str]:
    return _WORD_RE.findall(text)


def word_ngrams(text: str, n: int, stride: int = 1) -> List[str]:
    """
    Space-joined word n-grams.

    Text with fewer than *n* words yields a single shingle of all its words
    (or nothing when there are no words at all).
    """
    tokens = tokenize_words(text)
    if len(tokens) < n:
        return [" ".join(tokens)] if tokens else []
    return [" ".join(tokens[i:i + n]) for i in range(0, len(tokens) - n + 1, stride)]


def char_ngrams(text: str, n: int, stride: int = 1) -> List[str]:
    """
    Character n-grams over whitespace-collapsed text.

    Text shorter than *n* yields itself as the only shingle.
    """
    collapsed = _SPACE_RE.sub(" ", text).strip()
    if len(collapsed) < n:
        return [collapsed] if collapsed else []
    return [collapsed[i:i + n] for i in range(0, len(collapsed) - n + 1, stride)]


def _ngrams(text: str, config: ShingleConfig) -> List[str]:
    if not isinstance(text, str):
        raise InputValidationError("Input must be a string", argument="text")
    processed = normalize_text(text, normalize=config.normalize, lowercase=config.lowercase)
    if config.use_word_shingles:
        return word_ngrams(processed, config.word_shingle_size)
    return char_ngrams(processed, config.char_shingle_size)


def extract_shingles(text: str, config: Optional[ShingleConfig] = None) -> Set[str]:
    """Deduplicated shingle set for MinHash."""
    return set(_ngrams(text, config or ShingleConfig()))


def feature_counts(text: str, config: Optional[ShingleConfig] = None) -> Dict[str, int]:
    """Feature -> frequency map for SimHash, in first-seen order."""
    return dict(Counter(_ngrams(text, config or ShingleConfig())))
