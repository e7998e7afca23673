"""
Normalizer / Tokenizer

Turns raw transaction text into fixed-length integer sequences for the
sequence classifier. Id 0 is padding, id 1 is out-of-vocabulary; real tokens
start at 2.
"""

from __future__ import annotations
import hashlib
import json
import re
import unicodedata
from collections import Counter
from typing import Dict, Iterable, List, Optional

PAD_ID = 0
OOV_ID = 1
FIRST_TOKEN_ID = 2

WordIndex = Dict[str, int]

_WHITESPACE = re.compile(r"\s+")


def normalize(text: str) -> str:
    """Lower-case, drop everything but letters/digits/whitespace, collapse spaces."""
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    text = unicodedata.normalize("NFC", text).lower()
    text = "".join(ch if (ch.isalnum() or ch.isspace()) else " " for ch in text)
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: str) -> List[str]:
    n = normalize(text)
    if not n:
        return []
    return n.split(" ")


def text_to_sequence(text: str, word_index: WordIndex, max_len: int) -> List[int]:
    seq = [word_index.get(t, OOV_ID) for t in tokenize(text)]
    if len(seq) >= max_len:
        return seq[:max_len]
    return seq + [PAD_ID] * (max_len - len(seq))


class Vocabulary:
    """Word index built from a training corpus"""

    def __init__(self, word_index: Optional[WordIndex] = None):
        self.word_index: WordIndex = dict(word_index or {})

    @staticmethod
    def build(
        texts: Iterable[str],
        min_frequency: int = 1,
        max_words: Optional[int] = None,
    ) -> "Vocabulary":
        counts = Counter()
        for text in texts:
            counts.update(tokenize(text))

        # Most frequent first; alphabetical among ties so builds are reproducible
        ranked = sorted(
            (w for w, c in counts.items() if c >= min_frequency),
            key=lambda w: (-counts[w], w),
        )
        if max_words is not None:
            ranked = ranked[:max_words]

        return Vocabulary({w: i + FIRST_TOKEN_ID for i, w in enumerate(ranked)})

    @property
    def size(self) -> int:
        """Embedding input dimension: every token id plus padding and OOV."""
        return len(self.word_index) + FIRST_TOKEN_ID

    def encode(self, text: str, max_len: int) -> List[int]:
        return text_to_sequence(text, self.word_index, max_len)

    def hash(self) -> str:
        canonical = json.dumps(self.word_index, sort_keys=True, ensure_ascii=False)
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()

    def to_dict(self) -> WordIndex:
        return dict(self.word_index)

    @staticmethod
    def from_dict(data: Dict[str, int]) -> "Vocabulary":
        return Vocabulary({str(k): int(v) for k, v in data.items()})

    def __len__(self) -> int:
        return len(self.word_index)

    def __contains__(self, token: str) -> bool:
        return token in self.word_index
