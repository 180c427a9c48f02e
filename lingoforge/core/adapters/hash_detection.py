"""
Detection of hash-based message identifiers in PO catalogs.

Some build tools replace msgids with short hashes (``hzSNj4``) and ship the
human-readable text in a separate source-language catalog. These helpers
decide whether a catalog looks like that.
"""

import re
from dataclasses import dataclass
from typing import Iterable

from .po_document import PoDocument


@dataclass(frozen=True)
class HashHeuristic:
    """Tunable classifier for hash-like tokens.

    A token is hash-like when its length is within bounds, it has no
    whitespace and it only uses base64/url-safe characters. A sample is
    hash-based when it has at least ``min_sample`` non-empty values and
    strictly more than ``threshold`` of them are hash-like.
    """
    min_length: int = 2
    max_length: int = 12
    min_sample: int = 3
    threshold: float = 0.5
    alphabet: str = r'[A-Za-z0-9+/=_-]+'

    def is_hash_like(self, token: str) -> bool:
        if not self.min_length <= len(token) <= self.max_length:
            return False
        if re.search(r'\s', token):
            return False
        return re.fullmatch(self.alphabet, token) is not None

    def is_hash_based(self, values: Iterable[str]) -> bool:
        sample = [v for v in values if v.strip()]
        if len(sample) < self.min_sample:
            return False
        hash_count = sum(1 for v in sample if self.is_hash_like(v))
        return hash_count / len(sample) > self.threshold


DEFAULT_HEURISTIC = HashHeuristic()


def is_hash_like(token: str, heuristic: HashHeuristic = DEFAULT_HEURISTIC) -> bool:
    return heuristic.is_hash_like(token)


def has_hash_based_msgids(document: PoDocument, heuristic: HashHeuristic = DEFAULT_HEURISTIC) -> bool:
    return heuristic.is_hash_based(m.msgid for m in document.messages)


def has_hash_based_msgstrs(document: PoDocument, heuristic: HashHeuristic = DEFAULT_HEURISTIC) -> bool:
    """True when the translations themselves look like hashes.

    A usable reference catalog (e.g. en.po) has hash msgids but readable
    msgstrs, so this rejects a second copy of the hashed catalog.
    """
    return heuristic.is_hash_based(m.msgstr for m in document.messages)
