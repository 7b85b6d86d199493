"""Token-based similarity between two caption texts.

``score`` returns ``(similarity, confidence)``. Similarity is the multiset
Jaccard index of the whitespace tokens being compared. Confidence says how
much that similarity can be trusted: it grows with the number of shared
tokens (saturating at MIN_EVIDENCE_TOKENS) and shrinks as the two texts
differ in length.
"""

from collections import Counter
from enum import Enum

MIN_EVIDENCE_TOKENS = 3


class Anchoring(str, Enum):
    none = "none"
    left = "left"
    right = "right"


def tokenize(text: str) -> list[str]:
    return text.split()


def _window(tokens_a: list[str], tokens_b: list[str], anchored: Anchoring) -> tuple[list[str], list[str]]:
    size = min(len(tokens_a), len(tokens_b))
    if anchored == Anchoring.left:
        return tokens_a[:size], tokens_b[:size]
    if anchored == Anchoring.right:
        return tokens_a[len(tokens_a) - size:], tokens_b[len(tokens_b) - size:]
    return tokens_a, tokens_b


def _confidence(shared: int, len_a: int, len_b: int) -> float:
    evidence = min(1.0, shared / MIN_EVIDENCE_TOKENS)
    disparity = abs(len_a - len_b) / max(len_a, len_b)
    return evidence * (1.0 - disparity ** 2)


def score(a: str, b: str, anchored: Anchoring = Anchoring.none) -> tuple[float, float]:
    """Compare two normalized caption texts, optionally anchored at one end."""
    tokens_a, tokens_b = tokenize(a), tokenize(b)
    if tokens_a == tokens_b:
        return 1.0, 1.0
    if not tokens_a or not tokens_b:
        return 0.0, 0.0

    window_a, window_b = _window(tokens_a, tokens_b, anchored)
    counts_a, counts_b = Counter(window_a), Counter(window_b)
    shared = sum((counts_a & counts_b).values())
    total = sum((counts_a | counts_b).values())
    similarity = shared / total if total else 0.0
    return similarity, _confidence(shared, len(tokens_a), len(tokens_b))
