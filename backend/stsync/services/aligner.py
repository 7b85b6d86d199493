"""Global alignment of deleted and added captions (Needleman-Wunsch)."""

from typing import Optional

from stsync.models.schemas import Caption
from stsync.services.captions import normalize_for_similarity
from stsync.services.similarity import score

GAP_PENALTY = 0.3
_EPSILON = 1e-9


def _match_scores(deleted: list[Caption], added: list[Caption]) -> list[list[float]]:
    deleted_texts = [normalize_for_similarity(c.text) for c in deleted]
    added_texts = [normalize_for_similarity(c.text) for c in added]
    return [[score(d, a)[0] for a in added_texts] for d in deleted_texts]


def align_captions(
    deleted: list[Caption],
    added: list[Caption],
) -> tuple[list[Optional[Caption]], list[Optional[Caption]]]:
    """Align two caption lists, returning equal-length lists with None as gaps.

    Maximizes summed absolute similarity of paired captions minus GAP_PENALTY
    per gap. On ties the traceback, which runs from the end, prefers a deleted
    caption against a gap, then an added caption against a gap, then a
    pairing, so gaps settle after the captions they follow.
    """
    n, m = len(deleted), len(added)
    match = _match_scores(deleted, added)

    table = [[0.0] * (m + 1) for _ in range(n + 1)]
    for i in range(1, n + 1):
        table[i][0] = table[i - 1][0] - GAP_PENALTY
    for j in range(1, m + 1):
        table[0][j] = table[0][j - 1] - GAP_PENALTY
    for i in range(1, n + 1):
        for j in range(1, m + 1):
            table[i][j] = max(
                table[i - 1][j - 1] + match[i - 1][j - 1],
                table[i - 1][j] - GAP_PENALTY,
                table[i][j - 1] - GAP_PENALTY,
            )

    aligned_deleted: list[Optional[Caption]] = []
    aligned_added: list[Optional[Caption]] = []
    i, j = n, m
    while i > 0 or j > 0:
        if i > 0 and (j == 0 or abs(table[i][j] - (table[i - 1][j] - GAP_PENALTY)) < _EPSILON):
            aligned_deleted.append(deleted[i - 1])
            aligned_added.append(None)
            i -= 1
        elif j > 0 and (i == 0 or abs(table[i][j] - (table[i][j - 1] - GAP_PENALTY)) < _EPSILON):
            aligned_deleted.append(None)
            aligned_added.append(added[j - 1])
            j -= 1
        else:
            aligned_deleted.append(deleted[i - 1])
            aligned_added.append(added[j - 1])
            i, j = i - 1, j - 1

    aligned_deleted.reverse()
    aligned_added.reverse()
    return aligned_deleted, aligned_added
