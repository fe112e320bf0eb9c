"""Snapshot comparison.

Two showings match when their movie titles are equal; date, time and cinema
are ignored. The result therefore answers "was a movie added to or dropped
from the programme", not "did a particular showtime move".
"""

import logging
from typing import Callable, Hashable, Sequence

from .models import DiffPart, Showing


def movie_title(showing: Showing) -> Hashable:
    return showing.movie_title


def _lcs_pairs(prev_keys: Sequence, cur_keys: Sequence) -> list[tuple[int, int]]:
    n, m = len(prev_keys), len(cur_keys)
    # lengths[i][j] = LCS of prev_keys[i:] and cur_keys[j:]
    lengths = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(n - 1, -1, -1):
        row, below = lengths[i], lengths[i + 1]
        key = prev_keys[i]
        for j in range(m - 1, -1, -1):
            if key == cur_keys[j]:
                row[j] = below[j + 1] + 1
            else:
                row[j] = below[j] if below[j] >= row[j + 1] else row[j + 1]

    pairs: list[tuple[int, int]] = []
    i = j = 0
    while i < n and j < m:
        if prev_keys[i] == cur_keys[j]:
            pairs.append((i, j))
            i += 1
            j += 1
        elif lengths[i + 1][j] >= lengths[i][j + 1]:
            i += 1
        else:
            j += 1
    return pairs


def _match(prev_keys: list, cur_keys: list) -> list[tuple[int, int]]:
    """Index pairs of a longest common subsequence of the two key lists."""
    n, m = len(prev_keys), len(cur_keys)
    head = 0
    while head < n and head < m and prev_keys[head] == cur_keys[head]:
        head += 1
    tail = 0
    while tail < n - head and tail < m - head and prev_keys[n - 1 - tail] == cur_keys[m - 1 - tail]:
        tail += 1

    pairs = [(k, k) for k in range(head)]
    middle = _lcs_pairs(prev_keys[head:n - tail], cur_keys[head:m - tail])
    pairs.extend((i + head, j + head) for i, j in middle)
    pairs.extend((n - tail + k, m - tail + k) for k in range(tail))
    return pairs


def diff_showings(
    previous: Sequence[Showing],
    current: Sequence[Showing],
    key: Callable[[Showing], Hashable] = movie_title,
) -> list[DiffPart]:
    """Align ``previous`` against ``current`` and group the result into
    maximal common / removed / added runs. Common runs carry the showings of
    ``current``; a removed run is emitted before an adjacent added run."""
    prev_keys = [key(s) for s in previous]
    cur_keys = [key(s) for s in current]
    pairs = _match(prev_keys, cur_keys)

    parts: list[DiffPart] = []

    def emit(kind: str, values: Sequence[Showing]) -> None:
        if not values:
            return
        if parts and parts[-1].kind == kind:
            parts[-1] = DiffPart(kind, parts[-1].values + tuple(values))
        else:
            parts.append(DiffPart(kind, tuple(values)))

    i = j = 0
    for pi, pj in pairs + [(len(previous), len(current))]:
        emit("removed", previous[i:pi])
        emit("added", current[j:pj])
        if pi < len(previous):
            emit("common", [current[pj]])
        i, j = pi + 1, pj + 1

    logging.getLogger(__name__).debug(
        "snapshot_diff previous=%s current=%s parts=%s",
        len(previous),
        len(current),
        len(parts),
    )
    return parts


def has_changes(parts: Sequence[DiffPart]) -> bool:
    return any(p.changed for p in parts)


def changed_parts(parts: Sequence[DiffPart]) -> list[DiffPart]:
    return [p for p in parts if p.changed]


def parts_to_json(parts: Sequence[DiffPart]) -> list[dict]:
    return [p.to_dict() for p in parts]


def count_changes(parts: Sequence[DiffPart]) -> tuple[int, int]:
    added = sum(len(p.values) for p in parts if p.kind == "added")
    removed = sum(len(p.values) for p in parts if p.kind == "removed")
    return added, removed
