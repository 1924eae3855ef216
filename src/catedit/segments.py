from __future__ import annotations

from collections import defaultdict
from typing import Sequence

from .annotations import HighlightSegment, RawRange

__all__ = ["compose_segments"]


def compose_segments(ranges: Sequence[RawRange]) -> list[HighlightSegment]:
    """
    Sweep-line merge of possibly overlapping ranges.

    Every interval between consecutive boundaries that at least one range
    covers becomes a segment carrying exactly the covering annotations,
    in input order. Zero-length ranges never cover anything and are dropped.
    """
    starts: dict[int, list[int]] = defaultdict(list)
    ends: dict[int, list[int]] = defaultdict(list)
    for idx, raw in enumerate(ranges):
        if raw.end <= raw.start:
            continue
        starts[raw.start].append(idx)
        ends[raw.end].append(idx)
    if not starts:
        return []

    points = sorted(set(starts) | set(ends))
    active: set[int] = set()
    segments: list[HighlightSegment] = []
    for seg_start, seg_end in zip(points, points[1:]):
        active.difference_update(ends.get(seg_start, ()))
        active.update(starts.get(seg_start, ()))
        if not active:
            continue
        segments.append(
            HighlightSegment(
                start=seg_start,
                end=seg_end,
                annotations=[ranges[idx].annotation for idx in sorted(active)],
            )
        )
    return segments
