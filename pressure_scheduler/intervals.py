"""
Interval arithmetic over `Range` lists.

All helpers return ranges sorted by start and drop empty (zero-length) results,
except where noted.
"""

from typing import Iterable, List, Sequence

from allocation_models import Range


def sort_by_start(ranges: Iterable[Range]) -> List[Range]:
    return sorted(ranges, key=lambda r: (r.start, r.end))


def union(ranges: Iterable[Range]) -> List[Range]:
    """Merge overlapping or abutting ranges."""
    merged: List[Range] = []
    for r in sort_by_start(ranges):
        if r.length <= 0:
            continue
        if merged and r.start <= merged[-1].end:
            last = merged[-1]
            if r.end > last.end:
                merged[-1] = Range(start=last.start, end=r.end)
        else:
            merged.append(r)
    return merged


def intersect(first: Sequence[Range], second: Sequence[Range]) -> List[Range]:
    """Pairwise overlap of two range lists."""
    result = []
    for a in first:
        for b in second:
            start = max(a.start, b.start)
            end = min(a.end, b.end)
            if end > start:
                result.append(Range(start=start, end=end))
    return union(result)


def intersect_all(masks: Sequence[Sequence[Range]]) -> List[Range]:
    if not masks:
        return []
    result = union(masks[0])
    for mask in masks[1:]:
        result = intersect(result, mask)
    return result


def subtract(ranges: Sequence[Range], holes: Sequence[Range]) -> List[Range]:
    """Remove every hole from every range."""
    result = union(ranges)
    for hole in union(holes):
        pieces = []
        for r in result:
            # Standard Overlap Logic: StartA < EndB and StartB < EndA
            if not r.overlaps(hole):
                pieces.append(r)
                continue
            if r.start < hole.start:
                pieces.append(Range(start=r.start, end=hole.start))
            if hole.end < r.end:
                pieces.append(Range(start=hole.end, end=r.end))
        result = pieces
    return result


def complement(mask: Range, ranges: Sequence[Range]) -> List[Range]:
    """Parts of `mask` not covered by `ranges`."""
    return subtract([mask], ranges)


def total_length(ranges: Iterable[Range]) -> float:
    return sum(r.length for r in ranges)
