"""
Pressure Field.

This module answers the question: "How contested is every instant of the horizon?"
Each window of each potentiality contributes an envelope that rises along its
start boundary, holds at the window's pressure and falls along its end
boundary. The envelopes are swept into a list of PressureChunks covering the
horizon exactly; the materializer reads areas off that list.
"""

from typing import Iterable, List, Optional, Sequence

from allocation_models import PotRange, PotRangeKind, Potentiality, PressureChunk, SchedulerConfig

# Sweep order of the boundary kinds inside one dimension
START_ORDER = {PotRangeKind.START_BEFORE: 0, PotRangeKind.START: 1, PotRangeKind.START_AFTER: 2}
END_ORDER = {PotRangeKind.END_BEFORE: 0, PotRangeKind.END: 1, PotRangeKind.END_AFTER: 2}


def _step(at: float, value: float) -> PressureChunk:
    return PressureChunk(start=at, end=at, pressure_start=value, pressure_end=value)


def place_to_segments(place: Sequence[PotRange]) -> List[PressureChunk]:
    """
    Sweep segments of one window.

    A segment adds nothing before its start, its interpolated value inside and
    its end value after it. The rise comes from the first start-dimension range,
    the fall from the last end-dimension range, so the envelope returns to zero
    once the window is over.
    """
    starts = sorted((r for r in place if r.dimension == "start"), key=lambda r: (START_ORDER[r.kind], r.start))
    ends = sorted((r for r in place if r.dimension == "end"), key=lambda r: (END_ORDER[r.kind], r.start))
    if not starts or not ends:
        return []

    segments = []
    rise = starts[0]
    if rise.kind == PotRangeKind.START_BEFORE:
        segments.append(PressureChunk(start=rise.start, end=rise.end,
                                      pressure_start=rise.pressure_start, pressure_end=rise.pressure_end))
        top = rise.pressure_end
    else:
        segments.append(_step(rise.start, rise.pressure_start))
        top = rise.pressure_start

    fall = ends[-1]
    if fall.kind == PotRangeKind.END_AFTER:
        segments.append(PressureChunk(start=fall.start, end=fall.end,
                                      pressure_start=fall.pressure_start - top,
                                      pressure_end=fall.pressure_end - top))
        segments.append(_step(fall.end, -fall.pressure_end))
    else:
        segments.append(_step(fall.end, -top))
    return segments


def split_chunks(chunks: Sequence[PressureChunk], at: float) -> List[PressureChunk]:
    """Split the chunk strictly containing `at`, keeping the pressure line intact."""
    result = []
    for chunk in chunks:
        if chunk.start < at < chunk.end:
            middle = chunk.pressure_at(at)
            result.append(chunk.model_copy(update={'end': at, 'pressure_end': middle}))
            result.append(chunk.model_copy(update={'start': at, 'pressure_start': middle}))
        else:
            result.append(chunk)
    return result


def _add_segment(chunk: PressureChunk, segment: PressureChunk) -> PressureChunk:
    if chunk.end <= segment.start:
        return chunk
    if chunk.start >= segment.end:
        delta_start = delta_end = segment.pressure_end
    else:
        delta_start = segment.pressure_at(chunk.start)
        delta_end = segment.pressure_at(chunk.end)
    return chunk.model_copy(update={
        'pressure_start': chunk.pressure_start + delta_start,
        'pressure_end': chunk.pressure_end + delta_end,
    })


def compute_pressure_chunks(
    config: SchedulerConfig,
    potentials: Iterable[Potentiality],
) -> List[PressureChunk]:
    """
    Sweep every window envelope into a chunk list covering the horizon.

    Segments are folded in ascending start order; the chunk list is only ever
    split, never merged.
    """
    horizon = config.horizon
    chunks = [PressureChunk(start=horizon.start, end=horizon.end)]
    segments = sorted(
        (segment for potential in potentials for place in potential.places
         for segment in place_to_segments(place)),
        key=lambda s: s.start,
    )
    for segment in segments:
        chunks = split_chunks(split_chunks(chunks, segment.start), segment.end)
        chunks = [_add_segment(chunk, segment) for chunk in chunks]
    return chunks


def compute_pressure_area(chunk: PressureChunk) -> float:
    return (chunk.pressure_start + chunk.pressure_end) / 2 * chunk.length


def clip_chunk(chunk: PressureChunk, start: float, end: float) -> Optional[PressureChunk]:
    """Part of `chunk` inside [start, end], or None when they do not overlap."""
    low = max(chunk.start, start)
    high = min(chunk.end, end)
    if high <= low:
        return None
    return chunk.model_copy(update={
        'start': low,
        'end': high,
        'pressure_start': chunk.pressure_at(low),
        'pressure_end': chunk.pressure_at(high),
    })


def area_between(chunks: Sequence[PressureChunk], start: float, end: float) -> float:
    """Pressure area of the field over [start, end]."""
    total = 0.0
    for chunk in chunks:
        clipped = clip_chunk(chunk, start, end)
        if clipped is not None:
            total += compute_pressure_area(clipped)
    return total
