"""
Tests for the pressure field sweep.

Covers:
- Window envelopes (flat and target-shaped)
- Chunk coverage of the horizon
- Area helpers
"""

import pytest

from allocation_models import PotRange, PotRangeKind, PressureChunk
from pressure_scheduler.pressure import (
    area_between,
    clip_chunk,
    compute_pressure_area,
    compute_pressure_chunks,
    place_to_segments,
    split_chunks,
)
from tests.builders import flat_place, make_potentiality


def profile(chunks):
    return [
        (c.start, c.end, pytest.approx(c.pressure_start), pytest.approx(c.pressure_end))
        for c in chunks
    ]


def shaped_place():
    """Start target at 10, end target at 30, soft up to 40."""
    return [
        PotRange(kind=PotRangeKind.START_BEFORE, start=0, end=10, pressure_start=0, pressure_end=1),
        PotRange(kind=PotRangeKind.START_AFTER, start=10, end=20, pressure_start=1, pressure_end=0),
        PotRange(kind=PotRangeKind.END_BEFORE, start=20, end=30, pressure_start=0, pressure_end=1),
        PotRange(kind=PotRangeKind.END_AFTER, start=30, end=40, pressure_start=1, pressure_end=0),
    ]


class TestSegments:
    def test_flat_window_is_a_step_up_and_down(self):
        segments = place_to_segments(flat_place(10, 20, 0.5))
        assert [(s.start, s.end, s.pressure_start, s.pressure_end) for s in segments] == [
            (10, 10, 0.5, 0.5),
            (20, 20, -0.5, -0.5),
        ]

    def test_shaped_window_ramps(self):
        segments = place_to_segments(shaped_place())
        assert [(s.start, s.end) for s in segments] == [(0, 10), (30, 40), (40, 40)]

    def test_missing_dimension_has_no_segments(self):
        assert place_to_segments(flat_place(0, 10)[:1]) == []


class TestPressureChunks:
    def test_no_potentials(self, small_config):
        chunks = compute_pressure_chunks(small_config, [])
        assert profile(chunks) == [(0, 100, 0, 0)]

    def test_flat_window(self, small_config):
        chunks = compute_pressure_chunks(small_config, [make_potentiality(1, [flat_place(10, 20, 0.5)])])
        assert profile(chunks) == [(0, 10, 0, 0), (10, 20, 0.5, 0.5), (20, 100, 0, 0)]

    def test_shaped_window(self, small_config):
        chunks = compute_pressure_chunks(small_config, [make_potentiality(1, [shaped_place()])])
        assert profile(chunks) == [
            (0, 10, 0, 1),
            (10, 30, 1, 1),
            (30, 40, 1, 0),
            (40, 100, 0, 0),
        ]

    def test_overlapping_windows_add_up(self, small_config):
        potentials = [
            make_potentiality(1, [flat_place(10, 30, 0.25)]),
            make_potentiality(2, [flat_place(20, 40, 0.5)]),
        ]
        chunks = compute_pressure_chunks(small_config, potentials)
        assert profile(chunks) == [
            (0, 10, 0, 0),
            (10, 20, 0.25, 0.25),
            (20, 30, 0.75, 0.75),
            (30, 40, 0.5, 0.5),
            (40, 100, 0, 0),
        ]

    def test_several_places_of_one_potential(self, small_config):
        potential = make_potentiality(1, [flat_place(0, 10, 0.3), flat_place(50, 60, 0.3)])
        chunks = compute_pressure_chunks(small_config, [potential])
        assert [c.start for c in chunks] == [0, 10, 50, 60]
        assert chunks[2].pressure_start == pytest.approx(0.3)

    def test_chunks_cover_horizon(self, small_config):
        potentials = [
            make_potentiality(1, [shaped_place()]),
            make_potentiality(2, [flat_place(5, 95, 0.1)]),
        ]
        chunks = compute_pressure_chunks(small_config, potentials)
        assert chunks[0].start == 0
        assert chunks[-1].end == 100
        assert all(a.end == b.start for a, b in zip(chunks, chunks[1:]))


class TestChunkHelpers:
    def test_split_keeps_line(self):
        chunk = PressureChunk(start=0, end=10, pressure_start=0, pressure_end=1)
        left, right = split_chunks([chunk], 4)
        assert (left.end, right.start) == (4, 4)
        assert left.pressure_end == pytest.approx(0.4)
        assert right.pressure_start == pytest.approx(0.4)

    def test_split_on_edge_is_noop(self):
        chunk = PressureChunk(start=0, end=10)
        assert split_chunks([chunk], 10) == [chunk]

    def test_area(self):
        assert compute_pressure_area(PressureChunk(start=0, end=10, pressure_start=0, pressure_end=1)) == 5

    def test_clip(self):
        chunk = PressureChunk(start=0, end=10, pressure_start=0, pressure_end=1)
        clipped = clip_chunk(chunk, 5, 20)
        assert (clipped.start, clipped.end) == (5, 10)
        assert clipped.pressure_start == pytest.approx(0.5)
        assert clip_chunk(chunk, 10, 20) is None

    def test_area_between(self):
        chunks = [
            PressureChunk(start=0, end=10, pressure_start=1, pressure_end=1),
            PressureChunk(start=10, end=20, pressure_start=0, pressure_end=0),
        ]
        assert area_between(chunks, 5, 15) == pytest.approx(5)
        assert area_between(chunks, 12, 20) == 0
