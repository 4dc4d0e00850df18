"""
Tests for placement masks.

Covers:
- Calendar restriction pipeline
- Link masks (start/end origins, several materials, several links)
- The user-state guard
- MaskBuilder composition
"""

import pytest

from allocation_models import (
    LinkOrigin,
    Material,
    QueryLink,
    Range,
    RestrictionCondition,
    TimeRestriction,
    TimeRestrictions,
)
from pressure_scheduler.constraints import (
    UNSATISFIABLE_MASK,
    MaskBuilder,
    UserStateFailure,
    guard_user_state,
    link_to_mask,
    time_restrictions_to_mask,
)
from pressure_scheduler.transforms import open_state_manager
from tests.builders import HOUR, START, boundary, duration, make_query


def link(query_id, origin, minimum, target, maximum, **fields):
    return QueryLink(
        query_id=query_id,
        origin=origin,
        distance=boundary(target=target, minimum=minimum, maximum=maximum),
        **fields,
    )


class TestTimeRestrictionsMask:
    def test_no_restrictions(self, config):
        assert time_restrictions_to_mask(config, None) == [config.horizon]

    def test_hour_restriction(self, config):
        restrictions = TimeRestrictions(
            hour=TimeRestriction(condition=RestrictionCondition.IN_RANGE, ranges=[(9, 17)])
        )
        assert time_restrictions_to_mask(config, restrictions) == [
            Range(start=START + 9 * HOUR, end=START + 17 * HOUR)
        ]

    def test_weekday_then_hour(self, config):
        # 2024-01-01 is a Monday (weekday 1)
        restrictions = TimeRestrictions(
            weekday=TimeRestriction(condition=RestrictionCondition.OUT_RANGE, ranges=[(1, 2)]),
            hour=TimeRestriction(condition=RestrictionCondition.IN_RANGE, ranges=[(9, 17)]),
        )
        assert time_restrictions_to_mask(config, restrictions) == []


class TestLinkMask:
    def test_from_material_end(self, small_config):
        materials = [Material(query_id=1, start=0, end=5)]
        query = make_query(2, dur=duration(10), links=[link(1, LinkOrigin.END, 5, 8, 10)])
        assert link_to_mask(materials, small_config, query) == [Range(start=10, end=25)]

    def test_from_material_start_with_negative_distance(self, small_config):
        materials = [Material(query_id=1, start=15, end=20)]
        query = make_query(2, dur=duration(4), links=[link(1, LinkOrigin.START, -10, -8, -5)])
        assert link_to_mask(materials, small_config, query) == [Range(start=5, end=14)]

    def test_union_over_materials(self, small_config):
        materials = [
            Material(query_id=1, potential_id=0, split_id=0, start=0, end=5),
            Material(query_id=1, potential_id=0, split_id=1, start=40, end=50),
        ]
        query = make_query(2, dur=duration(2), links=[link(1, LinkOrigin.END, 0, 1, 2)])
        assert link_to_mask(materials, small_config, query) == [
            Range(start=5, end=9),
            Range(start=50, end=54),
        ]

    def test_split_and_potential_filters(self, small_config):
        materials = [
            Material(query_id=1, potential_id=0, split_id=0, start=0, end=5),
            Material(query_id=1, potential_id=0, split_id=1, start=40, end=50),
            Material(query_id=1, potential_id=1, start=60, end=70),
        ]
        query = make_query(2, dur=duration(2), links=[link(1, LinkOrigin.END, 0, 1, 2, split_id=1)])
        assert link_to_mask(materials, small_config, query) == [Range(start=50, end=54)]

    def test_several_links_intersect(self, small_config):
        materials = [
            Material(query_id=1, start=10, end=20),
            Material(query_id=3, start=30, end=40),
        ]
        query = make_query(2, dur=duration(2), links=[
            link(1, LinkOrigin.END, 10, 11, 12),
            link(3, LinkOrigin.START, 2, 3, 4),
        ])
        assert link_to_mask(materials, small_config, query) == [Range(start=32, end=34)]

    def test_unplaced_target_blocks_everything(self, small_config):
        query = make_query(2, dur=duration(2), links=[link(1, LinkOrigin.END, 0, 1, 2)])
        assert link_to_mask([], small_config, query) == []

    def test_no_links_allows_horizon(self, small_config):
        assert link_to_mask([], small_config, make_query(2, dur=duration(2))) == [small_config.horizon]


class TestUserStateGuard:
    def test_errors_become_unsatisfiable_mask(self):
        failures = []

        def handler(query, potentials, materials):
            raise RuntimeError("resource missing")

        guarded = guard_user_state(handler, failures.append)
        assert guarded(make_query(7, dur=duration(1)), [], []) == UNSATISFIABLE_MASK
        assert failures == [UserStateFailure(query_id=7, reason="resource missing")]

    def test_own_materials_are_hidden(self):
        seen = []

        def handler(query, potentials, materials):
            seen.extend(materials)
            return [Range(start=0, end=1)]

        materials = [Material(query_id=1, start=0, end=1), Material(query_id=2, start=1, end=2)]
        guard_user_state(handler)(make_query(1, dur=duration(1)), [], materials)
        assert [m.query_id for m in seen] == [2]


class TestMaskBuilder:
    def test_combines_calendar_links_and_user_state(self, small_config):
        def handler(query, potentials, materials):
            return [Range(start=0, end=30)]

        builder = MaskBuilder(small_config, handler)
        query = make_query(
            2, dur=duration(5),
            links=[link(1, LinkOrigin.END, 0, 5, 10)],
        )
        materials = [Material(query_id=1, start=10, end=20)]
        assert builder.build(query, [], materials) == [Range(start=20, end=30)]

    def test_calendar_mask_is_cached(self, config):
        builder = MaskBuilder(config, open_state_manager(config, []))
        query = make_query(1, dur=duration(HOUR))
        assert builder.calendar_mask(query) is builder.calendar_mask(query)

    def test_failing_handler_reports(self, small_config):
        failures = []

        def handler(query, potentials, materials):
            raise ValueError("nope")

        builder = MaskBuilder(small_config, handler, failures.append)
        assert builder.build(make_query(4, dur=duration(1)), [], []) == []
        assert failures[0].query_id == 4


@pytest.mark.parametrize("origin,expected", [
    (LinkOrigin.START, Range(start=12, end=16)),
    (LinkOrigin.END, Range(start=22, end=26)),
])
def test_link_origin(small_config, origin, expected):
    materials = [Material(query_id=1, start=10, end=20)]
    query = make_query(2, dur=duration(4), links=[link(1, origin, 2, 2, 2)])
    assert link_to_mask(materials, small_config, query) == [expected]
