"""
Tests for the calendar expansion of time restrictions (UTC).

Weekdays count from Sunday (0); months count from January (0).
"""

from datetime import datetime, timezone

import pytest

from allocation_models import Range, RestrictionCondition, TimeRestriction
from pressure_scheduler.restrictions import (
    add_months,
    map_to_hour_range,
    map_to_month_range,
    map_to_time_restriction,
    map_to_weekday_range,
    start_of_week,
    to_datetime,
    to_timestamp,
)
from tests.builders import HOUR, START

DAY = 24 * HOUR


def ts(*args):
    return to_timestamp(datetime(*args, tzinfo=timezone.utc))


def weekday(timestamp):
    return to_datetime(timestamp).isoweekday() % 7


def month_index(timestamp):
    return to_datetime(timestamp).month - 1


def restriction(condition, ranges):
    return TimeRestriction(condition=condition, ranges=ranges)


class TestCalendarHelpers:
    def test_week_starts_on_sunday(self):
        monday = datetime(2024, 1, 1, 15, tzinfo=timezone.utc)
        assert start_of_week(monday) == datetime(2023, 12, 31, tzinfo=timezone.utc)

    def test_fractional_months(self):
        jan = datetime(2017, 1, 1, tzinfo=timezone.utc)
        assert add_months(jan, 6) == datetime(2017, 7, 1, tzinfo=timezone.utc)
        assert add_months(jan, 1.5) == datetime(2017, 2, 15, tzinfo=timezone.utc)

    def test_timestamp_roundtrip(self):
        assert to_timestamp(to_datetime(START)) == START


class TestHourRestrictions:
    def test_no_restriction_keeps_masks(self):
        masks = [Range(start=START, end=START + DAY)]
        assert map_to_time_restriction(None, map_to_hour_range)(masks) == masks

    def test_empty_in_range_allows_nothing(self):
        masks = [Range(start=START, end=START + DAY)]
        tr = restriction(RestrictionCondition.IN_RANGE, [])
        assert map_to_time_restriction(tr, map_to_hour_range)(masks) == []

    def test_in_range(self):
        tr = restriction(RestrictionCondition.IN_RANGE, [(5, 13)])
        result = map_to_time_restriction(tr, map_to_hour_range)([Range(start=START, end=START + DAY)])
        assert result == [Range(start=START + 5 * HOUR, end=START + 13 * HOUR)]

    def test_out_range(self):
        tr = restriction(RestrictionCondition.OUT_RANGE, [(5, 13)])
        result = map_to_time_restriction(tr, map_to_hour_range)([Range(start=START, end=START + DAY)])
        assert result == [
            Range(start=START, end=START + 5 * HOUR),
            Range(start=START + 13 * HOUR, end=START + DAY),
        ]

    def test_fractional_hours(self):
        tr = restriction(RestrictionCondition.IN_RANGE, [(8.5, 9.25)])
        result = map_to_time_restriction(tr, map_to_hour_range)([Range(start=START, end=START + DAY)])
        assert result == [Range(start=START + 8.5 * HOUR, end=START + 9.25 * HOUR)]

    def test_range_spilling_over_midnight(self):
        tr = restriction(RestrictionCondition.IN_RANGE, [(22, 26)])
        result = map_to_hour_range([Range(start=22, end=26)], Range(start=START, end=START + DAY))
        assert Range(start=START - 2 * HOUR, end=START + 2 * HOUR) in result
        masked = map_to_time_restriction(tr, map_to_hour_range)([Range(start=START, end=START + DAY)])
        assert masked == [
            Range(start=START, end=START + 2 * HOUR),
            Range(start=START + 22 * HOUR, end=START + DAY),
        ]

    def test_every_day_of_a_longer_mask(self):
        tr = restriction(RestrictionCondition.IN_RANGE, [(9, 10)])
        result = map_to_time_restriction(tr, map_to_hour_range)([Range(start=START, end=START + 3 * DAY)])
        assert len(result) == 3
        assert all(r.length == pytest.approx(HOUR) for r in result)


class TestWeekdayRestrictions:
    def test_during_range(self):
        mask = Range(start=ts(2017, 12, 3), end=ts(2017, 12, 9))
        tr = restriction(RestrictionCondition.IN_RANGE, [(3, 6)])
        result = map_to_time_restriction(tr, map_to_weekday_range)([mask])
        assert len(result) == 1
        assert weekday(result[0].start) == 3
        assert weekday(result[0].end) == 6

    def test_overlapping_range(self):
        tr = restriction(RestrictionCondition.IN_RANGE, [(3, 6)])
        late = map_to_time_restriction(tr, map_to_weekday_range)(
            [Range(start=ts(2017, 12, 7), end=ts(2017, 12, 9))]
        )
        early = map_to_time_restriction(tr, map_to_weekday_range)(
            [Range(start=ts(2017, 12, 3), end=ts(2017, 12, 8))]
        )
        assert len(late) == 1
        assert (weekday(late[0].start), weekday(late[0].end)) == (4, 6)
        assert len(early) == 1
        assert (weekday(early[0].start), weekday(early[0].end)) == (3, 5)


class TestMonthRestrictions:
    def test_during_range(self):
        mask = Range(start=ts(2017, 1, 1), end=ts(2017, 12, 31))
        tr = restriction(RestrictionCondition.IN_RANGE, [(6, 7)])
        result = map_to_time_restriction(tr, map_to_month_range)([mask])
        assert len(result) == 1
        assert month_index(result[0].start) == 6
        assert month_index(result[0].end) == 7

    def test_overlapping_range(self):
        tr = restriction(RestrictionCondition.IN_RANGE, [(4, 7)])
        late = map_to_time_restriction(tr, map_to_month_range)(
            [Range(start=ts(2017, 7, 1), end=ts(2017, 12, 31))]
        )
        early = map_to_time_restriction(tr, map_to_month_range)(
            [Range(start=ts(2017, 2, 1), end=ts(2017, 7, 31))]
        )
        assert len(late) == 1
        assert (month_index(late[0].start), month_index(late[0].end)) == (6, 7)
        assert len(early) == 1
        assert (month_index(early[0].start), month_index(early[0].end)) == (4, 6)
