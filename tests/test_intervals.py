from sloty.services.slots.calendar import Interval
from sloty.services.slots.intervals import clip, coalesce, find_containing, merge, subtract

from .conftest import ny


def iv(start_hour, end_hour, day=15) -> Interval:
    return Interval(ny(2024, 1, day, start_hour), ny(2024, 1, day, end_hour))


def test_merge_joins_overlapping_and_adjacent():
    assert merge([iv(12, 17), iv(9, 12), iv(10, 11)]) == [iv(9, 17)]


def test_merge_keeps_gaps_and_drops_empties():
    assert merge([iv(14, 15), iv(9, 10), iv(11, 11)]) == [iv(9, 10), iv(14, 15)]


def test_coalesce_streams_sorted_input():
    assert list(coalesce(iter([iv(9, 10), iv(10, 12), iv(13, 14)]))) == [iv(9, 12), iv(13, 14)]


def test_subtract_splits_interval():
    assert list(subtract([iv(9, 17)], [iv(12, 13)])) == [iv(9, 12), iv(13, 17)]


def test_subtract_trims_edges():
    assert list(subtract([iv(9, 17)], [iv(8, 10), iv(16, 18)])) == [iv(10, 16)]


def test_subtract_removes_covered_interval():
    assert list(subtract([iv(9, 12), iv(13, 17)], [iv(8, 12)])) == [iv(13, 17)]


def test_subtract_cut_spanning_several_intervals():
    base = [iv(9, 10), iv(11, 12), iv(13, 14)]
    assert list(subtract(base, [iv(9, 13, 15)])) == [iv(13, 14)]


def test_subtract_outside_cut_has_no_effect():
    assert list(subtract([iv(9, 17)], [iv(9, 17, day=16)])) == [iv(9, 17)]


def test_clip():
    assert list(clip([iv(8, 10), iv(11, 13), iv(14, 15)], iv(9, 12))) == [iv(9, 10), iv(11, 12)]


def test_find_containing():
    intervals = [iv(9, 12), iv(13, 17)]
    assert find_containing(intervals, iv(13, 14)) == iv(13, 17)
    assert find_containing(intervals, iv(11, 14)) is None
