"""Unit tests for the half-open interval helpers."""
from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from petcare.intervals import CandidateStarts, contains_interval, generate_candidate_starts, overlaps


def t(hour, minute=0):
    return datetime(2030, 6, 3, hour, minute)


@pytest.mark.parametrize(
    "a, b, expected",
    [
        ((t(10), t(11)), (t(10, 30), t(11, 30)), True),
        ((t(10), t(12)), (t(10, 30), t(11)), True),
        ((t(10), t(11)), (t(10), t(11)), True),
        ((t(10), t(11)), (t(11), t(12)), False),
        ((t(10), t(11)), (t(12), t(13)), False),
    ],
)
def test_overlaps_is_symmetric(a, b, expected):
    assert overlaps(*a, *b) is expected
    assert overlaps(*b, *a) is expected


def test_adjacent_intervals_do_not_overlap():
    assert overlaps(t(10, 30), t(11, 30), t(11, 30), t(12, 30)) is False
    assert overlaps(t(9, 30), t(10, 30), t(10, 30), t(11, 30)) is False


def test_one_minute_of_shared_time_is_an_overlap():
    assert overlaps(t(10), t(11, 1), t(11), t(12)) is True


def test_contains_interval_edges():
    assert contains_interval(t(10), t(12), t(11), t(12))
    assert contains_interval(t(10), t(12), t(10), t(12))
    assert not contains_interval(t(10), t(12), t(11, 15), t(12, 15))
    assert not contains_interval(t(10), t(12), t(9, 45), t(10, 45))


def test_candidate_starts_fill_block_at_step():
    starts = list(generate_candidate_starts(t(10), t(12), timedelta(minutes=60), timedelta(minutes=15)))

    assert starts == [t(10), t(10, 15), t(10, 30), t(10, 45), t(11)]


def test_candidate_starts_can_be_iterated_again():
    candidates = CandidateStarts(t(10), t(11), timedelta(minutes=30), timedelta(minutes=15))

    assert list(candidates) == [t(10), t(10, 15), t(10, 30)]
    assert list(candidates) == list(candidates)


def test_candidate_starts_clipped_to_window():
    block_start = datetime(2030, 6, 2, 22, 0)
    block_end = datetime(2030, 6, 3, 2, 0)

    starts = list(
        CandidateStarts(
            block_start,
            block_end,
            timedelta(minutes=60),
            timedelta(minutes=30),
            window_start=datetime(2030, 6, 3),
            window_end=datetime(2030, 6, 4),
        )
    )

    assert starts == [t(0), t(0, 30), t(1)]


def test_candidate_starts_empty_when_service_longer_than_block():
    assert list(CandidateStarts(t(10), t(10, 45), timedelta(minutes=60))) == []


def test_candidate_starts_rejects_non_positive_step():
    with pytest.raises(ValueError):
        CandidateStarts(t(10), t(12), timedelta(minutes=60), timedelta(0))
