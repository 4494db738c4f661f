"""Tests for segment planning and split parameter parsing."""

from __future__ import annotations

import math

import pytest

from app.core.exceptions import InvalidStrategyError
from app.models.split import EqualParts, FixedLength, Segment
from app.services.segment_planner import parse_strategy, plan, validate_strategy


def _pairs(segments: list[Segment]) -> list[tuple[float, float]]:
    return [(s.start_time, s.length) for s in segments]


def test_equal_parts_thirty_seconds_into_three() -> None:
    segments = plan(30.0, EqualParts(count=3))
    assert _pairs(segments) == [(0.0, 10.0), (10.0, 10.0), (20.0, 10.0)]
    assert [s.index for s in segments] == [0, 1, 2]
    assert [s.part_number for s in segments] == [1, 2, 3]


def test_fixed_length_last_segment_overshoots_source() -> None:
    segments = plan(25.0, FixedLength(seconds=10))
    assert _pairs(segments) == [(0.0, 10.0), (10.0, 10.0), (20.0, 10.0)]
    assert segments[-1].end_time == 30.0


@pytest.mark.parametrize("duration", [1.0, 7.5, 30.0, 61.234, 3599.9])
@pytest.mark.parametrize("count", [2, 3, 7, 10])
def test_equal_parts_covers_duration_evenly(duration: float, count: int) -> None:
    segments = plan(duration, EqualParts(count=count))
    assert len(segments) == count
    for i, segment in enumerate(segments):
        assert segment.start_time == pytest.approx(i * duration / count)
        assert segment.length == pytest.approx(duration / count)
    assert segments[-1].end_time == pytest.approx(duration)


@pytest.mark.parametrize("duration", [0.5, 10.0, 25.0, 59.99, 600.0])
@pytest.mark.parametrize("seconds", [1, 10, 60])
def test_fixed_length_count_and_overshoot(duration: float, seconds: int) -> None:
    segments = plan(duration, FixedLength(seconds=seconds))
    assert len(segments) == math.ceil(duration / seconds)
    assert [s.start_time for s in segments] == [i * seconds for i in range(len(segments))]
    assert all(s.length == seconds for s in segments)
    assert segments[-1].end_time >= duration


def test_exact_multiple_does_not_add_extra_segment() -> None:
    assert len(plan(30.0, FixedLength(seconds=10))) == 3


def test_planning_is_idempotent() -> None:
    assert plan(123.456, EqualParts(count=7)) == plan(123.456, EqualParts(count=7))
    assert plan(123.456, FixedLength(seconds=9)) == plan(123.456, FixedLength(seconds=9))


@pytest.mark.parametrize("duration", [0.0, -3.0])
def test_non_positive_duration_gives_empty_plan(duration: float) -> None:
    assert plan(duration, EqualParts(count=2)) == []
    assert plan(duration, FixedLength(seconds=5)) == []


def test_parse_equal_parts() -> None:
    assert parse_strategy("equalParts", "4") == EqualParts(count=4)


def test_parse_time_segments_ignores_other_field() -> None:
    assert parse_strategy("timeSegments", "abc", " 15 ") == FixedLength(seconds=15)


@pytest.mark.parametrize("raw", [None, "", "1", "0", "-2", "abc", "2.5"])
def test_parse_rejects_bad_parts_count(raw) -> None:
    with pytest.raises(InvalidStrategyError) as excinfo:
        parse_strategy("equalParts", raw, None)
    assert excinfo.value.status_code == 400
    assert "at least 2" in excinfo.value.message


@pytest.mark.parametrize("raw", [None, "", "0", "-1", "ten"])
def test_parse_rejects_bad_segment_duration(raw) -> None:
    with pytest.raises(InvalidStrategyError) as excinfo:
        parse_strategy("timeSegments", None, raw)
    assert "at least 1 second" in excinfo.value.message


@pytest.mark.parametrize("method", [None, "", "halves", "EQUALPARTS"])
def test_parse_rejects_unknown_method(method) -> None:
    with pytest.raises(InvalidStrategyError, match="Invalid split method"):
        parse_strategy(method, "3", "10")


@pytest.mark.parametrize(
    "strategy",
    [EqualParts(count=1), EqualParts(count=True), FixedLength(seconds=0.5), FixedLength(seconds=float("inf"))],
)
def test_validate_rejects_out_of_range(strategy) -> None:
    with pytest.raises(InvalidStrategyError):
        validate_strategy(strategy)


def test_validate_rejects_unknown_strategy_type() -> None:
    with pytest.raises(InvalidStrategyError):
        validate_strategy("equalParts")  # type: ignore[arg-type]


def test_parse_rejects_parts_count_above_limit() -> None:
    with pytest.raises(InvalidStrategyError, match="cannot exceed 1000"):
        parse_strategy("equalParts", "1000000", None, max_parts=1000)
    assert parse_strategy("equalParts", "1000", None, max_parts=1000) == EqualParts(count=1000)


def test_plan_rejects_fixed_length_count_above_limit() -> None:
    with pytest.raises(InvalidStrategyError) as excinfo:
        plan(3600.0, FixedLength(seconds=1), max_parts=100)
    assert excinfo.value.details == {"parts": 3600, "max_parts": 100}
    assert len(plan(100.0, FixedLength(seconds=1), max_parts=100)) == 100
