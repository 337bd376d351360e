"""
Schedule window evaluation.

Windows are written in business-local wall clock (-03:00) and both bounds
are inclusive.
"""

from datetime import datetime, timedelta, timezone

import pytest

from boxcount.services.schedule import (
    is_within_window,
    parse_window_date,
    parse_window_time,
    window_instant,
)
from boxcount.time_utils import parse_utc_offset


SAO_PAULO = timezone(timedelta(hours=-3))
WINDOW = ("2024-01-01", "08:00", "2024-01-01", "18:00")


def local(hour, minute=0, day=1):
    return datetime(2024, 1, day, hour, minute, tzinfo=SAO_PAULO)


class TestWindowBoundaries:
    def test_one_minute_before_end_is_inside(self):
        assert is_within_window(*WINDOW, now=local(17, 59), tz=SAO_PAULO) is True

    def test_one_minute_after_end_is_outside(self):
        assert is_within_window(*WINDOW, now=local(18, 1), tz=SAO_PAULO) is False

    @pytest.mark.parametrize("hour", [8, 18])
    def test_bounds_are_inclusive(self, hour):
        assert is_within_window(*WINDOW, now=local(hour), tz=SAO_PAULO) is True

    def test_before_start_is_outside(self):
        assert is_within_window(*WINDOW, now=local(7, 59), tz=SAO_PAULO) is False

    def test_naive_now_is_utc(self):
        # 20:59 UTC is 17:59 in Sao Paulo
        assert is_within_window(*WINDOW, now=datetime(2024, 1, 1, 20, 59), tz=SAO_PAULO) is True
        assert is_within_window(*WINDOW, now=datetime(2024, 1, 1, 21, 1), tz=SAO_PAULO) is False

    def test_now_in_another_zone_is_converted(self):
        utc_now = datetime(2024, 1, 1, 11, 30, tzinfo=timezone.utc)  # 08:30 local
        assert is_within_window(*WINDOW, now=utc_now, tz=SAO_PAULO) is True

    def test_window_spanning_midnight(self):
        window = ("2024-01-01", "22:00", "2024-01-02", "02:00")
        assert is_within_window(*window, now=local(23, 30), tz=SAO_PAULO) is True
        assert is_within_window(*window, now=local(1, 0, day=2), tz=SAO_PAULO) is True
        assert is_within_window(*window, now=local(3, 0, day=2), tz=SAO_PAULO) is False

    def test_inside_set_has_no_holes(self):
        start, end = local(8), local(18)
        now = start
        while now <= end:
            assert is_within_window(*WINDOW, now=now, tz=SAO_PAULO), now
            now += timedelta(minutes=17)

    def test_end_before_start_is_never_inside(self):
        window = ("2024-01-01", "18:00", "2024-01-01", "08:00")
        for hour in (7, 8, 12, 18, 19):
            assert is_within_window(*window, now=local(hour), tz=SAO_PAULO) is False


class TestIncompleteWindow:
    @pytest.mark.parametrize(
        "window",
        [
            ("", "08:00", "2024-01-01", "18:00"),
            ("2024-01-01", "", "2024-01-01", "18:00"),
            ("2024-01-01", "08:00", None, "18:00"),
            ("2024-01-01", "08:00", "2024-01-01", None),
        ],
    )
    def test_missing_part_is_outside(self, window):
        assert is_within_window(*window, now=local(12), tz=SAO_PAULO) is False

    @pytest.mark.parametrize(
        "window",
        [
            ("2024-13-01", "08:00", "2024-01-01", "18:00"),
            ("2024-01-01", "25:00", "2024-01-01", "18:00"),
            ("yesterday", "08:00", "2024-01-01", "18:00"),
            ("2024-01-01", "8h", "2024-01-01", "18:00"),
        ],
    )
    def test_unparseable_part_is_outside(self, window):
        assert is_within_window(*window, now=local(12), tz=SAO_PAULO) is False


class TestParsing:
    def test_time_accepts_seconds(self):
        assert parse_window_time("08:00:30").second == 30

    def test_time_rejects_single_digit_hour(self):
        assert parse_window_time("8:00") is None

    def test_date_rejects_non_string(self):
        assert parse_window_date(20240101) is None

    def test_window_instant_is_utc_naive(self):
        instant = window_instant("2024-01-01", "08:00", SAO_PAULO)
        assert instant == datetime(2024, 1, 1, 11, 0)
        assert instant.tzinfo is None

    @pytest.mark.parametrize(
        "raw,hours",
        [("-03:00", -3), ("+0530", 5.5), ("Z", 0)],
    )
    def test_parse_utc_offset(self, raw, hours):
        tz = parse_utc_offset(raw)
        assert tz.utcoffset(None) == timedelta(hours=hours)

    @pytest.mark.parametrize("raw", ["", "America/Sao_Paulo", "-3", "+25:00"])
    def test_parse_utc_offset_rejects_garbage(self, raw):
        with pytest.raises(ValueError):
            parse_utc_offset(raw)
