import datetime as dt
import itertools

from breeding_timeline.bands import ZERO_BAND, Band, BandPair, normalize_bands
from breeding_timeline.dates import add_months, end_of_month, months_inclusive, parse_day


def test_parse_day_drops_time_and_rejects_garbage():
    assert parse_day("2026-03-01T22:30:00Z") == dt.date(2026, 3, 1)
    assert parse_day(dt.datetime(2026, 3, 1, 23, 59)) == dt.date(2026, 3, 1)
    assert parse_day("not-a-date") is None
    assert parse_day("") is None
    assert parse_day(20260301) is None
    assert parse_day(True) is None


def test_month_helpers_clamp_and_count():
    assert add_months(dt.date(2025, 1, 31), 1) == dt.date(2025, 2, 28)
    assert add_months(dt.date(2025, 11, 15), 3) == dt.date(2026, 2, 15)
    assert end_of_month(dt.date(2024, 2, 10)) == dt.date(2024, 2, 29)
    assert months_inclusive(dt.date(2026, 10, 1), dt.date(2028, 3, 31)) == 18


def test_normalize_bands_accepts_either_sign():
    expected = Band(risky_from=-5, risky_to=5, unlikely_from=-10, unlikely_to=10)

    assert normalize_bands(-5, 5, -10, 10) == expected
    assert normalize_bands(5, -5, 10, -10) == expected


def test_auto_widen_pushes_coinciding_unlikely_one_day_out():
    band = normalize_bands(-5, 5, -5, 5, auto_widen=True)

    assert band == Band(risky_from=-5, risky_to=5, unlikely_from=-6, unlikely_to=6)


def test_auto_widen_leaves_zero_risky_side_alone():
    band = normalize_bands(0, 5, 0, 5, auto_widen=True)

    assert band.unlikely_from == 0
    assert band.unlikely_to == 6


def test_without_auto_widen_coinciding_sides_stay_equal():
    assert normalize_bands(-5, 5, -5, 5) == Band(-5, 5, -5, 5)


def test_unlikely_is_widened_to_enclose_risky():
    assert normalize_bands(-5, 5, -2, 2) == Band(-5, 5, -5, 5)
    assert normalize_bands(5, 5, 2, 2, auto_widen=True) == Band(-5, 5, -6, 6)


def test_non_numeric_offsets_count_as_zero():
    assert normalize_bands("x", None, float("nan"), True) == ZERO_BAND
    assert BandPair().normalize(auto_widen=True) == ZERO_BAND


def test_band_invariant_holds_for_any_inputs():
    values = (-7, -1, 0, 1, 3, None, "2")
    for rf, rt, uf, ut in itertools.product(values, repeat=4):
        for widen in (False, True):
            band = normalize_bands(rf, rt, uf, ut, auto_widen=widen)
            assert band.unlikely_from <= band.risky_from <= 0 <= band.risky_to <= band.unlikely_to
            if widen and band.risky_from != 0:
                assert band.unlikely_from < band.risky_from
            if widen and band.risky_to != 0:
                assert band.unlikely_to > band.risky_to
