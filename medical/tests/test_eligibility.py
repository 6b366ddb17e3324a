from medical.eligibility import is_eligible, window_bounds
from medical.models import AgeWindow


def window(min_age, max_age, unit):
    return AgeWindow(min_age=min_age, max_age=max_age, unit=unit)


def test_window_bounds_in_days():
    assert window_bounds(window(11, 15, 'months')) == (334, 456)


def test_bounds_are_inclusive():
    windows = [window(60, 90, 'days')]
    assert is_eligible(60, windows)
    assert is_eligible(90, windows)
    assert not is_eligible(59, windows)
    assert not is_eligible(91, windows)


def test_any_matching_window_is_enough():
    windows = [window(0, 2, 'months'), window(12, 15, 'months')]
    assert is_eligible(30, windows)
    assert is_eligible(400, windows)
    assert not is_eligible(100, windows)


def test_overlapping_windows_behave_as_union():
    windows = [window(0, 200, 'days'), window(100, 300, 'days')]
    for age in (0, 150, 250, 300):
        assert is_eligible(age, windows) == any(is_eligible(age, [w]) for w in windows)
    assert not is_eligible(301, windows)


def test_no_windows_means_never_eligible():
    assert not is_eligible(100, [])


def test_catch_up_tolerance_extends_upper_bound():
    windows = [window(365, 395, 'days')]
    assert not is_eligible(400, windows)
    assert is_eligible(400, windows, catch_up_days=30)
    assert not is_eligible(500, windows, catch_up_days=30)
    assert not is_eligible(300, windows, catch_up_days=30)
