from .ages import to_days


def window_bounds(window):
    """(min, max) of an age window in days."""
    return to_days(window.min_age, window.unit), to_days(window.max_age, window.unit)


def is_eligible(age_in_days, windows, catch_up_days=0):
    """
    True if the age falls inside any of the windows (bounds inclusive).

    ``catch_up_days`` stretches each window's upper bound, letting a child
    who has just aged out still be offered the vaccine. The default of 0 is
    the strict check; ScheduleGenerator passes
    ``SchedulerConfig.eligibility_catch_up_days`` (30), so a child aged 400
    days is offered a [365, 395]-day vaccine there but not here.
    """
    for window in windows:
        min_days, max_days = window_bounds(window)
        if min_days <= age_in_days <= max_days + catch_up_days:
            return True
    return False
