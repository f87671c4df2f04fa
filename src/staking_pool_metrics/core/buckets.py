"""Time bucket resolution for daily and hourly snapshots."""

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600


def day_id(timestamp: int) -> str:
    """
    Return the calendar-day bucket id containing ``timestamp``.

    Parameters
    ----------
    timestamp : int
        Block timestamp in seconds since epoch

    Returns
    -------
    str
        ``timestamp // 86400`` rendered as a string

    """
    return str(timestamp // SECONDS_PER_DAY)


def hour_id(timestamp: int) -> str:
    """Return the hour bucket id containing ``timestamp``."""
    return str(timestamp // SECONDS_PER_HOUR)
