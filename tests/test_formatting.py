import math
from datetime import date, datetime, time, timedelta, timezone

import pytest

from core.warmlink.exceptions import ValidationError
from core.warmlink.formatting import (
    PLACEHOLDER,
    epoch_to_local,
    format_elapsed,
    format_epoch_local,
    format_local_datetime,
    format_minute_of_day,
    format_temp,
    format_warmup,
    local_to_epoch,
    parse_hhmm,
    parse_minute_of_day,
)

CET = timezone(timedelta(hours=1))


@pytest.mark.parametrize(
    "seconds, expected",
    [(45, "45s"), (90, "1m 30s"), (3725, "1h 2m"), (0, PLACEHOLDER), (-5, PLACEHOLDER), (math.nan, PLACEHOLDER)],
)
def test_format_elapsed(seconds, expected):
    assert format_elapsed(seconds) == expected


@pytest.mark.parametrize(
    "seconds, expected",
    [(600, "10 min"), (3600, "1 h"), (5400, "1 h 30 min"), (90, "2 min"), (None, PLACEHOLDER)],
)
def test_format_warmup(seconds, expected):
    assert format_warmup(seconds) == expected


def test_format_temp():
    assert format_temp(21.34) == "21.3"
    assert format_temp(math.nan) == PLACEHOLDER
    assert format_temp(None) == PLACEHOLDER


def test_hhmm_parsing():
    assert parse_hhmm("07:30") == time(7, 30)
    assert parse_minute_of_day("23:59") == 1439
    assert format_minute_of_day(450) == "07:30"
    for bad in ("7", "24:00", "12:60", "ab:cd", None):
        with pytest.raises(ValidationError):
            parse_hhmm(bad)


def test_local_conversion_round_trip_in_fixed_zone():
    epoch = local_to_epoch("2024-03-10", "07:30", CET)
    assert epoch == int(datetime(2024, 3, 10, 6, 30, tzinfo=timezone.utc).timestamp())
    assert format_local_datetime(epoch_to_local(epoch, CET)) == "2024-03-10 07:30"


def test_local_to_epoch_accepts_date_and_time_objects():
    assert local_to_epoch(date(2024, 3, 10), time(7, 30), CET) == local_to_epoch("2024-03-10", "07:30", CET)


def test_local_to_epoch_rejects_bad_date():
    with pytest.raises(ValidationError):
        local_to_epoch("10/03/2024", "07:30", CET)


def test_format_epoch_local():
    assert format_epoch_local(1700000000, CET) == "2023-11-14 23:13"
    assert format_epoch_local(None, CET) == PLACEHOLDER
    assert format_epoch_local(2**64 - 1, CET) == PLACEHOLDER
