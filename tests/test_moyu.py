from datetime import datetime

import pytest

from groupbot.moyu import (
    CLOSING,
    GREETING,
    Holiday,
    build_notice,
    format_holiday,
    parse_holiday,
    weekend_text,
)

HOLIDAYS = [
    ("元旦", 1, 2023, 1, 1),
    ("春节", 7, 2023, 1, 21),
    ("清明节", 1, 2022, 4, 3),
    ("劳动节", 1, 2022, 4, 30),
    ("端午节", 1, 2022, 6, 3),
    ("中秋节", 1, 2022, 9, 10),
    ("国庆节", 7, 2022, 10, 1),
]


def test_format_holiday():
    assert format_holiday(1, 2023, 1, 1) == "1_2023_1_1"
    assert format_holiday(7, 2022, 10, 1) == "7_2022_10_1"


@pytest.mark.parametrize("name,days,year,month,day", HOLIDAYS)
def test_round_trip(name, days, year, month, day):
    holiday = parse_holiday(name, format_holiday(days, year, month, day))
    assert holiday.name == name
    assert holiday.date == datetime(year, month, day)
    assert holiday.duration.days == days


def test_parse_malformed():
    with pytest.raises(ValueError):
        parse_holiday("元旦", "not a date")


def test_describe_countdown():
    holiday = Holiday("国庆节", 7, 2022, 10, 1)
    assert holiday.describe(datetime(2022, 9, 30, 12)) == "距离国庆节还有: 0.50天！"


def test_describe_during_and_after():
    holiday = Holiday("国庆节", 7, 2022, 10, 1)
    assert holiday.describe(datetime(2022, 10, 3)) == "好好享受 国庆节 假期吧!"
    assert holiday.describe(datetime(2022, 10, 8)) == "好好享受 国庆节 假期吧!"
    assert holiday.describe(datetime(2022, 10, 9)) == "今年 国庆节 假期已过"


def test_weekend_text():
    assert weekend_text(datetime(2022, 10, 1)) == "好好享受周末吧！"
    assert weekend_text(datetime(2022, 10, 2)) == "好好享受周末吧！"
    assert weekend_text(datetime(2022, 10, 3)) == "距离周末还有:4天！"
    assert weekend_text(datetime(2022, 10, 7)) == "距离周末还有:0天！"


def test_build_notice():
    now = datetime(2022, 9, 30, 10)
    holidays = [Holiday(*entry) for entry in HOLIDAYS]
    text = build_notice(now, holidays)
    assert text.startswith("2022-09-30" + GREETING)
    assert text.endswith("\n" + CLOSING)
    lines = text.split("\n")
    assert "今年 清明节 假期已过" in lines
    assert sum(1 for line in lines if "国庆节" in line) == 1
    assert weekend_text(now) in text