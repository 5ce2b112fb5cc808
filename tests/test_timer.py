from datetime import datetime

import pytest

from groupbot.timer import (
    Timer,
    chinese_char_to_int,
    chinese_num_to_int,
    first_week,
    get_filled_cron_timer,
    get_filled_timer,
)


def test_packed_fields_all_ones_read_as_every():
    t = Timer(emdwhm=0xFFFFFF)
    assert t.en() is True
    assert (t.month(), t.day(), t.week(), t.hour(), t.minute()) == (-1, -1, -1, -1, -1)


def test_packed_fields_zero():
    t = Timer()
    assert t.en() is False
    assert (t.month(), t.day(), t.week(), t.hour(), t.minute()) == (0, 0, 0, 0, 0)


def test_source_clock_case_fields():
    t = get_filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False)
    assert t.en() is True
    assert (t.month(), t.day(), t.week(), t.hour(), t.minute()) == (12, 0, 1, 12, 0)
    assert t.alert == "test"
    assert t.info() == "[0]12月0日1周12:0"


def test_chinese_date_fields():
    t = get_filled_timer(["", "三", "二十五日", "十", "三十", "", "开会"], 1, 2, False)
    assert (t.month(), t.day(), t.hour(), t.minute()) == (3, 25, 10, 30)
    assert t.self_id == 1 and t.grp_id == 2
    assert t.alert == "开会"


def test_weekly_every_and_sunday():
    every = get_filled_timer(["", "每", "每周", "8", "0", "", "x"], 0, 0, False)
    assert every.week() == -1 and every.month() == -1
    sunday = get_filled_timer(["", "每", "周天", "8", "0", "", "x"], 0, 0, False)
    assert sunday.week() == 0


def test_zhou_ri_is_read_as_a_day():
    t = get_filled_timer(["", "每", "周日", "8", "0", "", "x"], 0, 0, False)
    assert t.alert == "日期非法2！"
    assert t.en() is False


@pytest.mark.parametrize(
    "parts, alert",
    [
        (["", "13", "1日", "8", "0", "", "x"], "月份非法！"),
        (["", "3", "32日", "8", "0", "", "x"], "日期非法2！"),
        (["", "3", "1日", "24", "0", "", "x"], "小时非法！"),
        (["", "3", "1日", "8", "60", "", "x"], "分钟非法！"),
    ],
)
def test_illegal_values(parts, alert):
    t = get_filled_timer(parts, 0, 0, False)
    assert t.alert == alert
    assert t.en() is False


def test_url_accepted_and_rejected():
    ok = get_filled_timer(["", "3", "1日", "8", "0", "用http://example.com/a.png", "x"], 0, 0, False)
    assert ok.url == "http://example.com/a.png"
    assert ok.en() is True
    bad = get_filled_timer(["", "3", "1日", "8", "0", "用ftp://example.com/a", "x"], 0, 0, False)
    assert bad.url == "illegal"
    assert bad.en() is False


def test_match_date_only_not_enabled():
    t = get_filled_timer(["", "3", "1日", "8", "0"], 0, 7, True)
    assert t.en() is False
    assert t.grp_id == 7
    assert t.alert == ""


@pytest.mark.parametrize(
    "text, value",
    [("每", -1), ("每二", -2), ("12", 12), ("七", 7), ("十二", 12), ("二十", 20), ("三十", 30), ("十", 10)],
)
def test_chinese_num_to_int(text, value):
    assert chinese_num_to_int(text) == value


def test_chinese_num_empty_raises():
    with pytest.raises(ValueError):
        chinese_num_to_int("")


@pytest.mark.parametrize("char, value", [("日", 7), ("天", 7), ("零", 0), ("十", 10), ("x", 0)])
def test_chinese_char_to_int(char, value):
    assert chinese_char_to_int(char) == value


def test_timer_id_is_stable_and_depends_on_group():
    a = get_filled_timer(["", "3", "1日", "8", "0", "", "x"], 0, 1, False)
    b = get_filled_timer(["", "3", "1日", "8", "0"], 0, 1, True)
    c = get_filled_timer(["", "3", "1日", "8", "0", "", "x"], 0, 2, False)
    assert a.timer_id() == b.timer_id()
    assert a.timer_id() != c.timer_id()
    assert 0 <= a.timer_id() < 2**32


def test_cron_timer_info_and_id():
    t = get_filled_cron_timer("0 8 * * *", "起床", "", 10, 20)
    assert t.info() == "[20]0 8 * * *"
    assert t.timer_id() == Timer(cron="0 8 * * *", grp_id=20).timer_id()


def test_next_wake_weekly_source_case():
    t = get_filled_timer(["", "每", "周六", "16", "30", "", "x"], 0, 0, False)
    assert (t.month(), t.week(), t.hour(), t.minute()) == (-1, 6, 16, 30)
    now = datetime(2022, 3, 9, 10, 0, 0)
    wake = t.next_wake_time(now)
    assert wake == datetime(2022, 3, 12, 16, 30, 0)
    assert wake > now


def test_next_wake_daily():
    t = get_filled_timer(["", "每", "每日", "8", "0", "", "x"], 0, 0, False)
    assert t.next_wake_time(datetime(2022, 3, 9, 10, 0, 0)) == datetime(2022, 3, 10, 8, 0, 0)


def test_next_wake_fixed_date_and_rollover():
    t = get_filled_timer(["", "12", "25日", "10", "0", "", "x"], 0, 0, False)
    assert t.next_wake_time(datetime(2022, 3, 9, 10, 0, 0)) == datetime(2022, 12, 25, 10, 0, 0)
    assert t.next_wake_time(datetime(2022, 12, 26, 9, 0, 0)) == datetime(2023, 12, 25, 10, 0, 0)


def test_next_wake_every_minute():
    t = Timer(emdwhm=0x7FFFFF)
    now = datetime(2022, 3, 9, 10, 0, 15)
    assert t.next_wake_time(now) == datetime(2022, 3, 9, 10, 1, 15)


@pytest.mark.parametrize(
    "now",
    [datetime(2022, 1, 31, 23, 59), datetime(2022, 2, 28, 0, 0), datetime(2022, 12, 31, 17, 0)],
)
def test_next_wake_always_in_future(now):
    t = get_filled_timer(["", "每", "周六", "16", "30", "", "x"], 0, 0, False)
    assert t.next_wake_time(now) > now


def test_should_fire():
    t = get_filled_timer(["", "每", "每日", "8", "0", "", "x"], 0, 0, False)
    assert t.should_fire(datetime(2022, 3, 9, 8, 0)) is True
    assert t.should_fire(datetime(2022, 3, 9, 8, 1)) is False


def test_should_fire_weekday_and_disabled():
    t = get_filled_timer(["", "每", "周六", "16", "30", "", "x"], 0, 0, False)
    assert t.should_fire(datetime(2022, 3, 12, 16, 30)) is True
    assert t.should_fire(datetime(2022, 3, 11, 16, 30)) is False
    off = get_filled_timer(["", "每", "周六", "16", "30"], 0, 0, True)
    assert off.should_fire(datetime(2022, 3, 12, 16, 30)) is False


def test_first_week():
    assert first_week(datetime(2022, 3, 20, 9, 5), 6) == datetime(2022, 3, 5, 9, 5)
    assert first_week(datetime(2022, 3, 20), 2) == datetime(2022, 3, 1)
    with pytest.raises(ValueError):
        first_week(datetime(2022, 3, 20), 7)