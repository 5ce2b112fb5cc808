from datetime import datetime

import pytest

from groupbot.clock import Clock, CronSchedule, build_alert_message
from groupbot.timer import get_filled_cron_timer, get_filled_timer


def _ignore(self_id, group_id, message):
    return None


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "timers.db")


def test_cron_next_daily():
    s = CronSchedule("30 8 * * *")
    assert s.next_after(datetime(2022, 3, 9, 10, 0)) == datetime(2022, 3, 10, 8, 30)


def test_cron_next_weekdays():
    s = CronSchedule("0 10 * * 1-5")
    assert s.next_after(datetime(2022, 3, 11, 11, 0)) == datetime(2022, 3, 14, 10, 0)


def test_cron_dom_or_dow():
    s = CronSchedule("0 0 13 * 5")
    assert s.next_after(datetime(2022, 3, 9, 12, 0)) == datetime(2022, 3, 11, 0, 0)


def test_cron_step_and_names_and_descriptor():
    assert CronSchedule("*/15 * * * *").next_after(datetime(2022, 3, 9, 10, 7)) == datetime(
        2022, 3, 9, 10, 15
    )
    assert CronSchedule("0 9 * * sun").next_after(datetime(2022, 3, 9)) == datetime(
        2022, 3, 13, 9, 0
    )
    assert CronSchedule("@daily").next_after(datetime(2022, 3, 9, 10, 0)) == datetime(
        2022, 3, 10, 0, 0
    )
    assert CronSchedule("0 0 1 jan *").next_after(datetime(2022, 3, 9)) == datetime(2023, 1, 1)


def test_cron_matches():
    s = CronSchedule("30 8 * * *")
    assert s.matches(datetime(2022, 3, 9, 8, 30)) is True
    assert s.matches(datetime(2022, 3, 9, 8, 31)) is False


@pytest.mark.parametrize("expr", ["bad", "61 * * * *", "* * *", "0 0 0 * *", "*/0 * * * *", "@every 1h"])
def test_cron_invalid(expr):
    with pytest.raises(ValueError):
        CronSchedule(expr)


def test_build_alert_message():
    plain = build_alert_message(get_filled_cron_timer("0 8 * * *", "起床", "", 0, 1))
    assert plain == [
        {"type": "at", "data": {"qq": "all"}},
        {"type": "text", "data": {"text": "起床"}},
    ]
    with_image = build_alert_message(
        get_filled_cron_timer("0 8 * * *", "起床", "http://example.com/a.png", 0, 1)
    )
    assert with_image[-1] == {
        "type": "image",
        "data": {"file": "http://example.com/a.png", "cache": "0"},
    }


def test_source_clock_case(db_path):
    first = Clock(db_path, _ignore)
    first.add_timer_into_db(get_filled_timer(["", "12", "-1", "12", "0", "", "test"], 0, 0, False))
    assert first.list_timers(0) == []
    first.close()
    with Clock(db_path, _ignore) as second:
        assert second.list_timers(0) == ["12月1周12:0\n"]


def test_register_and_cancel_cron(db_path):
    with Clock(db_path, _ignore) as clock:
        t = get_filled_cron_timer("0 8 * * *", "起床", "", 0, 5)
        assert clock.register_timer(t, True) is True
        key = t.timer_id()
        assert t.id == key
        assert clock.get_timer(key) is t
        assert clock.list_timers(5) == ["0 8 * * *\n"]
        assert clock.list_timers(6) == []
        assert clock.cancel_timer(key) is True
        assert clock.get_timer(key) is None
        assert clock.cancel_timer(key) is False


def test_register_invalid_cron(db_path):
    with Clock(db_path, _ignore) as clock:
        t = get_filled_cron_timer("* * *", "x", "", 0, 5)
        assert clock.register_timer(t, True) is False
        assert t.alert.startswith("expected exactly 5 fields")
        assert clock.get_timer(t.timer_id()) is None


def test_saved_timers_reload_and_cancel_persists(db_path):
    t = get_filled_timer(["", "每", "每日", "8", "0", "", "x"], 0, 9, False)
    with Clock(db_path, _ignore) as clock:
        assert clock.register_timer(t, True) is True
        assert clock.list_timers(9) == ["每月每日0周8:0\n".replace("每日0周", "每日")]
    with Clock(db_path, _ignore) as clock:
        loaded = clock.get_timer(t.timer_id())
        assert loaded is not None
        assert loaded.info() == t.info()
        assert clock.cancel_timer(t.timer_id()) is True
    with Clock(db_path, _ignore) as clock:
        assert clock.list_timers(9) == []


def test_reregister_disables_previous(db_path):
    with Clock(db_path, _ignore) as clock:
        parts = ["", "每", "周六", "16", "30", "", "x"]
        first = get_filled_timer(parts, 0, 3, False)
        second = get_filled_timer(parts, 0, 3, False)
        clock.register_timer(first, True)
        clock.register_timer(second, True)
        assert first.en() is False
        assert second.en() is True
        assert clock.get_timer(first.id) is second


def test_disabled_date_timer_not_running(db_path):
    with Clock(db_path, _ignore) as clock:
        t = get_filled_timer(["", "3", "1日", "8", "0"], 0, 3, True)
        assert clock.register_timer(t, True) is False
        assert clock.get_timer(t.id) is t
        assert clock.list_timers(3) == ["3月1日0周8:0\n".replace("日0周", "日")]