"""Good-morning and good-night bookkeeping: who rose or slept, and in what order."""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime, timedelta


def _stamp(when: datetime) -> str:
    return when.isoformat(sep=" ", timespec="microseconds")


class SleepDB:
    """Last sleep or wake time of each member, per group, kept in SQLite."""

    def __init__(self, path: str):
        self._lock = threading.RLock()
        self._db = sqlite3.connect(path, check_same_thread=False)
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS sleep_manage ("
                "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                "group_id INTEGER NOT NULL, user_id INTEGER NOT NULL, "
                "sleep_time TEXT NOT NULL)"
            )
            self._db.commit()

    def __enter__(self) -> SleepDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _record(self, gid: int, uid: int, now: datetime, since: datetime) -> tuple[int, timedelta]:
        elapsed = timedelta(0)
        with self._lock:
            row = self._db.execute(
                "SELECT sleep_time FROM sleep_manage WHERE group_id = ? AND user_id = ? "
                "ORDER BY id LIMIT 1",
                (gid, uid),
            ).fetchone()
            if row is None:
                self._db.execute(
                    "INSERT INTO sleep_manage (group_id, user_id, sleep_time) VALUES (?, ?, ?)",
                    (gid, uid, _stamp(now)),
                )
            else:
                elapsed = now - datetime.fromisoformat(row[0])
                self._db.execute(
                    "UPDATE sleep_manage SET sleep_time = ? WHERE group_id = ? AND user_id = ?",
                    (_stamp(now), gid, uid),
                )
            self._db.commit()
            (position,) = self._db.execute(
                "SELECT COUNT(*) FROM sleep_manage "
                "WHERE group_id = ? AND sleep_time <= ? AND sleep_time >= ?",
                (gid, _stamp(now), _stamp(since)),
            ).fetchone()
        return position, elapsed

    def sleep(self, gid: int, uid: int, now: datetime) -> tuple[int, timedelta]:
        """Record a good night; return the rank tonight and the time spent awake.

        Tonight starts at 21:00, the day before when it is past midnight.
        """
        if now.hour >= 21:
            since = now.replace(hour=21, minute=0, second=0)
        elif now.hour <= 3:
            since = now.replace(hour=21, minute=0, second=0) - timedelta(days=1)
        else:
            since = datetime.min
        return self._record(gid, uid, now, since)

    def get_up(self, gid: int, uid: int, now: datetime) -> tuple[int, timedelta]:
        """Record a good morning; return the rank since 06:00 and the time slept."""
        return self._record(gid, uid, now, now.replace(hour=6, minute=0, second=0))

    def close(self) -> None:
        with self._lock:
            self._db.close()


def time_duration(delta: timedelta) -> tuple[int, int, int]:
    """Whole hours, minutes and seconds in ``delta``, truncated toward zero."""
    micros = delta // timedelta(microseconds=1)
    sign = -1 if micros < 0 else 1
    seconds = abs(micros) // 1_000_000
    hours, rest = divmod(seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return sign * hours, sign * minutes, sign * seconds


def is_morning(hour: int) -> bool:
    """Good mornings count from 6 to 12 o'clock."""
    return 6 <= hour <= 12


def is_evening(hour: int) -> bool:
    """Good nights count from 21 o'clock to 3 o'clock."""
    return hour >= 21 or hour <= 3


def _is_blank(hours: int, minutes: int, seconds: int) -> bool:
    return (hours == 0 and minutes == 0 and seconds == 0) or hours >= 24


def good_morning_reply(position: int, slept: timedelta) -> str:
    hours, minutes, seconds = time_duration(slept)
    if _is_blank(hours, minutes, seconds):
        return f"早安成功！你是今天第{position}个起床的"
    return (
        f"早安成功！你的睡眠时长为{hours}时{minutes}分{seconds}秒,"
        f"你是今天第{position}个起床的"
    )


def good_night_reply(position: int, awake: timedelta) -> str:
    hours, minutes, seconds = time_duration(awake)
    if _is_blank(hours, minutes, seconds):
        return f"晚安成功！你是今天第{position}个睡觉的"
    return (
        f"晚安成功！你的清醒时长为{hours}时{minutes}分{seconds}秒,"
        f"你是今天第{position}个睡觉的"
    )