"""Keeps reminder timers running and persists them in SQLite."""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timedelta
from typing import Any, Callable

from groupbot.timer import Timer

log = logging.getLogger(__name__)

Message = list[dict[str, Any]]
SendFn = Callable[[int, int, Message], Any]

_MONTH_NAMES = {
    name: number
    for number, name in enumerate(
        ("jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"),
        start=1,
    )
}
_DOW_NAMES = {
    name: number for number, name in enumerate(("sun", "mon", "tue", "wed", "thu", "fri", "sat"))
}
_DESCRIPTORS = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
}
_SEARCH_YEARS = 5


def _parse_value(text: str, names: dict[str, int] | None) -> int:
    if names and text.lower() in names:
        return names[text.lower()]
    try:
        return int(text)
    except ValueError:
        raise ValueError(f"failed to parse int from {text!r}") from None


def _parse_field(
    text: str, low: int, high: int, names: dict[str, int] | None
) -> tuple[frozenset[int], bool]:
    values: set[int] = set()
    star = False
    for part in text.split(","):
        range_part, slash, step_text = part.partition("/")
        step = 1
        if slash:
            step = _parse_value(step_text, None)
            if step <= 0:
                raise ValueError(f"step must be positive: {part!r}")
        if range_part in ("*", "?"):
            start, end = low, high
            if step == 1:
                star = True
        else:
            start_text, dash, end_text = range_part.partition("-")
            start = _parse_value(start_text, names)
            if dash:
                end = _parse_value(end_text, names)
            else:
                end = high if slash else start
        if start < low or end > high or start > end:
            raise ValueError(f"value out of range ({low}-{high}): {part!r}")
        values.update(range(start, end + 1, step))
    return frozenset(values), star


class CronSchedule:
    """A five-field cron expression: minute, hour, day of month, month, weekday."""

    def __init__(self, expr: str):
        text = expr.strip()
        text = _DESCRIPTORS.get(text.lower(), text)
        if text.startswith("@"):
            raise ValueError(f"unrecognized descriptor: {expr}")
        fields = text.split()
        if len(fields) != 5:
            raise ValueError(f"expected exactly 5 fields, found {len(fields)}: {expr}")
        self.expr = expr
        self.minutes, _ = _parse_field(fields[0], 0, 59, None)
        self.hours, _ = _parse_field(fields[1], 0, 23, None)
        self.days, self._dom_star = _parse_field(fields[2], 1, 31, None)
        self.months, _ = _parse_field(fields[3], 1, 12, _MONTH_NAMES)
        self.weekdays, self._dow_star = _parse_field(fields[4], 0, 6, _DOW_NAMES)

    def _day_matches(self, when: datetime) -> bool:
        dom = when.day in self.days
        dow = when.isoweekday() % 7 in self.weekdays
        if self._dom_star or self._dow_star:
            return dom and dow
        return dom or dow

    def matches(self, when: datetime) -> bool:
        return (
            when.minute in self.minutes
            and when.hour in self.hours
            and when.month in self.months
            and self._day_matches(when)
        )

    def next_after(self, when: datetime) -> datetime:
        """First whole minute strictly after ``when`` that the schedule matches."""
        t = when.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = when.year + _SEARCH_YEARS
        while t.year <= limit:
            if t.month not in self.months:
                first = t.replace(day=1, hour=0, minute=0)
                t = (
                    first.replace(year=t.year + 1, month=1)
                    if t.month == 12
                    else first.replace(month=t.month + 1)
                )
            elif not self._day_matches(t):
                t = t.replace(hour=0, minute=0) + timedelta(days=1)
            elif t.hour not in self.hours:
                t = t.replace(minute=0) + timedelta(hours=1)
            elif t.minute not in self.minutes:
                t += timedelta(minutes=1)
            else:
                return t
        raise ValueError(f"no matching time within {_SEARCH_YEARS} years: {self.expr}")


def build_alert_message(timer: Timer) -> Message:
    """Message segments announcing the timer to the whole group."""
    message: Message = [
        {"type": "at", "data": {"qq": "all"}},
        {"type": "text", "data": {"text": timer.alert}},
    ]
    if timer.url:
        message.append({"type": "image", "data": {"file": timer.url, "cache": "0"}})
    return message


def _wait_until(stop: threading.Event, when: datetime) -> bool:
    """Sleep until ``when``; return True if ``stop`` was set meanwhile."""
    while True:
        remaining = (when - datetime.now()).total_seconds()
        if remaining <= 0:
            return stop.is_set()
        if stop.wait(min(remaining, threading.TIMEOUT_MAX)):
            return True


class Clock:
    """Runs timers on background threads and keeps them in a ``timer`` table."""

    def __init__(self, db_path: str, send: SendFn):
        self._send_fn = send
        self._lock = threading.RLock()
        self._timers: dict[int, Timer] = {}
        self._stops: dict[int, threading.Event] = {}
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS timer ("
                "id INTEGER PRIMARY KEY, emdwhm INTEGER NOT NULL, sid INTEGER NOT NULL, "
                "gid INTEGER NOT NULL, alert TEXT NOT NULL, cron TEXT NOT NULL, "
                "url TEXT NOT NULL)"
            )
            self._db.commit()
            rows = self._db.execute(
                "SELECT id, emdwhm, sid, gid, alert, cron, url FROM timer"
            ).fetchall()
        for row in rows:
            self.register_timer(Timer(*row), False)

    def __enter__(self) -> Clock:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def _send(self, timer: Timer) -> None:
        try:
            self._send_fn(timer.self_id, timer.grp_id, build_alert_message(timer))
        except Exception:
            log.exception("[群管]failed to send timer %08x", timer.id)

    def _stop(self, key: int) -> None:
        with self._lock:
            stop = self._stops.pop(key, None)
        if stop is not None:
            stop.set()

    def _start(self, key: int, target: Callable[..., None], *args: Any) -> None:
        stop = threading.Event()
        with self._lock:
            self._stops[key] = stop
        threading.Thread(target=target, args=(*args, stop), daemon=True).start()

    def _run_dated(self, timer: Timer, stop: threading.Event) -> None:
        while timer.en() and not stop.is_set():
            wake = timer.next_wake_time(datetime.now())
            log.info("[群管]计时器%08x将睡眠至%s", timer.id, wake)
            if _wait_until(stop, wake):
                return
            if timer.should_fire(datetime.now()):
                self._send(timer)

    def _run_cron(self, timer: Timer, schedule: CronSchedule, stop: threading.Event) -> None:
        while not stop.is_set():
            if _wait_until(stop, schedule.next_after(datetime.now())):
                return
            self._send(timer)

    def register_timer(self, timer: Timer, save: bool) -> bool:
        """Schedule ``timer``; return whether it is now running.

        With ``save`` the timer's id is derived from its schedule and it is
        written to the database.  A different timer already under the same
        id is disabled and replaced.
        """
        if save:
            timer.id = timer.timer_id()
        key = timer.id
        old = self.get_timer(key)
        if old is not None and old is not timer:
            old._set_en(False)
            self._stop(key)
        log.info("[群管]注册计时器 %d", key)
        if timer.cron:
            try:
                schedule = CronSchedule(timer.cron)
            except ValueError as err:
                timer.alert = str(err)
                return False
            self._start(key, self._run_cron, timer, schedule)
            try:
                if save:
                    self.add_timer_into_db(timer)
            except sqlite3.Error:
                log.exception("[群管]failed to save timer %08x", key)
                self._stop(key)
                return False
            self.add_timer_into_map(timer)
            return True
        if save:
            try:
                self.add_timer_into_db(timer)
            except sqlite3.Error:
                log.exception("[群管]failed to save timer %08x", key)
        self.add_timer_into_map(timer)
        if not timer.en():
            return False
        self._start(key, self._run_dated, timer)
        return True

    def cancel_timer(self, key: int) -> bool:
        """Stop and forget the timer under ``key``; False if there is none."""
        timer = self.get_timer(key)
        if timer is None:
            return False
        if not timer.cron:
            timer._set_en(False)
        self._stop(key)
        with self._lock:
            self._timers.pop(key, None)
            try:
                self._db.execute("DELETE FROM timer WHERE id = ?", (key,))
                self._db.commit()
            except sqlite3.Error:
                log.exception("[群管]failed to delete timer %08x", key)
                return False
        return True

    def list_timers(self, grp_id: int) -> list[str]:
        """Human-readable schedules of every timer in a group."""
        with self._lock:
            timers = list(self._timers.values())
        lines = []
        for timer in timers:
            if timer.grp_id != grp_id:
                continue
            info = timer.info()
            text = info[info.index("]") + 1 :] + "\n"
            text = text.replace("-1", "每")
            text = text.replace("月0日0周", "月周天")
            text = text.replace("月0日", "月")
            text = text.replace("日0周", "日")
            lines.append(text)
        return lines

    def get_timer(self, key: int) -> Timer | None:
        with self._lock:
            return self._timers.get(key)

    def add_timer_into_db(self, timer: Timer) -> None:
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO timer (id, emdwhm, sid, gid, alert, cron, url) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    timer.id,
                    timer.emdwhm,
                    timer.self_id,
                    timer.grp_id,
                    timer.alert,
                    timer.cron,
                    timer.url,
                ),
            )
            self._db.commit()

    def add_timer_into_map(self, timer: Timer) -> None:
        with self._lock:
            self._timers[timer.id] = timer

    def close(self) -> None:
        """Stop every running timer and close the database."""
        with self._lock:
            stops = list(self._stops.values())
            self._stops.clear()
        for stop in stops:
            stop.set()
        with self._lock:
            self._db.close()