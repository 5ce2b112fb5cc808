"""Group reminder timers whose schedule is packed into one integer field.

The packed field ``emdwhm`` holds, from the high bit down: enabled (1 bit),
month (4 bits), day (5 bits), weekday (3 bits), hour (5 bits) and minute
(6 bits).  A field whose bits are all set reads back as ``-1``, meaning
"every".  Weekdays count from Sunday as 0.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Sequence

log = logging.getLogger(__name__)

_FIELD_BITS = 0xFFFFFF
_EN = 0x800000
_MONTH = (0x780000, 19)
_DAY = (0x07C000, 14)
_WEEK = (0x003800, 11)
_HOUR = (0x0007C0, 6)
_MINUTE = (0x00003F, 0)

_CHINESE_DIGITS = "零一二三四五六七八九十"
_EVERY = "每"


def _go_weekday(when: datetime) -> int:
    """Weekday with Sunday as 0 and Saturday as 6."""
    return when.isoweekday() % 7


def _normalized(base: datetime, year: int, month: int, day: int, hour: int, minute: int) -> datetime:
    """Build a datetime like ``base``, letting out-of-range parts roll over."""
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    start = base.replace(year=year, month=month, day=1, hour=0, minute=0)
    return start + timedelta(days=day - 1, hours=hour, minutes=minute)


def _add_date(when: datetime, years: int = 0, months: int = 0, days: int = 0) -> datetime:
    return _normalized(
        when, when.year + years, when.month + months, when.day + days, when.hour, when.minute
    )


def first_week(date: datetime, week: int) -> datetime:
    """Return the first day of ``date``'s month falling on ``week`` (0 is Sunday)."""
    if not 0 <= week <= 6:
        raise ValueError(f"weekday out of range: {week}")
    day = date - timedelta(days=date.day - 1)
    while _go_weekday(day) != week:
        day += timedelta(days=1)
    return day


@dataclass(eq=False)
class Timer:
    """A reminder, either date based (packed fields) or driven by a cron expression."""

    id: int = 0
    emdwhm: int = 0
    self_id: int = 0
    grp_id: int = 0
    alert: str = ""
    cron: str = ""
    url: str = ""

    def _get(self, field: tuple[int, int]) -> int:
        mask, shift = field
        value = (self.emdwhm & mask) >> shift
        return -1 if value == mask >> shift else value

    def _set(self, field: tuple[int, int], value: int) -> None:
        mask, shift = field
        self.emdwhm = ((value << shift) & mask) | (self.emdwhm & (_FIELD_BITS & ~mask))

    def _set_en(self, enabled: bool) -> None:
        if enabled:
            self.emdwhm |= _EN
        else:
            self.emdwhm &= _FIELD_BITS & ~_EN

    def _set_month(self, value: int) -> None:
        self._set(_MONTH, value)

    def _set_day(self, value: int) -> None:
        self._set(_DAY, value)

    def _set_week(self, value: int) -> None:
        self._set(_WEEK, value)

    def _set_hour(self, value: int) -> None:
        self._set(_HOUR, value)

    def _set_minute(self, value: int) -> None:
        self._set(_MINUTE, value)

    def en(self) -> bool:
        return bool(self.emdwhm & _EN)

    def month(self) -> int:
        return self._get(_MONTH)

    def day(self) -> int:
        return self._get(_DAY)

    def week(self) -> int:
        return self._get(_WEEK)

    def hour(self) -> int:
        return self._get(_HOUR)

    def minute(self) -> int:
        return self._get(_MINUTE)

    def info(self) -> str:
        """Canonical description used to derive the timer's id."""
        if self.cron:
            return f"[{self.grp_id}]{self.cron}"
        return (
            f"[{self.grp_id}]{self.month()}月{self.day()}日{self.week()}周"
            f"{self.hour()}:{self.minute()}"
        )

    def timer_id(self) -> int:
        digest = hashlib.md5(self.info().encode("utf-8")).digest()
        return int.from_bytes(digest[:4], "little")

    def next_wake_time(self, now: datetime) -> datetime:
        """Return when the timer should next wake up, seen from ``now``."""
        m, d, h, mn, w = self.month(), self.day(), self.hour(), self.minute(), self.week()
        unit = timedelta(0)
        if mn >= 0:
            if h < 0:
                unit = timedelta(hours=1)
            elif d < 0 or w < 0:
                unit = timedelta(days=1)
            elif d == 0:
                delta = timedelta(days=w - _go_weekday(now))
                if delta < timedelta(0):
                    delta = timedelta(days=7)
                unit += delta
        else:
            unit = timedelta(minutes=1)

        stable = 0
        if mn < 0:
            mn = now.minute
        if h < 0:
            h = now.hour
        else:
            stable |= 0x8
        if d < 0:
            d = now.day
        elif d > 0:
            stable |= 0x4
        else:
            d = now.day
            if w >= 0:
                stable |= 0x2
        if m < 0:
            m = now.month
        else:
            stable |= 0x1

        if stable == 0b0101:
            if self.day() != now.day or self.month() != now.month:
                h = 0
        elif stable == 0b1001:
            if self.month() != now.month:
                d = 0
        elif stable == 0b0001:
            if self.month() != now.month:
                d = 0
                h = 0

        date = _normalized(now, now.year, m, d, h, mn)
        if unit > timedelta(0):
            date += unit

        if date <= now:
            if self.month() < 0:
                if self.day() > 0 or (self.day() == 0 and self.week() >= 0):
                    date = _add_date(date, months=1)
                elif self.day() < 0 or self.week() < 0:
                    if self.hour() > 0:
                        date = _add_date(date, days=1)
                    elif self.minute() > 0:
                        date += timedelta(hours=1)
            else:
                date = _add_date(date, years=1)

        if stable & 0x8 and date.hour != h:
            if not stable & 0x4:
                date = _add_date(date, days=1) - timedelta(hours=1)
            else:
                date = _add_date(date, days=7) - timedelta(hours=1)

        if stable & 0x4 and date.day != d:
            date = _add_date(date, years=1, days=-1)

        if stable & 0x2 and _go_weekday(date) != w:
            date = first_week(_add_date(date, years=1), w)

        if date <= now:
            date = now + timedelta(minutes=1)
        return date

    def should_fire(self, now: datetime) -> bool:
        """Whether an enabled date timer is due at ``now`` (minute resolution)."""
        if not self.en():
            return False
        if self.month() >= 0 and self.month() != now.month:
            return False
        day = self.day()
        if day > 0 and day != now.day:
            return False
        if day == 0 and self.week() >= 0 and self.week() != _go_weekday(now):
            return False
        if self.hour() >= 0 and self.hour() != now.hour:
            return False
        return self.minute() < 0 or self.minute() == now.minute


def get_filled_cron_timer(croncmd: str, alert: str, img: str, botqq: int, gid: int) -> Timer:
    """Build a timer driven by a cron expression."""
    return Timer(alert=alert, cron=croncmd, url=img, self_id=botqq, grp_id=gid)


def get_filled_timer(
    date_strs: Sequence[str], botqq: int, grp: int, match_date_only: bool
) -> Timer:
    """Build a date timer from the captured groups of a reminder command.

    ``date_strs`` holds the whole match, then month, day-or-week, hour,
    minute and, unless ``match_date_only``, the ``用<url>`` part and the
    alert text.  An invalid value leaves the timer disabled with the
    reason in ``alert``.
    """
    month_str, day_week, hour_str, minute_str = date_strs[1:5]
    timer = Timer()

    month = chinese_num_to_int(month_str)
    if (month != -1 and month <= 0) or month > 12:
        timer.alert = "月份非法！"
        return timer
    timer._set_month(month)

    if len(day_week) == 4:
        day = chinese_num_to_int(day_week[0] + day_week[2])
        if (day != -1 and day <= 0) or day > 31:
            timer.alert = "日期非法1！"
            return timer
        timer._set_day(day)
    elif day_week.endswith("日"):
        day = chinese_num_to_int(day_week[:-1])
        if (day != -1 and day <= 0) or day > 31:
            timer.alert = "日期非法2！"
            return timer
        timer._set_day(day)
    elif day_week.startswith(_EVERY):
        timer._set_week(-1)
    else:
        week = chinese_num_to_int(day_week[1:])
        if week == 7:
            week = 0
        if not 0 <= week <= 6:
            timer.alert = "星期非法！"
            return timer
        timer._set_week(week)

    if len(hour_str) == 3:
        hour_str = hour_str[0] + hour_str[2]
    hour = chinese_num_to_int(hour_str)
    if hour < -1 or hour > 23:
        timer.alert = "小时非法！"
        return timer
    timer._set_hour(hour)

    if len(minute_str) == 3:
        minute_str = minute_str[0] + minute_str[2]
    minute = chinese_num_to_int(minute_str)
    if minute < -1 or minute > 59:
        timer.alert = "分钟非法！"
        return timer
    timer._set_minute(minute)

    if not match_date_only:
        url_str = date_strs[5]
        if url_str:
            timer.url = url_str[1:]
            log.info("[群管]%s", timer.url)
            if not timer.url.startswith("http"):
                timer.url = "illegal"
                log.info("[群管]url非法！")
                return timer
        timer.alert = date_strs[6]
        timer._set_en(True)
    timer.self_id = botqq
    timer.grp_id = grp
    return timer


def chinese_num_to_int(text: str) -> int:
    """Convert a one or two character number; ``每`` means -1 and ``每二`` -2."""
    if not text:
        raise ValueError("empty number")
    first = text[0]
    if first.isdecimal():
        return int(text) if text.isascii() and text.isdigit() else 0
    if first == _EVERY:
        return -chinese_char_to_int(text[1]) if len(text) == 2 else -1
    if len(text) == 1:
        return chinese_char_to_int(first)
    ten = chinese_char_to_int(first)
    if ten != 10:
        ten *= 10
    ones = chinese_char_to_int(text[1])
    if ones == 10:
        ones = 0
    return ten + ones


def chinese_char_to_int(char: str) -> int:
    """Map one Chinese numeral to 0..10; ``日`` and ``天`` (Sunday) map to 7."""
    if char in ("日", "天"):
        return 7
    index = _CHINESE_DIGITS.find(char)
    return index if index >= 0 else 0