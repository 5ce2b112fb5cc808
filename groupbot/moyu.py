"""Daily "slacker" notice: days until the weekend and the next holidays."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Iterable

GREETING = (
    "上午好，摸鱼人！\n工作再累，一定不要忘记摸鱼哦！有事没事起身去茶水间，去厕所，"
    "去廊道走走别老在工位上坐着，钱是老板的,但命是自己的。\n"
)
CLOSING = "上班是帮老板赚钱，摸鱼是赚老板的钱！最后，祝愿天下所有摸鱼人，都能愉快的渡过每一天…"
HOLIDAY_NAMES = ("元旦", "春节", "清明节", "劳动节", "端午节", "中秋节", "国庆节")
REGISTRY_PREFIX = "holiday/"

_RAW = re.compile(r"^\s*(-?\d+)_(-?\d+)_(-?\d+)_(-?\d+)")


class Holiday:
    """A holiday starting at midnight of a date and lasting some days."""

    def __init__(self, name: str, days: int, year: int, month: int, day: int):
        self.name = name
        self.date = datetime(year, month, day)
        self.duration = timedelta(days=days)

    def __repr__(self) -> str:
        return f"Holiday({self.name!r}, {self.date:%Y-%m-%d}, {self.duration.days} days)"

    def describe(self, now: datetime) -> str:
        """Countdown, "enjoy it" or "already over", as seen from ``now``."""
        left = self.date - now
        if left >= timedelta(0):
            return f"距离{self.name}还有: {left.total_seconds() / 86400:.2f}天！"
        if left + self.duration >= timedelta(0):
            return f"好好享受 {self.name} 假期吧!"
        return f"今年 {self.name} 假期已过"


def format_holiday(days: int, year: int, month: int, day: int) -> str:
    """Stored form of a holiday: ``days_year_month_day``."""
    return f"{days}_{year}_{month}_{day}"


def parse_holiday(name: str, raw: str) -> Holiday:
    """Build a holiday from its stored form."""
    found = _RAW.match(raw)
    if found is None:
        raise ValueError(f"malformed holiday {name!r}: {raw!r}")
    days, year, month, day = (int(part) for part in found.groups())
    return Holiday(name, days, year, month, day)


def weekend_text(now: datetime) -> str:
    weekday = now.isoweekday() % 7
    if weekday in (0, 6):
        return "好好享受周末吧！"
    return f"距离周末还有:{5 - weekday}天！"


def build_notice(now: datetime, holidays: Iterable[Holiday]) -> str:
    """The whole morning notice text."""
    parts = [now.strftime("%Y-%m-%d"), GREETING, weekend_text(now)]
    for holiday in holidays:
        parts.append("\n")
        parts.append(holiday.describe(now))
    parts.append("\n")
    parts.append(CLOSING)
    return "".join(parts)