"""Helpers behind the group manager's commands: ban times, texts and reminders."""

from __future__ import annotations

import random as _random
import re
from typing import Any, Mapping, Sequence

from groupbot.timer import Timer, get_filled_cron_timer, get_filled_timer

MAX_BAN_MINUTES = 43199
_BAN_LIMIT = 43200
MAX_CARD_BYTES = 60
MAX_TITLE_BYTES = 18
CARD_TOO_LONG = "名字太长啦！"
TITLE_TOO_LONG = "头衔太长啦！"
LUCKY_POOL = 10

_DATE_TIMER = re.compile(
    r"^在(.{1,2})月(.{1,3}日|每?周.?)的(.{1,3})点(.{1,3})分时(用.+)?提醒大家(.*)"
)
_CRON_TIMER = re.compile(r'^在"(.*)"时(用.+)?提醒大家(.*)')
_DATE_CANCEL = re.compile(r"^取消在(.{1,2})月(.{1,3}日|每?周.?)的(.{1,3})点(.{1,3})分的提醒")
_CRON_CANCEL = re.compile(r'^取消在"(.*)"的提醒')

_HOUR_UNITS = frozenset({"小时"})
_DAY_UNITS = frozenset({"天"})
_SELF_HOUR_UNITS = frozenset({"小时", "hour", "hours", "h"})
_SELF_DAY_UNITS = frozenset({"天", "day", "days", "d"})


def _ban_seconds(amount: int | str, unit: str, hours: frozenset[str], days: frozenset[str]) -> int:
    minutes = int(amount)
    if unit in hours:
        minutes *= 60
    elif unit in days:
        minutes *= 60 * 24
    if minutes >= _BAN_LIMIT:
        minutes = MAX_BAN_MINUTES
    return minutes * 60


def ban_duration(amount: int | str, unit: str) -> int:
    """Ban length in seconds for ``禁言``; any unit other than 小时 or 天 means minutes.

    The ban is capped just below one month.
    """
    return _ban_seconds(amount, unit, _HOUR_UNITS, _DAY_UNITS)


def self_ban_duration(amount: int | str, unit: str) -> int:
    """Ban length in seconds for a member who asks to be muted; English units too."""
    return _ban_seconds(amount, unit, _SELF_HOUR_UNITS, _SELF_DAY_UNITS)


def unescape_cq(text: str) -> str:
    """Undo the chat escaping of square brackets."""
    return text.replace("&#91;", "[").replace("&#93;", "]")


def welcome_text(template: str, user_id: int) -> str:
    """Welcome message with every ``{at}`` turned into a mention of ``user_id``."""
    return template.replace("{at}", f"[CQ:at,qq={user_id}]")


def check_card(name: str) -> str:
    """Return ``name`` if it fits as a group card, else raise ValueError."""
    if len(name.encode("utf-8")) > MAX_CARD_BYTES:
        raise ValueError(CARD_TOO_LONG)
    return name


def check_title(title: str) -> str:
    """Return ``title`` if it fits as a special title, else raise ValueError."""
    if len(title.encode("utf-8")) > MAX_TITLE_BYTES:
        raise ValueError(TITLE_TOO_LONG)
    return title


def make_quiz(rng: Any = None) -> tuple[int, int, int]:
    """Two numbers below 100 for the join quiz, and their sum."""
    rng = rng if rng is not None else _random
    a = rng.randrange(100)
    b = rng.randrange(100)
    return a, b, a + b


def pick_lucky(members: Sequence[Mapping[str, Any]], rng: Any = None) -> Mapping[str, Any]:
    """Pick one of the ten members who spoke most recently."""
    if not members:
        raise ValueError("no members to pick from")
    rng = rng if rng is not None else _random
    ordered = sorted(members, key=lambda member: int(member.get("last_sent_time", 0)))
    return rng.choice(ordered[-LUCKY_POOL:])


def _groups(found: re.Match[str]) -> list[str]:
    return [found.group(0), *(group or "" for group in found.groups())]


def parse_timer_command(text: str) -> Timer | None:
    """Timer described by a reminder command, or None when ``text`` is not one.

    Date reminders that fail validation come back disabled with the reason in
    ``alert``.  Bot and group ids are left at zero for the caller to fill in.
    """
    found = _DATE_TIMER.match(text)
    if found is not None:
        return get_filled_timer(_groups(found), 0, 0, False)
    found = _CRON_TIMER.match(text)
    if found is not None:
        cron, url, alert = (group or "" for group in found.groups())
        return get_filled_cron_timer(cron, alert, url[1:], 0, 0)
    return None


def parse_cancel_command(text: str) -> Timer | None:
    """Timer whose id a cancel command names, or None when ``text`` is not one."""
    found = _DATE_CANCEL.match(text)
    if found is not None:
        return get_filled_timer(_groups(found), 0, 0, True)
    found = _CRON_CANCEL.match(text)
    if found is not None:
        return Timer(cron=found.group(1))
    return None