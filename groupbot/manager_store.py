"""Welcome messages, gist-verified members and the group manager's option bits."""

from __future__ import annotations

import hashlib
import logging
import re
import sqlite3
import threading
import time
from typing import Callable

log = logging.getLogger(__name__)

GIST_RAW = "https://gist.githubusercontent.com/{}/{}/raw/{}"
GIST_WINDOW = 600
ANSWER_MARK = "答案："
FORMAT_ERROR = "格式错误!"

VERIFY_BIT = 0x1
GIST_BIT = 0x10
_VERIFY_CLEAR = 0x7FFFFFFF_FFFFFFFE
_GIST_CLEAR = 0x7FFFFFFF_FFFFFFFD

ENABLE_WORDS = frozenset({"开启", "打开", "启用"})
DISABLE_WORDS = frozenset({"关闭", "关掉", "禁用"})

_TIMESTAMP = re.compile(r"[+-]?[0-9]+")


class GistError(Exception):
    """A join request could not be verified; the message is the reason."""


class ManagerStore:
    """Per-group welcome messages and verified members kept in SQLite."""

    def __init__(self, db_path: str):
        self._lock = threading.RLock()
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS welcome (gid INTEGER PRIMARY KEY, msg TEXT NOT NULL)"
            )
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS member (qq INTEGER PRIMARY KEY, ghun TEXT NOT NULL)"
            )
            self._db.commit()

    def __enter__(self) -> ManagerStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def set_welcome(self, gid: int, msg: str) -> None:
        """Store the welcome message of a group, replacing any earlier one."""
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO welcome (gid, msg) VALUES (?, ?)", (gid, msg)
            )
            self._db.commit()

    def get_welcome(self, gid: int) -> str | None:
        """Welcome message of a group, or None when none is set."""
        with self._lock:
            row = self._db.execute("SELECT msg FROM welcome WHERE gid = ?", (gid,)).fetchone()
        return row[0] if row else None

    def has_member(self, ghun: str) -> bool:
        """Whether a GitHub user name has already been admitted."""
        with self._lock:
            row = self._db.execute(
                "SELECT 1 FROM member WHERE ghun = ? LIMIT 1", (ghun,)
            ).fetchone()
        return row is not None

    def add_member(self, qq: int, ghun: str) -> None:
        with self._lock:
            self._db.execute(
                "INSERT OR REPLACE INTO member (qq, ghun) VALUES (?, ?)", (qq, ghun)
            )
            self._db.commit()

    def close(self) -> None:
        with self._lock:
            self._db.close()


def gist_url(ghun: str, gist_hash: str, gid: int) -> str:
    """Raw URL of the gist file named after the md5 of the group number."""
    name = hashlib.md5(str(gid).encode("ascii")).hexdigest()
    return GIST_RAW.format(ghun, gist_hash, name)


def check_new_user(
    store: ManagerStore,
    qq: int,
    gid: int,
    ghun: str,
    gist_hash: str,
    fetch: Callable[[str], str | bytes],
    now: float | None = None,
) -> None:
    """Admit ``qq`` if the gist holds a Unix timestamp within ten minutes of ``now``.

    Raises GistError with the reason when the request is refused.
    """
    if store.has_member(ghun):
        raise GistError("该github用户已入群")
    url = gist_url(ghun, gist_hash, gid)
    log.debug("[gist]visit url: %s", url)
    try:
        data = fetch(url)
    except Exception as err:
        raise GistError(f"无法连接到gist: {err}") from err
    text = data.decode("utf-8", "replace") if isinstance(data, bytes) else str(data)
    log.debug("[gist]get data: %s", text)
    if not _TIMESTAMP.fullmatch(text):
        raise GistError("时间戳格式错误: " + text)
    stamp = int(text)
    current = int(time.time() if now is None else now)
    if abs(current - stamp) >= GIST_WINDOW:
        raise GistError("时间戳超时")
    store.add_member(qq, ghun)


def _apply(data: int, option: str, on_bits: int, off_mask: int) -> int:
    if option in ENABLE_WORDS:
        return data | on_bits
    if option in DISABLE_WORDS:
        return data & off_mask
    raise ValueError(f"unknown option: {option!r}")


def apply_verification_option(data: int, option: str) -> int:
    """Switch the join-quiz bit on or off according to ``option``."""
    return _apply(data, option, VERIFY_BIT, _VERIFY_CLEAR)


def apply_gist_option(data: int, option: str) -> int:
    """Switch gist auto-approval on or off according to ``option``."""
    return _apply(data, option, GIST_BIT, _GIST_CLEAR)


def parse_gist_answer(comment: str) -> tuple[str, str]:
    """Split the answer of a join request, ``username/gisthash``, into its parts."""
    start = comment.find(ANSWER_MARK)
    if start < 0:
        raise GistError(FORMAT_ERROR)
    answer = comment[start + len(ANSWER_MARK):]
    divider = answer.find("/")
    if divider <= 0:
        raise GistError(FORMAT_ERROR)
    return answer[:divider], answer[divider + 1:]