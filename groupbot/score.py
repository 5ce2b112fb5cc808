"""Daily sign-in that awards cookies and tracks a level.

Scores are capped at ``SCORE_MAX``.  Levels follow fixed thresholds: a score
equal to a threshold reaches that level, a score between two thresholds
stays on the lower one.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime

SCORE_MAX = 120
SIGN_IN_MAX = 1
LEVELS = (0, 1, 2, 5, 10, 20, 35, 55, 75, 100, 120)


@dataclass
class SignIn:
    """How many times a user signed in, and when that was last changed."""

    uid: int
    count: int
    updated_at: datetime


@dataclass(frozen=True)
class SignInResult:
    """Outcome of one sign-in attempt."""

    already_signed: bool
    added: int = 0
    score: int = 0
    level: int = 0
    next_level_score: int = 0
    capped: bool = False
    hour_word: str = ""
    date_word: str = ""


def get_level(count: int) -> int:
    """Level reached with ``count`` points; -1 when outside the thresholds."""
    for level, threshold in enumerate(LEVELS):
        if count == threshold:
            return level
        if count < threshold:
            return level - 1
    return -1


def get_hour_word(hour: int) -> str:
    """Greeting for an hour of the day."""
    if 6 <= hour < 12:
        return "早上好"
    if 12 <= hour < 14:
        return "中午好"
    if 14 <= hour < 19:
        return "下午好"
    if 19 <= hour < 24:
        return "晚上好"
    if 0 <= hour < 6:
        return "凌晨好"
    return ""


class ScoreDB:
    """Scores and sign-in counts kept in SQLite."""

    def __init__(self, path: str):
        self._db = sqlite3.connect(path)
        self._db.execute(
            "CREATE TABLE IF NOT EXISTS score ("
            "uid INTEGER PRIMARY KEY, score INTEGER NOT NULL DEFAULT 0)"
        )
        self._db.execute(
            "CREATE TABLE IF NOT EXISTS sign_in ("
            "uid INTEGER PRIMARY KEY, count INTEGER NOT NULL DEFAULT 0, "
            "updated_at TEXT NOT NULL)"
        )
        self._db.commit()

    def __enter__(self) -> ScoreDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def get_score(self, uid: int) -> int:
        """Score of ``uid``, creating a zero entry if there is none."""
        row = self._db.execute("SELECT score FROM score WHERE uid = ?", (uid,)).fetchone()
        if row is None:
            self._db.execute("INSERT INTO score (uid, score) VALUES (?, 0)", (uid,))
            self._db.commit()
            return 0
        return row[0]

    def set_score(self, uid: int, score: int) -> None:
        self._db.execute(
            "INSERT INTO score (uid, score) VALUES (?, ?) "
            "ON CONFLICT(uid) DO UPDATE SET score = excluded.score",
            (uid, score),
        )
        self._db.commit()

    def get_sign_in(self, uid: int) -> SignIn:
        """Sign-in record of ``uid``, creating an empty one if there is none."""
        row = self._db.execute(
            "SELECT count, updated_at FROM sign_in WHERE uid = ?", (uid,)
        ).fetchone()
        if row is None:
            now = datetime.now()
            self._db.execute(
                "INSERT INTO sign_in (uid, count, updated_at) VALUES (?, 0, ?)",
                (uid, now.isoformat()),
            )
            self._db.commit()
            return SignIn(uid, 0, now)
        return SignIn(uid, row[0], datetime.fromisoformat(row[1]))

    def set_sign_in_count(self, uid: int, count: int) -> None:
        """Store the count; the record's change time becomes now."""
        self._db.execute(
            "INSERT INTO sign_in (uid, count, updated_at) VALUES (?, ?, ?) "
            "ON CONFLICT(uid) DO UPDATE SET count = excluded.count, "
            "updated_at = excluded.updated_at",
            (uid, count, datetime.now().isoformat()),
        )
        self._db.commit()

    def close(self) -> None:
        self._db.close()


def sign_in(db: ScoreDB, uid: int, now: datetime) -> SignInResult:
    """Sign ``uid`` in for the day of ``now`` and award one point."""
    record = db.get_sign_in(uid)
    same_day = record.updated_at.date() == now.date()
    if not same_day:
        db.set_sign_in_count(uid, 0)
    if record.count >= SIGN_IN_MAX and same_day:
        return SignInResult(already_signed=True)

    db.set_sign_in_count(uid, record.count + 1)
    added = 1
    score = db.get_score(uid) + added
    capped = score > SCORE_MAX
    if capped:
        score = SCORE_MAX
    db.set_score(uid, score)
    level = get_level(score)
    next_level_score = LEVELS[level + 1] if level < 10 else SCORE_MAX
    return SignInResult(
        already_signed=False,
        added=added,
        score=score,
        level=level,
        next_level_score=next_level_score,
        capped=capped,
        hour_word=get_hour_word(now.hour),
        date_word=now.strftime("%m/%d"),
    )