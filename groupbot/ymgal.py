"""Galgame picture sets scraped from a picture site and kept in SQLite.

Two kinds of sets are collected: CG sets and emoticon sets.  Each set is
stored with its title, description and a comma separated list of picture
URLs.
"""

from __future__ import annotations

import random as _random
import re
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable

import lxml.html
from lxml import etree

WEB_URL = "https://www.ymgal.com"
CG_TYPE = "Gal CG"
EMOTICON_TYPE = "其他"
WEB_PIC_URL = WEB_URL + "/co/picset/"


def _category_url(category: str) -> str:
    from urllib.parse import quote_plus

    return WEB_URL + "/search?type=picset&sort=default&category=" + quote_plus(category) + "&page="


CG_URL = _category_url(CG_TYPE)
EMOTICON_URL = _category_url(EMOTICON_TYPE)
NO_PICTURE = "暂时没有这样的图呢"

_NUMBER = re.compile(r"\d+")
_PAGE_NUMBER = (
    "//*[@id='pager-box']/div/a[@class='icon item pager-next']"
    "/preceding-sibling::a[1]/text()"
)
_PICSET_LINKS = "//*[@id='picset-result-list']/ul/div/div[1]/a"
_TITLE = "//meta[@name='name']"
_DESCRIPTION = "//meta[@name='description']"
_PICTURE_COUNT = "//div[@class='meta-info']/div[@class='meta-right']/span[2]/text()"
_CG_PICTURE = (
    "//*[@id='main-picset-warp']/div/div[2]/div/div[@class='swiper-wrapper']/div[{}]"
)
_EMOTICON_PICTURE = "//*[@id='main-picset-warp']/div/div[@class='stream-list']/div[{}]/img"
_PAUSE = 0.5

Message = list[dict[str, Any]]


@dataclass
class Ymgal:
    """One picture set."""

    id: int
    title: str = ""
    picture_type: str = ""
    picture_description: str = ""
    picture_list: str = ""


class YmgalDB:
    """Picture sets stored in an ``ymgal`` table."""

    def __init__(self, path: str):
        self._lock = threading.RLock()
        self._db = sqlite3.connect(path, check_same_thread=False)
        with self._lock:
            self._db.execute(
                "CREATE TABLE IF NOT EXISTS ymgal ("
                "id INTEGER PRIMARY KEY, title TEXT NOT NULL DEFAULT '', "
                "picture_type TEXT NOT NULL DEFAULT '', "
                "picture_description TEXT NOT NULL DEFAULT '', "
                "picture_list TEXT NOT NULL DEFAULT '')"
            )
            self._db.commit()

    def __enter__(self) -> YmgalDB:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    def upsert(self, item: Ymgal) -> None:
        """Insert ``item`` or replace the set stored under its id."""
        with self._lock:
            self._db.execute(
                "INSERT INTO ymgal (id, title, picture_type, picture_description, picture_list) "
                "VALUES (?, ?, ?, ?, ?) ON CONFLICT(id) DO UPDATE SET "
                "title = excluded.title, picture_type = excluded.picture_type, "
                "picture_description = excluded.picture_description, "
                "picture_list = excluded.picture_list",
                (
                    item.id,
                    item.title,
                    item.picture_type,
                    item.picture_description,
                    item.picture_list,
                ),
            )
            self._db.commit()

    def get_by_id(self, pic_id: int | str) -> Ymgal | None:
        with self._lock:
            row = self._db.execute(
                "SELECT id, title, picture_type, picture_description, picture_list "
                "FROM ymgal WHERE id = ?",
                (int(pic_id),),
            ).fetchone()
        return Ymgal(*row) if row else None

    def _pick(self, where: str, params: tuple[Any, ...], rng: Any) -> Ymgal | None:
        rng = rng if rng is not None else _random
        with self._lock:
            (count,) = self._db.execute(
                f"SELECT COUNT(*) FROM ymgal WHERE {where}", params
            ).fetchone()
            if count == 0:
                return None
            row = self._db.execute(
                "SELECT id, title, picture_type, picture_description, picture_list "
                f"FROM ymgal WHERE {where} ORDER BY rowid LIMIT 1 OFFSET ?",
                (*params, rng.randrange(count)),
            ).fetchone()
        return Ymgal(*row) if row else None

    def random(self, picture_type: str, rng: Any = None) -> Ymgal | None:
        """A random set of the given type, or None when there is none."""
        return self._pick("picture_type = ?", (picture_type,), rng)

    def search(self, picture_type: str, key: str, rng: Any = None) -> Ymgal | None:
        """A random set of the type whose title or description contains ``key``."""
        pattern = f"%{key}%"
        return self._pick(
            "picture_type = ? AND (picture_description LIKE ? OR title LIKE ?)",
            (picture_type, pattern, pattern),
            rng,
        )

    def close(self) -> None:
        with self._lock:
            self._db.close()


def _document(html: str) -> Any:
    try:
        return lxml.html.document_fromstring(html)
    except (etree.ParserError, ValueError) as err:
        raise ValueError(f"cannot parse page: {err}") from err


def _find_one(doc: Any, expr: str) -> Any:
    found = doc.xpath(expr)
    if not found:
        raise ValueError(f"nothing matches {expr}")
    return found[0]


def _attr(element: Any, index: int) -> str:
    values = list(element.attrib.values())
    if len(values) <= index:
        raise ValueError(f"element <{element.tag}> has no attribute #{index}")
    return values[index]


def parse_max_page(html: str) -> int:
    """Number of the last result page, read from the pager."""
    return int(str(_find_one(_document(html), _PAGE_NUMBER)).strip())


def parse_picset_ids(html: str) -> list[str]:
    """Ids of the picture sets listed on one result page, in page order."""
    ids = []
    for link in _document(html).xpath(_PICSET_LINKS):
        values = list(link.attrib.values())
        found = _NUMBER.search(values[0]) if values else None
        if found:
            ids.append(found.group())
    return ids


def _parse_page(html: str, pic_id: int | str, picture_type: str, picture_expr: str) -> Ymgal:
    doc = _document(html)
    title = _attr(_find_one(doc, _TITLE), 1)
    description = _attr(_find_one(doc, _DESCRIPTION), 1)
    count_text = _NUMBER.search(str(_find_one(doc, _PICTURE_COUNT)))
    if count_text is None:
        raise ValueError("picture count not found")
    pictures = [
        _attr(_find_one(doc, picture_expr.format(index)), 1)
        for index in range(1, int(count_text.group()) + 1)
    ]
    return Ymgal(
        id=int(pic_id),
        title=title,
        picture_type=picture_type,
        picture_description=description,
        picture_list=",".join(pictures),
    )


def parse_cg_page(html: str, pic_id: int | str) -> Ymgal:
    """Read a CG set from its page."""
    return _parse_page(html, pic_id, CG_TYPE, _CG_PICTURE)


def parse_emoticon_page(html: str, pic_id: int | str) -> Ymgal:
    """Read an emoticon set from its page."""
    return _parse_page(html, pic_id, EMOTICON_TYPE, _EMOTICON_PICTURE)


def _collect_ids(base_url: str, fetch: Callable[[str], str], sleep: Callable[[float], Any]) -> list[str]:
    ids: list[str] = []
    for page in range(1, parse_max_page(fetch(base_url + "1")) + 1):
        ids.extend(parse_picset_ids(fetch(base_url + str(page))))
        sleep(_PAUSE)
    return ids


def update_pictures(
    db: YmgalDB,
    fetch: Callable[[str], str],
    sleep: Callable[[float], Any] = time.sleep,
) -> int:
    """Store the sets not yet known, newest last, and return how many were stored.

    Ids are walked from the end of each listing; the walk stops at the first
    set already stored with pictures.
    """
    cg_ids = _collect_ids(CG_URL, fetch, sleep)
    emoticon_ids = _collect_ids(EMOTICON_URL, fetch, sleep)
    stored = 0
    for ids, parse in ((cg_ids, parse_cg_page), (emoticon_ids, parse_emoticon_page)):
        for pic_id in reversed(ids):
            existing = db.get_by_id(pic_id)
            if existing is not None and existing.picture_list:
                break
            db.upsert(parse(fetch(WEB_PIC_URL + pic_id), pic_id))
            stored += 1
            sleep(_PAUSE)
    return stored


def forward_items(item: Ymgal | None) -> Message:
    """Message segments presenting a set: title, description, then each picture.

    Empty when there is no set or it has no pictures.
    """
    if item is None or not item.picture_list:
        return []
    segments: Message = [{"type": "text", "data": {"text": item.title}}]
    if item.picture_description:
        segments.append({"type": "text", "data": {"text": item.picture_description}})
    segments.extend(
        {"type": "image", "data": {"file": url}} for url in item.picture_list.split(",")
    )
    return segments