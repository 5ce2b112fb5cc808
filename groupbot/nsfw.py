"""Verdicts on image classification scores."""

from __future__ import annotations

from dataclasses import dataclass

THRESHOLD = 0.3


@dataclass(frozen=True)
class Picture:
    """Classifier scores of one image, each between 0 and 1."""

    drawings: float = 0.0
    hentai: float = 0.0
    neutral: float = 0.0
    porn: float = 0.0
    sexy: float = 0.0


def _tags(picture: Picture) -> list[str]:
    tags = []
    if picture.hentai > THRESHOLD:
        tags.append(" hentai")
    if picture.porn > THRESHOLD:
        tags.append(" porn")
    if picture.sexy > THRESHOLD:
        tags.append(" hso")
    return tags


def judge(picture: Picture) -> str:
    """Verdict for an image someone asked to have rated."""
    if picture.neutral > THRESHOLD:
        return "普通哦"
    kind = "二次元" if picture.drawings > THRESHOLD or picture.neutral < THRESHOLD else "三次元"
    return kind + "".join(_tags(picture))


def auto_judge(picture: Picture) -> str | None:
    """Verdict worth posting unprompted, or None when the image is harmless."""
    if picture.neutral > THRESHOLD:
        return None
    tags = _tags(picture)
    if not tags:
        return None
    kind = "二次元" if picture.drawings > THRESHOLD else "三次元"
    return kind + "".join(tags)