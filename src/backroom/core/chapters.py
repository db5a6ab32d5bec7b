"""Chapter timestamp parsing for track descriptions."""

from __future__ import annotations

import re

from .cms_types import Chapter

_CHAPTER_LINE_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?\s+(.+)$")


def parse_chapter_line(line: str) -> Chapter | None:
    match = _CHAPTER_LINE_RE.match(line.strip())
    if match is None:
        return None
    first, second, third, title = match.groups()
    if third is not None:
        seconds = int(first) * 3600 + int(second) * 60 + int(third)
    else:
        seconds = int(first) * 60 + int(second)
    return Chapter(offset_seconds=seconds, title=title.strip())


def parse_chapters(text: str) -> list[Chapter]:
    """Parse `mm:ss title` / `hh:mm:ss title` lines, dropping anything else.

    The result is sorted by offset. Zero matching lines yields an empty list.
    """
    chapters: list[Chapter] = []
    for line in (text or "").splitlines():
        if not line.strip():
            continue
        chapter = parse_chapter_line(line)
        if chapter is not None:
            chapters.append(chapter)
    chapters.sort(key=lambda item: item.offset_seconds)
    return chapters


def format_timestamp(offset_seconds: int) -> str:
    hours, rest = divmod(max(0, int(offset_seconds)), 3600)
    minutes, seconds = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes:02d}:{seconds:02d}"


def format_chapters(chapters: list[Chapter]) -> str:
    return "\n".join(f"{format_timestamp(chapter.offset_seconds)} {chapter.title}" for chapter in chapters)
