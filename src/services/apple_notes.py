"""Parser for Apple Notes exports (HTML or plain text)."""
from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from bs4 import BeautifulSoup, Tag

from src.services.errors import InvalidExportError
from src.services.recipe_text import clean_string

logger = logging.getLogger(__name__)

MAX_EXPORT_BYTES = 50 * 1024 * 1024
DEFAULT_FOLDER = "Default"

_TXT_SEPARATOR_RE = re.compile(r"\n\s*={3,}\s*\n")
_FOLDER_LINE_RE = re.compile(r"^(?:folder|category):\s*(?P<name>.*)$", re.IGNORECASE)
_HASHTAG_RE = re.compile(r"#(\w+)")


@dataclass
class ExportedNote:
    id: str
    title: str
    content: str
    folder: str = DEFAULT_FOLDER
    tags: list[str] = field(default_factory=list)
    created: Optional[str] = None
    modified: Optional[str] = None
    is_pinned: bool = False
    is_locked: bool = False


def detect_export_format(content: str) -> Optional[str]:
    if "<html" in content or "<body" in content or "<div" in content:
        return "html"
    if "===" in content or "---" in content or "***" in content:
        return "txt"
    return None


def _note_id(prefix: str, index: int, text: str) -> str:
    digest = hashlib.sha1(text.encode("utf-8")).hexdigest()[:10]
    return f"{prefix}_{index}_{digest}"


def _first_text(element: Tag, selector: str) -> Optional[str]:
    found = element.select_one(selector)
    return clean_string(found.get_text(" ")) if found else None


def _date_of(element: Tag, selector: str) -> Optional[str]:
    found = element.select_one(selector)
    if found is None:
        return None
    return clean_string(found.get_text()) or found.get("datetime") or found.get("data-date")


def _parse_html_note(element: Tag, index: int) -> ExportedNote:
    note_id = element.get("data-note-id") or element.get("id") or _note_id("note", index, element.get_text())
    title = _first_text(element, ".note-title, h1, h2, .title") or "Untitled Note"

    body = element.select_one(".note-content, .content, .body")
    content = body.decode_contents() if body is not None else element.decode_contents()

    folder_el = element.select_one(".folder, .category, [data-folder]")
    folder = DEFAULT_FOLDER
    if folder_el is not None:
        folder = clean_string(folder_el.get_text()) or folder_el.get("data-folder") or DEFAULT_FOLDER

    tags = [t for t in (clean_string(tag.get_text()) for tag in element.select(".tag, .label, [data-tag]")) if t]
    return ExportedNote(
        id=str(note_id),
        title=title,
        content=content,
        folder=folder,
        tags=tags,
        created=_date_of(element, ".created, .date-created, [data-created]"),
        modified=_date_of(element, ".modified, .date-modified, [data-modified]"),
        is_pinned=element.select_one(".pinned, .starred, [data-pinned]") is not None,
        is_locked=element.select_one(".locked, .secure, [data-locked]") is not None,
    )


def _parse_txt_block(block: str, index: int) -> Optional[ExportedNote]:
    lines = [line.strip() for line in block.splitlines() if line.strip()]
    if not lines:
        return None

    folder = DEFAULT_FOLDER
    start = 1
    for i, line in enumerate(lines[1:], start=1):
        match = _FOLDER_LINE_RE.match(line)
        if match:
            folder = match.group("name").strip() or DEFAULT_FOLDER
            start = i + 1
            break

    content = "\n".join(lines[start:])
    return ExportedNote(
        id=_note_id("note", index, block),
        title=lines[0],
        content=content,
        folder=folder,
        tags=_HASHTAG_RE.findall(content),
    )


def parse_notes_export(content: Optional[str]) -> tuple[str, list[ExportedNote]]:
    """
    Split an Apple Notes export into notes.

    Returns:
        The detected format ("html" or "txt") and the notes found.

    Raises:
        InvalidExportError: If the content is empty, too large or not a
            recognizable export
    """
    if not content or not content.strip():
        raise InvalidExportError("Empty Apple Notes export")
    if len(content.encode("utf-8")) > MAX_EXPORT_BYTES:
        raise InvalidExportError("Apple Notes export too large, maximum size is 50MB")

    export_format = detect_export_format(content)
    if export_format is None:
        raise InvalidExportError("Unable to detect Apple Notes export format")

    if export_format == "html":
        if "note" not in content:
            raise InvalidExportError("HTML file does not contain Apple Notes data")
        soup = BeautifulSoup(content, "html.parser")
        notes = [_parse_html_note(el, i) for i, el in enumerate(soup.select(".note, [data-note-id]"))]
    else:
        if len(content.strip()) < 10:
            raise InvalidExportError("Text export too short to contain notes")
        notes = []
        for i, block in enumerate(_TXT_SEPARATOR_RE.split(content)):
            note = _parse_txt_block(block, i)
            if note is not None:
                notes.append(note)

    logger.info("Apple Notes export parsed: format=%s, notes=%d", export_format, len(notes))
    return export_format, notes
