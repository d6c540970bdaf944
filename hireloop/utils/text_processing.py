"""Text cleanup helpers for user-supplied fields and email bodies."""

import re

from bs4 import BeautifulSoup

COVER_NOTE_MAX_LENGTH = 300

_BLOCK_BREAKS = re.compile(r"<br\s*/?>|</p>|</div>|</li>", re.IGNORECASE)


def strip_html(text: str | None) -> str:
    """Remove HTML tags and decode entities, keeping paragraph breaks."""
    if not text:
        return ""

    text = _BLOCK_BREAKS.sub("\n", str(text))
    soup = BeautifulSoup(text, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    cleaned = soup.get_text()

    cleaned = cleaned.replace("\xa0", " ")
    cleaned = re.sub(r"[ \t]+", " ", cleaned)
    cleaned = re.sub(r"[ \t]*\n[ \t]*", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


def sanitize_cover_note(cover_note: str | None) -> str | None:
    """Trim, strip tags and cap a cover note. Returns None when nothing is left."""
    if cover_note is None:
        return None
    if not isinstance(cover_note, str):
        raise TypeError("cover_note must be a string")

    cleaned = strip_html(cover_note.strip())
    cleaned = cleaned[:COVER_NOTE_MAX_LENGTH].strip()
    return cleaned or None


def truncate(text: str, limit: int = 200) -> str:
    """Shorten text for email previews."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."
