import html
import re
from typing import Optional

import bleach

_BLOCK_BREAK_RE = re.compile(r"</p>|<br\s*/?>", re.IGNORECASE)
_CONTROL_RE = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


def sanitize_string(value: Optional[str]) -> Optional[str]:
    """
    Sanitize a string by escaping HTML special characters to prevent XSS.
    Returns None if input is None.
    """
    if value is None:
        return None
    if not isinstance(value, str):
        return value
    return html.escape(_CONTROL_RE.sub("", value), quote=True)


def strip_html(value: Optional[str]) -> str:
    """Reduce rich text to plain text (block tags become line breaks)"""
    if not value:
        return ""
    text = _BLOCK_BREAK_RE.sub("\n", value)
    # bleach escapes what it keeps; the PDF and e-mail text want the raw characters
    text = html.unescape(bleach.clean(text, tags=[], attributes={}, strip=True, strip_comments=True))
    return "\n".join(line.strip() for line in text.splitlines() if line.strip())


def clean_display_name(value: Optional[str], max_length: int = 255) -> str:
    """
    Normalize a typed signature / customer name.

    Collapses whitespace and drops control characters; the result may be
    empty, which callers treat as "no name given".
    """
    if not value:
        return ""
    value = _CONTROL_RE.sub("", str(value))
    value = " ".join(value.split())
    return value[:max_length]
