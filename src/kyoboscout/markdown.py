"""Convert the small subset of HTML used in descriptions and tables of contents.

This is not a general HTML-to-Markdown converter. It only knows line breaks,
paragraphs, divs, lists and headings, which is what the detail pages use for
free-text fields. The rules are plain data so new markup can be handled by
adding a row.
"""

import html
import re

# (pattern, replacement), applied in order
CONVERSION_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL), ""),
    (re.compile(r"<br\s*/?>", re.IGNORECASE), "\n"),
    (re.compile(r"</p>\s*<p(?:\s[^>]*)?>", re.IGNORECASE), "\n\n"),
    (re.compile(r"<p(?:\s[^>]*)?>", re.IGNORECASE), ""),
    (re.compile(r"</p>", re.IGNORECASE), "\n"),
    (re.compile(r"</div>\s*<div(?:\s[^>]*)?>", re.IGNORECASE), "\n"),
    (re.compile(r"<div(?:\s[^>]*)?>", re.IGNORECASE), ""),
    (re.compile(r"</div>", re.IGNORECASE), "\n"),
    (re.compile(r"<li(?:\s[^>]*)?>", re.IGNORECASE), "• "),
    (re.compile(r"</li>", re.IGNORECASE), "\n"),
    (re.compile(r"</?[uo]l(?:\s[^>]*)?>", re.IGNORECASE), "\n"),
    (re.compile(r"</?(?:h[1-6]|tr|dt|dd)(?:\s[^>]*)?>", re.IGNORECASE), "\n"),
    (re.compile(r"<[^>]+>"), ""),
]

# Applied after entities are decoded
CLEANUP_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"\r\n?"), "\n"),
    (re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+"), "\n\n"),
    (re.compile(r"^\s*\n+"), ""),
    (re.compile(r"\n+\s*$"), ""),
]

BULLET = re.compile(r"^(?:[•·\-*▪■□◦○●]\s*)+")


def html_to_markdown(markup: str | None) -> str:
    """Convert an HTML fragment to plain text with its line structure kept."""
    if not markup:
        return ""
    text = markup
    for pattern, replacement in CONVERSION_RULES:
        text = pattern.sub(replacement, text)
    text = html.unescape(text).replace("\xa0", " ")
    for pattern, replacement in CLEANUP_RULES:
        text = pattern.sub(replacement, text)
    return text


def collapse_lines(text: str | None, keep_blank: bool = False) -> str:
    """Collapse whitespace inside each line without joining lines.

    Blank lines are dropped unless ``keep_blank`` is set, in which case runs
    of blank lines shrink to one.
    """
    if not text:
        return ""
    lines = []
    for raw in text.split("\n"):
        line = re.sub(r"\s+", " ", raw).strip()
        if line:
            lines.append(line)
        elif keep_blank and lines and lines[-1] != "":
            lines.append("")
    while lines and lines[-1] == "":
        lines.pop()
    return "\n".join(lines)


def strip_bullet(line: str) -> str:
    """Remove leading list markers such as "• " or "- "."""
    return BULLET.sub("", line).strip()
