"""Plain-text helpers for email bodies.

Both helpers are best-effort string transforms: they never raise on odd input
and always return a (possibly empty) string.
"""

from __future__ import annotations

import html
import re

_BREAK_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)
_BLOCK_END_RE = re.compile(r"</(?:p|div)>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_BLANK_RUN_RE = re.compile(r"\n{3,}")
_DIVIDER_RE = re.compile(r"^_+$")


def strip_html(markup: str) -> str:
    """Convert an HTML fragment into plain text for quoting.

    Line breaks and block ends become newlines, every other tag is dropped,
    entities are decoded and runs of blank lines are collapsed.
    """

    if not markup:
        return ""

    text = _BREAK_RE.sub("\n", markup)
    text = _BLOCK_END_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    # &nbsp; decodes to U+00A0; quoted text wants a normal space.
    text = html.unescape(text).replace("\xa0", " ")
    text = _BLANK_RUN_RE.sub("\n\n", text)
    return text.strip()


def _starts_quoted_history(line: str) -> bool:
    # Gmail: "On Tue, Jan 2, 2024 at 9:00 AM Someone <a@b.c> wrote:"
    if line.startswith("On ") and "wrote:" in line:
        return True
    # Outlook and most desktop clients.
    if line.startswith("From: ") and "@" in line:
        return True
    if _DIVIDER_RE.match(line):
        return True
    # A quote block left behind without its attribution line.
    return line.startswith(">")


def clean_reply_body(text: str) -> str:
    """Return only the new text of a reply, dropping quoted history.

    Lines are kept until the first attribution line, ``From:`` block,
    underscore divider or ``>`` quote.
    """

    if not text:
        return ""

    kept: list[str] = []
    for line in text.replace("\r\n", "\n").split("\n"):
        if _starts_quoted_history(line.strip()):
            break
        kept.append(line)

    return "\n".join(kept).strip()
