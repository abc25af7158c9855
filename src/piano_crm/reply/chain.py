"""Gmail-style quoted reply chains.

Outgoing replies carry the recent thread underneath the new text, formatted
the way Gmail quotes history so the student's mail client folds it away.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from piano_crm.models import Message, SenderRole
from piano_crm.reply.text import strip_html

_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

DEFAULT_INSTRUCTOR_NAME = "Lionel Yu From MusicalBasics"
DEFAULT_INSTRUCTOR_EMAIL = "support@musicalbasics.com"


@dataclass(frozen=True)
class ReplyChainOptions:
    student_name: str
    student_email: str
    instructor_name: str = DEFAULT_INSTRUCTOR_NAME
    instructor_email: str = DEFAULT_INSTRUCTOR_EMAIL
    max_messages: int = 10


def format_gmail_date(dt: datetime) -> str:
    """Format a timestamp as Gmail's attribution prefix.

    Example: ``On Wed, Dec 17, 2025 at 5:43 AM``
    """

    hour = dt.hour % 12 or 12
    ampm = "PM" if dt.hour >= 12 else "AM"
    return (
        f"On {_DAYS[dt.weekday()]}, {_MONTHS[dt.month - 1]} {dt.day}, {dt.year} "
        f"at {hour}:{dt.minute:02d} {ampm}"
    )


def _recent_first(messages: Iterable[Message], limit: int) -> list[Message]:
    ordered = sorted(messages, key=lambda m: m.created_at, reverse=True)
    return ordered[: max(limit, 0)]


def _author(msg: Message, options: ReplyChainOptions) -> tuple[str, str]:
    if msg.sender_role == SenderRole.INSTRUCTOR:
        return options.instructor_name, options.instructor_email
    return options.student_name, options.student_email


def generate_reply_chain_html(messages: Iterable[Message], options: ReplyChainOptions) -> str:
    """Render up to ``options.max_messages`` messages as nested Gmail quotes.

    Returns an empty string when there is nothing to quote.
    """

    recent = _recent_first(messages, options.max_messages)
    if not recent:
        return ""

    chain_html = ""
    for msg in recent:
        name, email = _author(msg, options)
        paragraphs = "".join(
            f'<p style="margin: 0 0 0.5em 0;">{line or "&nbsp;"}</p>'
            for line in strip_html(msg.body_text).split("\n")
        )
        chain_html += f"""
<div class="gmail_quote" style="margin: 0 0 0 0.8em; border-left: 1px solid #ccc; padding-left: 1em; color: #500050;">
  <div style="margin: 1em 0 0.5em 0; color: #777;">
    {format_gmail_date(msg.created_at)} {name} &lt;{email}&gt; wrote:
  </div>
  <blockquote style="margin: 0; padding: 0; color: #222;">
    {paragraphs}
  </blockquote>
</div>"""

    return f"""
<div style="margin-top: 2em; padding-top: 1em; border-top: 1px solid #eee;">
  {chain_html}
</div>"""


def generate_reply_chain_text(messages: Iterable[Message], options: ReplyChainOptions) -> str:
    """Plain-text counterpart of :func:`generate_reply_chain_html`."""

    recent = _recent_first(messages, options.max_messages)
    if not recent:
        return ""

    chain_text = "\n\n---\n"
    for msg in recent:
        name, email = _author(msg, options)
        quoted = "\n".join(f"> {line}" for line in strip_html(msg.body_text).split("\n"))
        chain_text += f"\n{format_gmail_date(msg.created_at)} {name} <{email}> wrote:\n"
        chain_text += quoted
        chain_text += "\n"

    return chain_text
