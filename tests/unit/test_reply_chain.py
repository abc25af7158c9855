"""Unit tests for quoted reply chains."""

from datetime import datetime, timedelta, timezone

from piano_crm.models import Message, SenderRole
from piano_crm.reply.chain import (
    ReplyChainOptions,
    format_gmail_date,
    generate_reply_chain_html,
    generate_reply_chain_text,
)

BASE = datetime(2025, 12, 17, 5, 43, tzinfo=timezone.utc)

OPTIONS = ReplyChainOptions(student_name="Ana Pianist", student_email="ana@example.com")


def _message(i: int, role: SenderRole, body: str) -> Message:
    return Message(
        id=f"m{i}",
        student_id="s1",
        sender_role=role,
        body_text=body,
        created_at=BASE + timedelta(hours=i),
    )


def test_format_gmail_date() -> None:
    assert format_gmail_date(BASE) == "On Wed, Dec 17, 2025 at 5:43 AM"
    assert format_gmail_date(datetime(2025, 1, 5, 12, 7)) == "On Sun, Jan 5, 2025 at 12:07 PM"
    assert format_gmail_date(datetime(2025, 1, 5, 0, 0)) == "On Sun, Jan 5, 2025 at 12:00 AM"


class TestReplyChainText:
    """Test suite for the plain-text chain."""

    def test_empty_thread(self) -> None:
        assert generate_reply_chain_text([], OPTIONS) == ""

    def test_newest_first_with_authors(self) -> None:
        messages = [
            _message(0, SenderRole.STUDENT, "Can I book a lesson?"),
            _message(1, SenderRole.INSTRUCTOR, "<p>Sure</p><p>Tuesday?</p>"),
        ]

        text = generate_reply_chain_text(messages, OPTIONS)

        assert text.startswith("\n\n---\n")
        instructor_at = text.index("Lionel Yu From MusicalBasics <support@musicalbasics.com> wrote:")
        student_at = text.index("Ana Pianist <ana@example.com> wrote:")
        assert instructor_at < student_at
        assert "> Sure\n> Tuesday?" in text
        assert "> Can I book a lesson?" in text

    def test_respects_max_messages(self) -> None:
        messages = [_message(i, SenderRole.STUDENT, f"note {i}") for i in range(5)]
        options = ReplyChainOptions(student_name="Ana", student_email="ana@example.com", max_messages=2)

        text = generate_reply_chain_text(messages, options)

        assert "> note 4" in text
        assert "> note 3" in text
        assert "> note 2" not in text


class TestReplyChainHtml:
    """Test suite for the HTML chain."""

    def test_empty_thread(self) -> None:
        assert generate_reply_chain_html([], OPTIONS) == ""

    def test_gmail_quote_markup(self) -> None:
        html = generate_reply_chain_html([_message(0, SenderRole.STUDENT, "Line one\n\nLine two")], OPTIONS)

        assert 'class="gmail_quote"' in html
        assert "On Wed, Dec 17, 2025 at 5:43 AM Ana Pianist &lt;ana@example.com&gt; wrote:" in html
        assert ">Line one</p>" in html
        assert ">&nbsp;</p>" in html
        assert ">Line two</p>" in html

    def test_custom_instructor_identity(self) -> None:
        options = ReplyChainOptions(
            student_name="Ana",
            student_email="ana@example.com",
            instructor_name="Studio",
            instructor_email="studio@example.com",
        )

        html = generate_reply_chain_html([_message(0, SenderRole.INSTRUCTOR, "Hi")], options)

        assert "Studio &lt;studio@example.com&gt; wrote:" in html
