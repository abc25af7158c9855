"""Reply text handling: quote stripping, HTML-to-text and reply chains."""

from .chain import (
    ReplyChainOptions,
    format_gmail_date,
    generate_reply_chain_html,
    generate_reply_chain_text,
)
from .text import clean_reply_body, strip_html

__all__ = [
    "ReplyChainOptions",
    "clean_reply_body",
    "format_gmail_date",
    "generate_reply_chain_html",
    "generate_reply_chain_text",
    "strip_html",
]
