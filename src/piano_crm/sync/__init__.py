"""Inbox synchronization."""

from .inbox import EMPTY_BODY_PLACEHOLDER, sync_recent, sync_student

__all__ = ["EMPTY_BODY_PLACEHOLDER", "sync_recent", "sync_student"]
