"""Errors raised by the key-value backed stores."""

from __future__ import annotations


class StorageError(Exception):
    """Base error for store operations."""


class DuplicateLinkError(StorageError):
    """A story already exists for the given link."""

    def __init__(self, link: str) -> None:
        self.link = link
        super().__init__(f"story already exists for link: {link}")


class NotFoundError(StorageError):
    """The targeted story, snapshot or transcript does not exist."""


class StorageInconsistency(NotFoundError):
    """An index entry points at a record that is missing or unreadable."""


class AudioAlreadyAttachedError(StorageError):
    """A transcript already carries a different audio URL."""
