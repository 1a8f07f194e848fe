from __future__ import annotations


class NotFoundError(Exception):
    """Requested file or sheet does not exist."""


class StoreError(Exception):
    """A database write could not be completed; nothing was applied."""
