"""Notification dispatcher exceptions."""

from __future__ import annotations


class NotificationError(Exception):
    """The notification could not be rendered or handed to the mail backend."""
