"""Outbound messages: delivery through Signal and recipient lookup."""

from ratingtracker.notify.base import (
    PREFIX_BETTER,
    PREFIX_ERROR,
    PREFIX_WORSE,
    MessageKind,
    Notifier,
    RecipientDirectory,
)
from ratingtracker.notify.directory import ConfigRecipientDirectory
from ratingtracker.notify.signal import SignalNotifier

__all__ = [
    "PREFIX_BETTER",
    "PREFIX_ERROR",
    "PREFIX_WORSE",
    "MessageKind",
    "Notifier",
    "RecipientDirectory",
    "ConfigRecipientDirectory",
    "SignalNotifier",
]
