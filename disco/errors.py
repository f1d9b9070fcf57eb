"""Exceptions raised by disco."""


class DiscoError(Exception):
    """Base class for disco errors."""


class CopyConfigError(DiscoError):
    """Notification copy could not be loaded.

    Fatal at startup: there is no safe default stage set.
    """
