"""Exception types raised synchronously to callers."""

from __future__ import annotations


class EventhookError(Exception):
    """Base class for errors eventhook raises to its caller."""


class ConfigError(EventhookError, ValueError):
    """A webhook or settings entry is missing or malformed.

    Raised while configuration is loaded, before any event is handled.
    Delivery-time failures are never raised; they are logged.
    """
