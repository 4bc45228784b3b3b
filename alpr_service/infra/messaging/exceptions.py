"""Messaging errors."""

from __future__ import annotations


class MessagingError(Exception):
    """Base class for broker-side errors."""


class TransientBrokerError(MessagingError):
    """Connecting or publishing failed; the operation may be retried.

    Raised when the broker is unreachable within ``connection_timeout`` or
    when a publish is rejected or interrupted. The reconnect loop keeps
    running in the background.
    """


class HandlerError(MessagingError):
    """A consumed message could not be processed; it is dead-lettered."""

    def __init__(self, message: str, *, message_id: str | None = None) -> None:
        self.message_id = message_id
        super().__init__(message)


class MessageParseError(HandlerError):
    """The message body is not valid JSON or does not match the v1 schema."""
