# tradehub/services/exceptions.py
"""Fault categories raised by the tendering services."""


class TradeHubError(Exception):
    """Base class for service faults."""


class StoreError(TradeHubError):
    """The data store could not answer (query error, lost connection)."""


class DuplicateQuoteError(TradeHubError):
    """The viewer already holds a live quote on the tender (unique index tripped)."""


class ValidationError(TradeHubError):
    """Request input that cannot be turned into a valid command or filter."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field
