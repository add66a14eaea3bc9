# src/core/errors.py

"""Exception taxonomy shared by the probing, storage and bot layers."""


class StockWatchError(Exception):
    """Base class for every error raised by stockwatch."""


class ValidationError(StockWatchError):
    """User input (product URL or pincode) was rejected."""


class ProbeError(StockWatchError):
    """An availability probe could not reach a verdict."""


class PersistenceError(StockWatchError):
    """The status store could not be read or written."""


class NotifierError(StockWatchError):
    """A message could not be delivered to its recipient."""


class FetchError(StockWatchError):
    """Transport-level failure inside a page fetcher."""


class FetchTimeout(FetchError):
    """A bounded wait inside a page fetcher expired."""
