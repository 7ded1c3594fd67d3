"""Error taxonomy surfaced by the data layer."""

from typing import Optional


class PokedexError(Exception):
    """Base class for every error the data layer surfaces."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(PokedexError):
    """Transport failure, non-2xx response or unusable payload from the provider.

    Payload errors are raised with `retryable=False`: asking again returns
    the same body.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, retryable: bool = True):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class NotFoundError(PokedexError):
    """The requested remote resource does not exist."""


class StorageError(PokedexError):
    """Local persistence failed."""


class ParseError(PokedexError):
    """An identifier could not be extracted from a resource URL."""
