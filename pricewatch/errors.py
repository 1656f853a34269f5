"""
Error Types
===========

Every collaborator call (fetch, persist, notify) raises one of these.
Callers catch them at the call site and skip the unit of work.
"""


class PriceWatchError(Exception):
    """Base class for all price watch errors."""


class FetchError(PriceWatchError):
    """Price source request failed (network, 4xx, 5xx)."""


class NotFoundError(FetchError):
    """Price source has no price for the requested symbol."""


class RateLimitedError(FetchError):
    """Price source answered 429."""


class PersistenceError(PriceWatchError):
    """Price store read or write failed."""


class DeliveryError(PriceWatchError):
    """Notification could not be delivered."""


class ValidationError(PriceWatchError):
    """Input rejected (unknown symbol, bad argument)."""


class DivisionUndefined(ValidationError, ZeroDivisionError):
    """Percentage change requested against a non-positive prior price."""
