"""Exceptions raised by the oracle core.

Every error is terminal for the call that raised it. Only
``PriceChangeExceedsLimit`` has a durable side effect: the facade trips the
emergency stop before re-raising it.
"""

from __future__ import annotations


class OracleError(Exception):
    """Base class for all oracle errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DecodeError(OracleError):
    """Raised when a feed value cannot be decoded."""


class NonFinite(DecodeError):
    """Raised when a decoded value is infinite or NaN."""


class ValidationError(OracleError):
    """Raised when a feed snapshot fails a sanity check."""


class StaleData(ValidationError):
    """Raised when the feed has not been updated within the allowed age."""


class ExceedsConfidenceInterval(ValidationError):
    """Raised when the feed's confidence band is wider than allowed."""


class InvalidFeedAccount(ValidationError):
    """Raised when the feed is not owned by the registered feed authority."""


class InvalidFeedData(ValidationError):
    """Raised when a feed payload cannot be parsed."""


class RegistryError(OracleError):
    """Raised by asset registries."""


class AssetNotFound(RegistryError):
    """Raised when an asset has no slot."""


class MaxAssetsReached(RegistryError):
    """Raised when a dynamic registry is full."""


class LedgerError(OracleError):
    """Raised when a ledger write is rejected."""


class PriceChangeExceedsLimit(LedgerError):
    """Raised when a price moves more than the allowed relative change."""

    def __init__(self, message: str, old_price: float, new_price: float):
        super().__init__(message)
        self.old_price = old_price
        self.new_price = new_price


class InvalidPrice(LedgerError):
    """Raised when a price is negative or not finite."""


class ControlError(OracleError):
    """Raised by the emergency control."""


class Stopped(ControlError):
    """Raised when a write is attempted while the emergency stop is set."""


class Unauthorized(ControlError):
    """Raised when a caller other than the authority toggles the stop."""


class DataNotAvailable(OracleError):
    """Raised when reading an asset that has never been updated."""


class StateStoreError(OracleError):
    """Raised when persisted oracle state cannot be loaded or saved."""
