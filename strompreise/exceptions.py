from __future__ import annotations


class PriceDataError(Exception):
    """Raised when an endpoint cannot provide usable price data."""


class NetworkError(PriceDataError):
    """Non-success HTTP status or transport failure."""


class ParseError(PriceDataError):
    """Response body is not valid JSON."""


class EmptyResultError(PriceDataError):
    """Response is well-formed but holds no records."""


class ApiError(PriceDataError):
    """Backend answered with an explicit ``{"error": ...}`` body."""


class SchemaError(PriceDataError):
    """No record field maps to a known price key."""

    def __init__(self, message: str, available_keys: tuple[str, ...] = ()):
        super().__init__(message)
        self.available_keys = available_keys


class PrimaryLoadError(PriceDataError): ...


class DuplicateDatasetError(ValueError): ...
