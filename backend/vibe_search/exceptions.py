"""Domain exceptions shared by the search, embedding and vectorization layers."""
from typing import Any


class VibeSearchError(Exception):
    """Base exception for all search service errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class SearchValidationError(VibeSearchError, ValueError):
    """Malformed or out-of-range request parameters."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class DimensionMismatch(VibeSearchError, ValueError):
    """Two vectors of different length were combined."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            "Vectors must have the same length",
            {"expected": expected, "actual": actual},
        )
        self.expected = expected
        self.actual = actual


class EmbeddingProviderError(VibeSearchError):
    """The embedding provider could not turn text into a vector.

    ``reason`` is one of: timeout, network, server_error, circuit_open
    (retryable) or invalid_credentials, quota_exceeded, bad_request,
    invalid_response (not retryable).
    """

    RETRYABLE_REASONS = frozenset({"timeout", "network", "server_error", "circuit_open"})

    def __init__(
        self,
        message: str,
        reason: str,
        *,
        status_code: int | None = None,
        provider: str | None = None,
    ) -> None:
        details: dict[str, Any] = {"reason": reason}
        if status_code is not None:
            details["status_code"] = status_code
        if provider:
            details["provider"] = provider
        super().__init__(message, details)
        self.reason = reason
        self.status_code = status_code
        self.provider = provider

    @property
    def retryable(self) -> bool:
        return self.reason in self.RETRYABLE_REASONS


class CatalogStoreError(VibeSearchError):
    """The catalog database could not be read or written."""


class ProductNotFoundError(VibeSearchError):
    def __init__(self, product_id: Any) -> None:
        super().__init__("Product not found", {"product_id": str(product_id)})
        self.product_id = product_id
