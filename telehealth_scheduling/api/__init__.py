"""Backend API access."""

from telehealth_scheduling.api.client import (
    ApiClient,
    ApiConnectionError,
    ApiError,
    ApiTimeoutError,
)

__all__ = [
    "ApiClient",
    "ApiConnectionError",
    "ApiError",
    "ApiTimeoutError",
]
