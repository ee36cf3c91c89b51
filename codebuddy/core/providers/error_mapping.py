"""Shared helpers for provider error mapping."""

from __future__ import annotations

from typing import Any, Optional

import httpx

from codebuddy.core.providers.errors import (
    ProviderApiError,
    ProviderAuthenticationError,
    ProviderBadRequestError,
    ProviderConnectionError,
    ProviderContentPolicyViolationError,
    ProviderContextLengthExceededError,
    ProviderInsufficientBalanceError,
    ProviderMappedError,
    ProviderModelNotFoundError,
    ProviderPermissionDeniedError,
    ProviderRateLimitError,
    ProviderServiceUnavailableError,
    ProviderTimeoutError,
)

_TIMEOUT_HINTS = ("timed out", "timeout")
_QUOTA_HINTS = ("insufficient_quota", "exceeded your current quota")
_CONTEXT_HINTS = (
    "context length",
    "context window",
    "prompt is too long",
    "input is too long",
    "too many tokens",
    "exceeds the model's maximum context length",
)


def is_timeout_message(message: str) -> bool:
    """Return True when an error message describes timeout-like behavior."""
    lowered = message.lower()
    return any(hint in lowered for hint in _TIMEOUT_HINTS)


def extract_error_message(data: Any) -> Optional[str]:
    """Pull the most common vendor error shapes out of a decoded body.

    Handles ``{"error": {"message": ...}}``, ``{"error": "..."}``,
    ``{"message": ...}`` and ``{"detail": ...}``.
    """
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(error, str) and error:
        return error
    for key in ("message", "detail"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def map_connection_error(message: str) -> ProviderMappedError:
    """Map a transport failure message to a retryable normalized error."""
    if is_timeout_message(message):
        return ProviderTimeoutError(f"Request timed out: {message}")
    return ProviderConnectionError(f"Connection error: {message}")


def map_transport_error(exc: httpx.TransportError) -> ProviderMappedError:
    """Map an httpx transport exception; timeouts and network errors both retry."""
    message = str(exc) or type(exc).__name__
    if isinstance(exc, httpx.TimeoutException):
        return ProviderTimeoutError(f"Request timed out: {message}")
    return map_connection_error(message)


def map_permission_denied_error(message: str) -> ProviderMappedError:
    """Map permission-denied messages with balance-aware specialization."""
    lowered = message.lower()
    if "balance" in lowered or "insufficient" in lowered:
        return ProviderInsufficientBalanceError(f"Insufficient balance: {message}")
    return ProviderPermissionDeniedError(f"Permission denied: {message}")


def map_bad_request_error(message: str) -> ProviderMappedError:
    """Map invalid request messages including context/content policy variants."""
    lowered = message.lower()
    if any(hint in lowered for hint in _CONTEXT_HINTS):
        return ProviderContextLengthExceededError(f"Context length exceeded: {message}")
    if "content" in lowered and "policy" in lowered:
        return ProviderContentPolicyViolationError(f"Content policy violation: {message}")
    return ProviderBadRequestError(f"Invalid request: {message}")


def map_rate_limit_error(message: str) -> ProviderMappedError:
    """Map HTTP 429; exhausted quota is permanent, plain throttling is not."""
    lowered = message.lower()
    if any(hint in lowered for hint in _QUOTA_HINTS):
        return ProviderInsufficientBalanceError(f"Quota exceeded: {message}")
    return ProviderRateLimitError(f"Rate limit exceeded: {message}")


def map_http_status_error(status: int, message: str) -> ProviderMappedError:
    """Classify an HTTP error status.

    Only 429 and 503 are retryable. Unknown codes fall through to a
    non-retryable ``ProviderApiError`` so a permanent misconfiguration never
    spins through the backoff schedule.
    """
    if status == 429:
        return map_rate_limit_error(message)
    if status == 503:
        return ProviderServiceUnavailableError(f"Service unavailable: {message}")
    if status == 401:
        return ProviderAuthenticationError(f"Authentication failed: {message}")
    if status == 402:
        return ProviderInsufficientBalanceError(f"Insufficient balance: {message}")
    if status == 403:
        return map_permission_denied_error(message)
    if status == 404:
        return ProviderModelNotFoundError(f"Model or deployment not found: {message}")
    if status in (400, 413, 422):
        return map_bad_request_error(message)
    return ProviderApiError(f"API error ({status}): {message}")
