from __future__ import annotations

from typing import Optional


class IntegrationError(Exception):
    """Base error converted to a JSON ``{"error": ...}`` envelope by the API layer."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class BadRequest(IntegrationError):
    status_code = 400


class NotFound(IntegrationError):
    status_code = 404


class ConfigMissing(IntegrationError):
    status_code = 500


class TokenExchangeFailed(IntegrationError):
    status_code = 500


class TenantDiscoveryFailed(IntegrationError):
    status_code = 500


class RefreshFailed(IntegrationError):
    """The refresh grant was rejected; the account has to be reconnected."""

    status_code = 502


class ObjectFetchFailed(IntegrationError):
    status_code = 502


class DownstreamCallFailed(IntegrationError):
    status_code = 502

    def __init__(self, downstream_status: Optional[int], body: str) -> None:
        # No status when the request never got a response
        if downstream_status is None:
            super().__init__(f"External API call failed: {body}")
        else:
            super().__init__(f"External API call failed: {downstream_status} - {body}")
        self.downstream_status = downstream_status
        self.body = body


def describe_error_body(payload: object) -> str:
    """Pick the most useful message out of a HubSpot error body."""
    if isinstance(payload, dict):
        message = payload.get("message") or payload.get("error_description") or payload.get("error")
        if message:
            return str(message)
    return str(payload)
