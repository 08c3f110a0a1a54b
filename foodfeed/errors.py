from __future__ import annotations


class FoodFeedError(Exception):
    """Base class for every error surfaced to callers of the service."""

    status_code: int = 500

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class NotAuthenticated(FoodFeedError):
    """No active session. Recovered by logging in again, never retried."""

    status_code = 401


class NotAuthorized(FoodFeedError):
    """Authenticated, but not allowed to perform this mutation."""

    status_code = 403


class NotFound(FoodFeedError):
    status_code = 404


class ValidationFailure(FoodFeedError):
    """Rejected by a caller-side check before any network round trip."""

    status_code = 422


class TransientNetworkFailure(FoodFeedError):
    """Any other backend or storage failure. Retried only by the user."""

    status_code = 503
