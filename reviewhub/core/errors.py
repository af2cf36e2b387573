"""Exception taxonomy shared by services and routers."""

from __future__ import annotations


class ReviewHubError(Exception):
    """Base class for errors raised by the review pipeline."""


class UnsupportedPlatformError(ReviewHubError, ValueError):
    """Raised when a provider identifier matches no known platform."""

    def __init__(self, platform_type: object) -> None:
        super().__init__(f"Unsupported platformType: {platform_type}")
        self.platform_type = platform_type


class QueueUnavailableError(ReviewHubError):
    """Raised when the job queue cannot accept a job."""


class MissingOrganizationError(ReviewHubError):
    """Raised when a request carries no organization."""


class InvalidJobError(ReviewHubError):
    """Raised when a queued job cannot be processed by the webhook processor."""
