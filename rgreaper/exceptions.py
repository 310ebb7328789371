"""Exception hierarchy for rgreaper."""

from __future__ import annotations

from typing import Optional


class ReaperError(Exception):
    """Base class for all rgreaper errors."""


class ConfigError(ReaperError):
    """Raised when the configuration is missing or invalid."""


class CredentialValidationError(ReaperError):
    """Raised when Azure credentials cannot be obtained or subscriptions cannot be enumerated."""


class MetadataFetchError(ReaperError):
    """Raised when metadata for a subscription cannot be fetched.

    Attributes:
        subscription_id: Subscription the fetch was issued against
        error_code: Azure error code if one was returned
    """

    def __init__(self, subscription_id: str, message: str, error_code: Optional[str] = None) -> None:
        super().__init__(f"[{subscription_id}] {message}")
        self.subscription_id = subscription_id
        self.error_code = error_code


class MissingCreationTimeError(ReaperError):
    """Raised when an entity has no usable creation timestamp."""

    def __init__(self, identity: str) -> None:
        super().__init__(f"{identity} has no creation time")
        self.identity = identity
