"""Error taxonomy for the relay."""

from __future__ import annotations


class RelayError(Exception):
    """Base class for all relay exceptions."""


class ConfigError(RelayError):
    """Raised at startup when required configuration is missing or invalid."""


class UserFacingError(RelayError):
    """An error whose message is meant to be shown directly in chat."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EmptyPayloadError(UserFacingError):
    """Raised when a payload is empty after trimming."""

    def __init__(self, message: str = "Input cannot be empty."):
        super().__init__(message)


class InvalidModeError(RelayError):
    """Raised when a request is composed with a mode the composer does not know."""


class TelegramError(RelayError):
    """A Bot API call answered with ``ok: false``."""

    def __init__(self, description: str, error_code: int | None = None):
        super().__init__(f"{description} (error_code={error_code})")
        self.description = description
        self.error_code = error_code
