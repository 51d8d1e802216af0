"""Typed application errors with user-facing messages."""

from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class PrivilegeRequiredError(AppError):
    pass


class PropertyWriteError(AppError):
    def __init__(
        self,
        message: str,
        user_message: str | None = None,
        *,
        property_name: str | None = None,
    ) -> None:
        super().__init__(message, user_message)
        self.property_name = property_name


class AdapterRestartError(AppError):
    pass


class SnapshotError(AppError):
    pass


class ConfigError(AppError):
    pass


class SampleSinkError(AppError):
    pass


class LinkReadError(AppError):
    pass
