"""Error types raised by rolehop.

Construction errors (MinRolesError, UnknownUsableRoleError, ConfigError) keep
the refresh loop from ever starting. Runtime errors (AssumeRoleError,
InvalidCredentialError, ProfileWriteError) stop a running loop after the
current pass. None of them are retried.
"""

from typing import Optional


class RolehopError(Exception):
    """Base class for all rolehop failures."""

    def __init__(self, message: str, suggestion: str = "", details: str = ""):
        full_message = message
        if suggestion:
            full_message += f"\n\n{suggestion}"
        if details:
            full_message += f"\n\n{details}"
        super().__init__(full_message)
        self.message = message
        self.suggestion = suggestion
        self.details = details

    def format(self) -> str:
        """Format error for console output with suggestions."""
        output = f"❌ {self.message}"
        if self.suggestion:
            output += f"\n   💡 {self.suggestion}"
        if self.details:
            output += f"\n   ℹ️  {self.details}"
        return output


class ConfigError(RolehopError):
    """Raised when the configuration cannot be read, validated or applied."""


class MinRolesError(RolehopError):
    """Raised when a role pool is built from fewer than two roles."""

    def __init__(self, count: int):
        super().__init__(
            f"At least two roles are required, got {count}",
            "Pass --role at least twice or list two or more roles in the selected chain",
        )
        self.count = count


class UnknownUsableRoleError(RolehopError):
    """Raised when a usable role is missing from the role pool."""

    def __init__(self, role: str):
        super().__init__(
            f"Usable role is missing from roles list: {role}",
            "Every --use role must also be given with --role",
        )
        self.role = role


class AssumeRoleError(RolehopError):
    """Raised when STS refuses to assume a role for the current authority."""

    def __init__(self, role: str, cause: Optional[BaseException] = None):
        super().__init__(
            f"Unable to assume role {role}",
            details=f"{type(cause).__name__}: {cause}" if cause else "",
        )
        self.role = role
        self.cause = cause


class IdentityError(RolehopError):
    """Raised when the current authority cannot be identified."""


class InvalidCredentialError(RolehopError):
    """Raised when a credential is missing one or more required fields."""

    def __init__(self, missing: list[str]):
        super().__init__(
            "Invalid credentials: one or more required fields are missing",
            details=f"missing: {', '.join(missing)}",
        )
        self.missing = missing


class ProfileWriteError(RolehopError):
    """Raised when the AWS profile could not be written."""

    def __init__(self, step: str, reason: str = ""):
        super().__init__(
            f"Failed to write AWS profile while {step}",
            "Check that the aws CLI is installed and on PATH",
            details=reason,
        )
        self.step = step
        self.reason = reason
