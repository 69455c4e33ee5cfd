from __future__ import annotations

from typing import Optional

from botocore.exceptions import ClientError

PERMISSION_ERROR_CODES = {
    "AccessDenied",
    "AccessDeniedException",
    "UnauthorizedOperation",
    "UnauthorizedException",
    "AuthFailure",
}


class RetryableError(Exception):
    """Indicates a failure that may succeed on retry."""

    def __init__(self, message: str, *, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.step = step


class NonRetryableError(Exception):
    """Indicates a failure that should not be retried."""

    def __init__(self, message: str, *, step: Optional[str] = None) -> None:
        super().__init__(message)
        self.step = step


class UpstreamUnavailable(RetryableError):
    """The compute listing call failed or timed out."""


class DependencyNotReady(RetryableError):
    """A dependency was not externally visible before the readiness deadline."""


class PermissionDenied(NonRetryableError):
    """The caller lacks rights for a listing or provisioning call."""


class ConflictingResource(NonRetryableError):
    """A resource with the target name exists and could not be replaced."""


class ProvisioningError(NonRetryableError):
    """Any other control-plane failure that aborts reconciliation."""


def client_error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def is_permission_error(exc: ClientError) -> bool:
    return client_error_code(exc) in PERMISSION_ERROR_CODES
