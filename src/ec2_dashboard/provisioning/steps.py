from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from botocore.exceptions import BotoCoreError, ClientError

from ec2_dashboard.util.errors import (
    ConflictingResource,
    NonRetryableError,
    PermissionDenied,
    ProvisioningError,
    RetryableError,
    client_error_code,
    is_permission_error,
)
from ec2_dashboard.util.logging import log_event

CONFLICT_ERROR_CODES = {"ResourceConflictException", "ConflictException"}


@contextmanager
def provisioning_step(logger: logging.Logger, step: str) -> Iterator[None]:
    """Translate control-plane failures inside ``step`` into the provisioning error taxonomy."""
    try:
        yield
    except (RetryableError, NonRetryableError) as exc:
        if exc.step is None:
            exc.step = step
        raise
    except ClientError as exc:
        log_event(logger, "step_failed", level=logging.ERROR, step=step, error=str(exc))
        if is_permission_error(exc):
            raise PermissionDenied(str(exc), step=step) from exc
        if client_error_code(exc) in CONFLICT_ERROR_CODES:
            raise ConflictingResource(
                f"{exc}; remove the conflicting resource manually and re-run",
                step=step,
            ) from exc
        raise ProvisioningError(str(exc), step=step) from exc
    except BotoCoreError as exc:
        log_event(logger, "step_failed", level=logging.ERROR, step=step, error=str(exc))
        raise ProvisioningError(str(exc), step=step) from exc
