# Folder: qport-core/agent/errors.py
#
# Error taxonomy for the pipeline.
#
#   ReportValidationError   bad input, rejected before any network call
#   TransientBackendError   429 or no status at all - retried, then downgraded
#   PermanentBackendError   any other explicit status - downgraded at once
#   SinkError               notification failed - logged, never propagated
#
# Retry decisions only look at `status_code`, so exceptions raised by
# the Anthropic SDK (which carry the same attribute) work unchanged.

from typing import Optional

RATE_LIMITED_STATUS = 429


class PipelineError(Exception):
    """Base class for everything the pipeline raises on purpose."""


class ReportValidationError(PipelineError, ValueError):
    """Report text is empty or too short to classify."""


class BackendError(PipelineError):

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientBackendError(BackendError):
    pass


class PermanentBackendError(BackendError):
    pass


class SinkError(PipelineError):
    """A best-effort notification could not be delivered."""


def status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None)
    if status is None:
        # some transports only expose `.status`
        status = getattr(exc, "status", None)
    return status if isinstance(status, int) else None


def is_retryable(exc: BaseException) -> bool:
    """Rate limited, or no explicit status (possibly transient)."""
    status = status_of(exc)
    return status is None or status == RATE_LIMITED_STATUS


def as_backend_error(exc: BaseException) -> BackendError:
    """Map any failure onto the taxonomy, keeping the original status."""
    if isinstance(exc, BackendError):
        return exc
    status = status_of(exc)
    cls = TransientBackendError if is_retryable(exc) else PermanentBackendError
    return cls(f"{type(exc).__name__}: {exc}", status_code=status)
