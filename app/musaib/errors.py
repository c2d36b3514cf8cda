from __future__ import annotations


class PortalError(Exception):
    """Base class for business errors raised by the service layer."""

    code = "error"
    http_status = 400


class ValidationError(PortalError):
    code = "validation_error"
    http_status = 400


class ConstraintViolation(PortalError):
    code = "constraint_violation"
    http_status = 409


class InvalidTransitionError(PortalError):
    code = "invalid_transition"
    http_status = 409


class NotFoundError(PortalError):
    code = "not_found"
    http_status = 404


class PersistenceError(PortalError):
    code = "persistence_error"
    http_status = 503


class AttachmentError(PortalError):
    """Upload failure. Its code tags the attachment adapter's log lines; never raised to callers."""

    code = "attachment_error"
    http_status = 502
