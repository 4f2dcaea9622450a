"""Error taxonomy shared by the form workflow services."""

from __future__ import annotations

# purpose: give routes and services one vocabulary for workflow failures
# status: active


class FormWorkflowError(RuntimeError):
    """Base error for form, section and response workflows."""

    status_code = 400


class ValidationError(FormWorkflowError):
    """Raised when a payload is rejected before any store call."""

    status_code = 400


class PermissionDenied(FormWorkflowError):
    """Raised when the actor may not perform the requested mutation."""

    status_code = 403


class RecordNotFound(FormWorkflowError):
    """Raised when a user, form, section or share token cannot be located."""

    status_code = 404


class InvalidState(FormWorkflowError):
    """Raised when a record is in a terminal or incompatible state."""

    status_code = 409


class PersistenceFailure(FormWorkflowError):
    """Raised when the storage collaborator reports an error."""

    status_code = 503
