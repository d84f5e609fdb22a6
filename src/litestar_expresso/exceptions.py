"""Exception taxonomy and HTTP mapping for litestar-expresso."""

from __future__ import annotations

from litestar import Request, Response


class ExpressoError(Exception):
    """Base class for every error surfaced to the initiating actor."""

    code = "expresso_error"


class InvalidStateError(ExpressoError):
    """Transition attempted from a state that does not allow it."""

    code = "invalid_state"

    def __init__(
        self,
        subject_id: str,
        current: str,
        target: str | None = None,
        message: str | None = None,
    ) -> None:
        self.subject_id = subject_id
        self.current = current
        self.target = target
        if message is None:
            if target is None:
                message = f"{subject_id!r} cannot be changed while in {current}"
            else:
                message = (
                    f"{subject_id!r} cannot move from {current} to {target}"
                )
        super().__init__(message)


class ConcurrentUpdateError(InvalidStateError):
    """Status changed between the read and the conditional write."""

    code = "concurrent_update"

    def __init__(self, subject_id: str, expected: str) -> None:
        super().__init__(
            subject_id,
            expected,
            message=(
                f"{subject_id!r} is no longer in {expected}; "
                "reload it and retry"
            ),
        )


class TransitionInProgressError(ExpressoError):
    """Another transition on the same record is still in flight."""

    code = "transition_in_progress"

    def __init__(self, subject_id: str) -> None:
        self.subject_id = subject_id
        super().__init__(f"A transition on {subject_id!r} is already running")


class DriverNotAssignedError(ExpressoError):
    """Finalization or occurrence on a record with no (or another) driver."""

    code = "driver_not_assigned"

    def __init__(self, subject_id: str, message: str | None = None) -> None:
        self.subject_id = subject_id
        super().__init__(message or f"{subject_id!r} has no assigned driver")


class EvidenceRequiredError(ExpressoError):
    """A mandatory photo is missing."""

    code = "evidence_required"

    def __init__(self, message: str = "At least one photo is required") -> None:
        super().__init__(message)


class ObservationsRequiredError(ExpressoError):
    """Occurrence type needs a non-empty observation text."""

    code = "observations_required"

    def __init__(self, occurrence_type: str) -> None:
        self.occurrence_type = occurrence_type
        super().__init__(f"Observations are required for {occurrence_type!r}")


class ValidationIncompleteError(ExpressoError):
    """Finalize attempted before every volume code was validated."""

    code = "validation_incomplete"

    def __init__(self, validated: int, required: int) -> None:
        self.validated = validated
        self.required = required
        super().__init__(
            f"Only {validated} of {required} volumes have been validated"
        )


class DuplicateCodeError(ExpressoError):
    """The same code (or volume) was scanned twice."""

    code = "duplicate_code"

    def __init__(self, code: str) -> None:
        self.scanned_code = code
        super().__init__(f"Code {code!r} has already been validated")


class UnknownCodeError(ExpressoError):
    """Scanned code matches none of the required codes."""

    code = "unknown_code"

    def __init__(self, code: str) -> None:
        self.scanned_code = code
        super().__init__(f"Code {code!r} does not belong to this shipment")


class UploadFailureError(ExpressoError):
    """Object storage write failed."""

    code = "upload_failure"


class PersistenceError(ExpressoError):
    """Database write failed."""

    code = "persistence_error"


class AuthenticationRequiredError(ExpressoError):
    """Operation needs an identified actor."""

    code = "authentication_required"

    def __init__(self, message: str = "An identified actor is required") -> None:
        super().__init__(message)


class PermissionDeniedError(ExpressoError):
    """Actor role may not perform this operation."""

    code = "permission_denied"


class ShipmentNotFoundError(ExpressoError):
    """Shipment, B2B shipment or volume with given ID was not found."""

    code = "not_found"

    def __init__(self, shipment_id: str) -> None:
        self.shipment_id = shipment_id
        super().__init__(f"Shipment {shipment_id!r} not found")


class ConfigurationError(ExpressoError):
    """A required component is not configured."""

    code = "configuration_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)


def _error_response(
    request: Request, exc: ExpressoError, status_code: int
) -> Response:
    return Response(
        content={"detail": str(exc), "code": exc.code},
        status_code=status_code,
    )


def handle_conflict(request: Request, exc: ExpressoError) -> Response:
    """Map state and concurrency conflicts to 409."""
    return _error_response(request, exc, 409)


def handle_unprocessable(request: Request, exc: ExpressoError) -> Response:
    """Map missing evidence and code validation failures to 422."""
    return _error_response(request, exc, 422)


def handle_authentication_required(
    request: Request, exc: AuthenticationRequiredError
) -> Response:
    """Map AuthenticationRequiredError to 401."""
    return _error_response(request, exc, 401)


def handle_permission_denied(
    request: Request, exc: PermissionDeniedError
) -> Response:
    """Map PermissionDeniedError to 403."""
    return _error_response(request, exc, 403)


def handle_shipment_not_found(
    request: Request, exc: ShipmentNotFoundError
) -> Response:
    """Map ShipmentNotFoundError to 404."""
    return _error_response(request, exc, 404)


def handle_upload_failure(
    request: Request, exc: UploadFailureError
) -> Response:
    """Map UploadFailureError to 502."""
    return _error_response(request, exc, 502)


def handle_persistence_error(
    request: Request, exc: PersistenceError
) -> Response:
    """Map PersistenceError to 503."""
    return _error_response(request, exc, 503)


def handle_configuration_error(
    request: Request, exc: ConfigurationError
) -> Response:
    """Map ConfigurationError to 500."""
    return _error_response(request, exc, 500)


def handle_expresso_error(request: Request, exc: ExpressoError) -> Response:
    """Map any other ExpressoError to 400."""
    return _error_response(request, exc, 400)


EXCEPTION_HANDLERS = {
    InvalidStateError: handle_conflict,
    TransitionInProgressError: handle_conflict,
    DriverNotAssignedError: handle_conflict,
    DuplicateCodeError: handle_conflict,
    EvidenceRequiredError: handle_unprocessable,
    ObservationsRequiredError: handle_unprocessable,
    ValidationIncompleteError: handle_unprocessable,
    UnknownCodeError: handle_unprocessable,
    AuthenticationRequiredError: handle_authentication_required,
    PermissionDeniedError: handle_permission_denied,
    ShipmentNotFoundError: handle_shipment_not_found,
    UploadFailureError: handle_upload_failure,
    PersistenceError: handle_persistence_error,
    ConfigurationError: handle_configuration_error,
    ExpressoError: handle_expresso_error,
}
