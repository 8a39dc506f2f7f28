from enum import Enum
from typing import Optional


class OutcomeKind(str, Enum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    MARKED = "marked"
    ALREADY_MARKED = "already_marked"
    NO_MATCH = "no_match"
    NOT_ENROLLED = "not_enrolled"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAUTHENTICATED = "unauthenticated"
    UNAUTHORIZED = "unauthorized"
    VALIDATION_ERROR = "validation_error"
    NO_FACE_DETECTED = "no_face_detected"
    FEATURE_EXTRACTION_FAILED = "feature_extraction_failed"
    CONFLICT = "conflict"
    UPSTREAM_FAILURE = "upstream_failure"


class AttendanceError(Exception):
    """Base class for every failure the service reports as a structured outcome."""

    kind: OutcomeKind = OutcomeKind.UPSTREAM_FAILURE
    status_code: int = 500

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_dict(self) -> dict:
        payload = {"outcome": self.kind.value, "message": self.message}
        if self.hint:
            payload["hint"] = self.hint
        return payload


class Unauthenticated(AttendanceError):
    kind = OutcomeKind.UNAUTHENTICATED
    status_code = 401


class Unauthorized(AttendanceError):
    kind = OutcomeKind.UNAUTHORIZED
    status_code = 403


class ValidationError(AttendanceError):
    kind = OutcomeKind.VALIDATION_ERROR
    status_code = 400


class NoFaceDetected(ValidationError):
    kind = OutcomeKind.NO_FACE_DETECTED

    def __init__(self, message: str = "No face detected in the provided image"):
        super().__init__(message, hint="Please ensure the image contains a clear face")


class FeatureExtractionFailed(ValidationError):
    kind = OutcomeKind.FEATURE_EXTRACTION_FAILED

    def __init__(self, message: str = "Could not extract face features from the image"):
        super().__init__(
            message, hint="Please ensure the face is clearly visible and well-lit"
        )


class RateLimited(AttendanceError):
    kind = OutcomeKind.RATE_LIMITED
    status_code = 429

    def __init__(self, retry_after: int):
        super().__init__("Please wait before creating another session")
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["retry_after"] = self.retry_after
        return payload


class NotFound(AttendanceError):
    kind = OutcomeKind.NOT_FOUND
    status_code = 404


class InconsistentEnrollment(AttendanceError):
    kind = OutcomeKind.NOT_ENROLLED
    status_code = 404

    def __init__(self, student_id: int):
        super().__init__(
            "Student not found in attendance session",
            hint=(
                "The student may have been registered after the session was "
                "created. Please restart the attendance session."
            ),
        )
        self.student_id = student_id


class ConcurrentUpdateError(AttendanceError):
    kind = OutcomeKind.CONFLICT
    status_code = 409

    def __init__(self, message: str = "Attendance session was modified concurrently"):
        super().__init__(message, hint="Please retry the request")


class UpstreamFailure(AttendanceError):
    kind = OutcomeKind.UPSTREAM_FAILURE
    status_code = 502
