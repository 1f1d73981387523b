"""
Exceptions Module - Roll Call QR Attendance System

Error kinds raised by the registry, ledger and scan service. Each carries the
HTTP status the web layer answers with, so a scanning client can tell an
unregistered student apart from a system failure.
"""


class AttendanceError(Exception):
    """Base exception for all attendance system errors."""

    http_status = 500


class ValidationError(AttendanceError):
    """Raised when a required field is missing or empty."""

    http_status = 400


class InvalidInputError(ValidationError):
    """Raised when a scanned value is empty after trimming."""


class StudentNotFoundError(AttendanceError):
    """Raised when a roll does not resolve to an active student."""

    http_status = 404

    def __init__(self, roll, message=None):
        self.roll = roll
        super().__init__(message or f"Student not found: {roll}")


class UnknownStudentError(StudentNotFoundError):
    """Raised by scan ingestion when the scanned roll is not registered."""

    def __init__(self, roll):
        super().__init__(roll, f"Unknown student roll: {roll}")


class DuplicateScanError(AttendanceError):
    """Raised when a duplicate-scan policy rejects a scan."""

    http_status = 409

    def __init__(self, roll, seconds_since_last):
        self.roll = roll
        self.seconds_since_last = seconds_since_last
        super().__init__(
            f"Attendance for {roll} already recorded {seconds_since_last:.0f}s ago"
        )


class StoreError(AttendanceError):
    """Raised when the persistence layer fails."""


class ImageEncodeError(AttendanceError):
    """Raised when a QR code image cannot be produced for a roll."""
