"""
Scan Service Module - Roll Call QR Attendance System

Turns a decoded QR scan into an attendance event: the raw value is trimmed,
resolved to a student through the registry and, if known, appended to the
ledger. The service keeps no state of its own.

Repeated scans of the same roll are all recorded by default. Suppressing
quick re-scans is an explicit policy object (SuppressWithinWindow) chosen at
construction time.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
import logging

from rollcall.modules.attendance_ledger import (
    AttendanceEvent,
    parse_timestamp,
    utc_now,
)
from rollcall.modules.exceptions import (
    DuplicateScanError,
    InvalidInputError,
    StudentNotFoundError,
    UnknownStudentError,
)
from rollcall.modules.student_registry import Student


@dataclass
class MarkResult:
    """Outcome of a successful scan."""
    success: bool
    student: Dict[str, str]
    timestamp: str
    event_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ok': self.success,
            'student': self.student,
            'timestamp': self.timestamp
        }


class AcceptAllScans:
    """Duplicate-scan policy that records every scan."""

    def check(self, student: Student, now: datetime,
              previous: Optional[AttendanceEvent]) -> None:
        return None

    @property
    def needs_previous(self) -> bool:
        return False


class SuppressWithinWindow:
    """
    Duplicate-scan policy rejecting a scan that follows the same student's
    previous event by less than ``seconds``.
    """

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ValueError("Suppression window must be positive")
        self.seconds = seconds

    @property
    def needs_previous(self) -> bool:
        return True

    def check(self, student: Student, now: datetime,
              previous: Optional[AttendanceEvent]) -> None:
        if previous is None:
            return
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        elapsed = (now - parse_timestamp(previous.occurred_at)).total_seconds()
        if elapsed < self.seconds:
            raise DuplicateScanError(student.roll, elapsed)


def policy_from_window(seconds: float):
    """Build the policy for a configured window; 0 disables suppression."""
    if not seconds:
        return AcceptAllScans()
    return SuppressWithinWindow(seconds)


class ScanService:
    """
    Scan ingestion: orchestrates a registry read followed by a ledger write.
    """

    def __init__(self, registry, ledger, policy=None,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the scan service.

        Args:
            registry: StudentRegistry used to resolve rolls
            ledger: AttendanceLedger events are appended to
            policy: Duplicate-scan policy, AcceptAllScans by default
            clock: Callable returning the current aware UTC datetime
        """
        self.registry = registry
        self.ledger = ledger
        self.policy = policy or AcceptAllScans()
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def mark(self, raw_input: Any) -> MarkResult:
        """
        Record attendance for a scanned roll.

        Args:
            raw_input: Decoded scan value

        Returns:
            MarkResult: Student name/roll and the recorded timestamp

        Raises:
            InvalidInputError: If the value is not a string or is blank
            UnknownStudentError: If the roll is not registered
            DuplicateScanError: If the configured policy rejects the scan
            StoreError: If the database fails
        """
        if not isinstance(raw_input, str):
            raise InvalidInputError("roll required")

        roll = raw_input.strip()
        if not roll:
            raise InvalidInputError("roll required")

        try:
            student = self.registry.resolve(roll)
        except StudentNotFoundError:
            self.logger.warning(f"Scan rejected, unknown roll: {roll}")
            raise UnknownStudentError(roll) from None

        # One instant feeds both the timestamp and the derived day
        now = self.clock()

        previous = None
        if self.policy.needs_previous:
            previous = self.ledger.latest_for_student(student.id)
        try:
            self.policy.check(student, now, previous)
        except DuplicateScanError:
            self.logger.warning(f"Duplicate scan suppressed for {roll}")
            raise

        try:
            event = self.ledger.append(student.id, now)
        except StudentNotFoundError:
            self.logger.warning(f"Scan rejected, {roll} was removed while scanning")
            raise UnknownStudentError(roll) from None

        return MarkResult(
            success=True,
            student={'name': student.name, 'roll': student.roll},
            timestamp=event.occurred_at,
            event_id=event.id
        )
