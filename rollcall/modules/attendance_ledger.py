"""
Attendance Ledger Module - Roll Call QR Attendance System

Append-only log of attendance events. Each event references a student by
internal id and records the UTC instant of the scan together with the
calendar day derived from that same instant.

Events are never updated or deleted. Reads join each event with its student
record and are ordered newest first.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
import logging

from rollcall.modules.exceptions import StudentNotFoundError, ValidationError
from rollcall.modules.student_registry import Student

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S'


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """
    Format an instant as an ISO-8601 UTC string with millisecond precision,
    e.g. ``2024-01-01T09:00:00.000Z``. Naive datetimes are taken as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return f"{moment.strftime(TIMESTAMP_FORMAT)}.{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime:
    """Inverse of format_timestamp."""
    return datetime.strptime(value, TIMESTAMP_FORMAT + '.%fZ').replace(tzinfo=timezone.utc)


@dataclass
class AttendanceEvent:
    """Data class for a single attendance event."""
    id: int
    student_id: int
    occurred_at: str
    day: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


JoinedEvent = Tuple[AttendanceEvent, Optional[Student]]

_JOINED_SELECT = """
    SELECT a.id, a.student_id, a.timestamp, a.date,
           s.id AS s_id, s.roll, s.name
    FROM attendance a
    LEFT JOIN students s ON a.student_id = s.id
    ORDER BY a.timestamp DESC, a.id DESC
"""


class AttendanceLedger:
    """
    Attendance event log backed by the shared database manager.
    """

    def __init__(self, database_manager):
        self.db = database_manager
        self.logger = logging.getLogger(__name__)

    def append(self, student_id: int, occurred_at: datetime) -> AttendanceEvent:
        """
        Record an attendance event. No deduplication is performed.

        Args:
            student_id (int): Internal id of an existing student
            occurred_at (datetime): Instant of the scan

        Returns:
            AttendanceEvent: The persisted event

        Raises:
            StudentNotFoundError: If the student is no longer active
        """
        timestamp = format_timestamp(occurred_at)
        day = timestamp[:10]

        # The active check and the insert are one statement, so a concurrent
        # removal cannot slip between them
        with self.db.transaction() as conn:
            cursor = conn.execute(
                """INSERT INTO attendance (student_id, timestamp, date)
                   SELECT id, ?, ? FROM students WHERE id = ? AND is_active = 1""",
                (timestamp, day, student_id)
            )
            inserted = cursor.rowcount == 1
            event_id = cursor.lastrowid

        if not inserted:
            raise StudentNotFoundError(student_id, f"No active student with id {student_id}")

        self.logger.info(f"Attendance recorded: student {student_id} at {timestamp}")
        return AttendanceEvent(id=event_id, student_id=student_id,
                               occurred_at=timestamp, day=day)

    def recent(self, limit: int) -> List[JoinedEvent]:
        """
        Get the newest events joined with their students.

        Args:
            limit (int): Maximum number of events to return

        Returns:
            List[JoinedEvent]: Events ordered by occurred_at descending
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationError(f"Invalid limit: {limit!r}")

        rows = self.db.execute_query(_JOINED_SELECT + " LIMIT ?", (limit,))
        return [self._to_joined(row) for row in rows]

    def all(self) -> List[JoinedEvent]:
        """Get every event joined with its student, newest first."""
        rows = self.db.execute_query(_JOINED_SELECT)
        return [self._to_joined(row) for row in rows]

    def count(self) -> int:
        result = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM attendance",
            fetch_all=False
        )
        return result['count']

    def latest_for_student(self, student_id: int) -> Optional[AttendanceEvent]:
        """Get the most recent event of one student, if any."""
        row = self.db.execute_query(
            """SELECT id, student_id, timestamp, date FROM attendance
               WHERE student_id = ?
               ORDER BY timestamp DESC, id DESC
               LIMIT 1""",
            (student_id,),
            fetch_all=False
        )
        if row is None:
            return None
        return AttendanceEvent(id=row['id'], student_id=row['student_id'],
                               occurred_at=row['timestamp'], day=row['date'])

    @staticmethod
    def _to_joined(row: Dict[str, Any]) -> JoinedEvent:
        event = AttendanceEvent(
            id=row['id'],
            student_id=row['student_id'],
            occurred_at=row['timestamp'],
            day=row['date']
        )
        # Events of students removed outside the registry keep their row
        student = None
        if row['s_id'] is not None:
            student = Student(id=row['s_id'], roll=row['roll'], name=row['name'])
        return event, student
