"""
Student Registry Module - Roll Call QR Attendance System

This module owns the student records. A student is identified externally by
its roll, the value encoded in the student's QR code; the numeric id stays
internal and is what attendance events reference.

Features:
- Idempotent registration keyed by roll
- Exact roll resolution for scan ingestion
- Name edits (the roll is immutable)
- Deletion that never touches attendance history
- Best-effort QR code generation after each write
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional
import logging

from rollcall.modules.exceptions import (
    ImageEncodeError,
    StudentNotFoundError,
    ValidationError,
)


@dataclass
class Student:
    """Data structure for a registered student."""
    id: int
    roll: str
    name: str

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Student':
        return cls(id=row['id'], roll=row['roll'], name=row['name'])

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {field}")
    return value.strip()


class StudentRegistry:
    """
    Identity registry for students, backed by the shared database manager.
    """

    def __init__(self, database_manager, image_encoder=None):
        """
        Initialize the student registry.

        Args:
            database_manager: Database manager instance
            image_encoder: Object with an ``encode(roll)`` method, or None to
                skip QR generation
        """
        self.db = database_manager
        self.image_encoder = image_encoder
        self.logger = logging.getLogger(__name__)

    def register(self, roll: str, name: str) -> Student:
        """
        Create a student, or return the existing one when the roll is taken.

        The existing student's name is never overwritten. Concurrent calls
        with the same roll create exactly one record.

        Args:
            roll (str): Unique roll identifier
            name (str): Display name

        Returns:
            Student: The created or already existing student

        Raises:
            ValidationError: If roll or name is missing or blank
        """
        roll = _require_text(roll, 'roll')
        name = _require_text(name, 'name')

        with self.db.transaction() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO students (roll, name) VALUES (?, ?)",
                (roll, name)
            )
            created = cursor.rowcount == 1
            row = conn.execute(
                "SELECT id, roll, name FROM students WHERE roll = ? AND is_active = 1",
                (roll,)
            ).fetchone()

        student = Student.from_row(row)

        if created:
            self.logger.info(f"Student registered: {student.roll} (ID: {student.id})")
        else:
            self.logger.info(f"Student {student.roll} already registered, keeping existing record")

        self._request_qr_code(student.roll)
        return student

    def resolve(self, roll: str) -> Student:
        """
        Look up an active student by exact, case-sensitive roll.
        The roll is not trimmed here.

        Raises:
            StudentNotFoundError: If no active student has this roll
        """
        student = self.find(roll)
        if student is None:
            raise StudentNotFoundError(roll)
        return student

    def find(self, roll: str) -> Optional[Student]:
        """Like resolve, but returns None when the roll is unknown."""
        row = self.db.execute_query(
            "SELECT id, roll, name FROM students WHERE roll = ? AND is_active = 1",
            (roll,),
            fetch_all=False
        )
        return Student.from_row(row) if row else None

    def get(self, student_id: int) -> Optional[Student]:
        """Get a student by internal id, including soft-deleted ones."""
        row = self.db.execute_query(
            "SELECT id, roll, name FROM students WHERE id = ?",
            (student_id,),
            fetch_all=False
        )
        return Student.from_row(row) if row else None

    def rename(self, roll: str, new_name: str) -> Student:
        """
        Update the display name of a student. The roll never changes.

        Raises:
            ValidationError: If new_name is missing or blank
            StudentNotFoundError: If the roll is unknown
        """
        new_name = _require_text(new_name, 'name')

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """UPDATE students SET name = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE roll = ? AND is_active = 1""",
                (new_name, roll)
            )
            if cursor.rowcount == 0:
                raise StudentNotFoundError(roll)
            row = conn.execute(
                "SELECT id, roll, name FROM students WHERE roll = ? AND is_active = 1",
                (roll,)
            ).fetchone()

        self.logger.info(f"Student {roll} renamed")
        self._request_qr_code(roll)
        return Student.from_row(row)

    def remove(self, roll: str) -> None:
        """
        Delete a student. Attendance events are left untouched.

        A student with attendance history is soft deleted (marked inactive) so
        reports can still show who the events belonged to; a student without
        history is removed outright.

        Raises:
            StudentNotFoundError: If the roll is unknown
        """
        with self.db.transaction() as conn:
            row = conn.execute(
                "SELECT id FROM students WHERE roll = ? AND is_active = 1",
                (roll,)
            ).fetchone()
            if row is None:
                raise StudentNotFoundError(roll)

            has_attendance = conn.execute(
                "SELECT COUNT(*) FROM attendance WHERE student_id = ?",
                (row['id'],)
            ).fetchone()[0] > 0

            if has_attendance:
                conn.execute(
                    """UPDATE students SET is_active = 0, updated_at = CURRENT_TIMESTAMP
                       WHERE id = ?""",
                    (row['id'],)
                )
            else:
                conn.execute("DELETE FROM students WHERE id = ?", (row['id'],))

        self.logger.info(
            f"Student {roll} deleted ({'soft' if has_attendance else 'hard'} delete)"
        )

    def list(self) -> List[Student]:
        """Get all active students sorted by roll ascending."""
        rows = self.db.execute_query(
            "SELECT id, roll, name FROM students WHERE is_active = 1 ORDER BY roll"
        )
        return [Student.from_row(row) for row in rows]

    def count(self) -> int:
        result = self.db.execute_query(
            "SELECT COUNT(*) AS count FROM students WHERE is_active = 1",
            fetch_all=False
        )
        return result['count']

    def _request_qr_code(self, roll: str) -> None:
        # A student must exist even when its QR image cannot be produced
        if self.image_encoder is None:
            return
        try:
            self.image_encoder.encode(roll)
        except ImageEncodeError as e:
            self.logger.error(f"QR gen error for {roll}: {str(e)}")
