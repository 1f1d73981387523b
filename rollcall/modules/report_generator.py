"""
Report Generator Module - Roll Call QR Attendance System

This module builds attendance reports from the ledger: a bounded "recent
activity" list and an unbounded export, both newest first, plus the CSV
serialization used by the download endpoint.

Report rows are plain dicts with the keys id, roll, name, timestamp, date.
"""

from typing import Any, Dict, Iterable, List
import logging

CSV_HEADER = ('id', 'roll', 'name', 'timestamp', 'date')
DEFAULT_RECENT_LIMIT = 200
DELETED_STUDENT_NAME = '(deleted student)'

_CSV_SPECIAL = (',', '"', '\n', '\r')


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def _csv_field(value: Any, always_quote: bool = False) -> str:
    text = '' if value is None else str(value)
    if always_quote or any(ch in text for ch in _CSV_SPECIAL):
        return _quote(text)
    return text


class ReportGenerator:
    """
    Attendance report builder on top of the attendance ledger.
    """

    def __init__(self, ledger, recent_limit: int = DEFAULT_RECENT_LIMIT):
        """
        Initialize the report generator.

        Args:
            ledger: AttendanceLedger instance
            recent_limit (int): Default size of the recent activity report
        """
        self.ledger = ledger
        self.recent_limit = recent_limit
        self.logger = logging.getLogger(__name__)

    def recent_report(self, limit: int = None) -> List[Dict[str, Any]]:
        """
        Get the most recent attendance rows.

        Args:
            limit (int): Maximum number of rows, defaults to recent_limit

        Returns:
            List[Dict[str, Any]]: Rows ordered by timestamp descending
        """
        if limit is None:
            limit = self.recent_limit
        return [self._to_row(event, student) for event, student in self.ledger.recent(limit)]

    def export_all(self) -> List[Dict[str, Any]]:
        """Get every attendance row, newest first."""
        rows = [self._to_row(event, student) for event, student in self.ledger.all()]
        self.logger.info(f"Attendance export prepared with {len(rows)} rows")
        return rows

    def to_csv(self, rows: Iterable[Dict[str, Any]]) -> str:
        """
        Serialize report rows as CSV.

        The name column is always double quoted. Other columns are written
        bare unless they contain a comma, quote or line break, in which case
        they are quoted with embedded quotes doubled.

        Args:
            rows (Iterable[Dict[str, Any]]): Report rows

        Returns:
            str: CSV text with a header line and ``\\n`` line endings
        """
        lines = [','.join(CSV_HEADER)]
        for row in rows:
            lines.append(','.join(
                _csv_field(row.get(column), always_quote=(column == 'name'))
                for column in CSV_HEADER
            ))
        return '\n'.join(lines) + '\n'

    @staticmethod
    def _to_row(event, student) -> Dict[str, Any]:
        return {
            'id': event.id,
            'roll': student.roll if student else '',
            'name': student.name if student else DELETED_STUDENT_NAME,
            'timestamp': event.occurred_at,
            'date': event.day
        }
