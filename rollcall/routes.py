"""
HTTP routes for the Roll Call QR attendance system.

JSON API consumed by the scanner page and the presentation layer, the CSV
download and the QR image endpoint. Every failure is answered as
``{"ok": false, "error": ...}`` with a status matching the error kind.
"""

import os
import logging

from flask import Blueprint, current_app, jsonify, redirect, request, send_file, url_for
from werkzeug.exceptions import HTTPException

from rollcall.modules.exceptions import (
    AttendanceError,
    ImageEncodeError,
    StoreError,
    StudentNotFoundError,
)

logger = logging.getLogger(__name__)

bp = Blueprint('rollcall', __name__)


def services():
    return current_app.extensions['rollcall']


def request_data():
    """Body fields from either a JSON or a form-encoded request."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form


@bp.errorhandler(AttendanceError)
def handle_attendance_error(error):
    if isinstance(error, StoreError):
        logger.error(f"Store failure on {request.path}: {str(error)}")
        message = 'db error'
    else:
        message = str(error)
    return jsonify({'ok': False, 'error': message}), error.http_status


@bp.errorhandler(Exception)
def handle_unexpected_error(error):
    if isinstance(error, HTTPException):
        return error
    logger.exception(f"Unhandled error on {request.path}")
    return jsonify({'ok': False, 'error': 'internal error'}), 500


@bp.route('/')
def index():
    return redirect(url_for('rollcall.list_students'))


@bp.route('/api/mark', methods=['POST'])
def mark_attendance():
    """Record attendance for a scanned roll"""
    result = services().scanner.mark(request_data().get('roll'))
    logger.info(f"Attendance marked for {result.student['roll']}")
    return jsonify(result.to_dict())


@bp.route('/api/students', methods=['GET'])
def list_students():
    students = services().registry.list()
    return jsonify({'ok': True, 'students': [s.to_dict() for s in students]})


@bp.route('/api/students', methods=['POST'])
def register_student():
    """Register a student; an existing roll returns the existing record"""
    data = request_data()
    student = services().registry.register(data.get('roll'), data.get('name'))
    return jsonify({'ok': True, 'student': student.to_dict()})


@bp.route('/api/students/<roll>', methods=['PATCH'])
def rename_student(roll):
    student = services().registry.rename(roll, request_data().get('name'))
    return jsonify({'ok': True, 'student': student.to_dict()})


@bp.route('/api/students/<roll>', methods=['DELETE'])
def delete_student(roll):
    services().registry.remove(roll)
    return jsonify({'ok': True})


@bp.route('/api/students/<roll>/qr', methods=['GET'])
def student_qr(roll):
    """Serve the QR image of a registered student"""
    svc = services()
    svc.registry.resolve(roll)

    try:
        path = os.path.abspath(svc.qr_encoder.path_for(roll))
    except ImageEncodeError:
        raise StudentNotFoundError(roll, f"No QR code available for {roll}")

    if not os.path.exists(path):
        raise StudentNotFoundError(roll, f"No QR code available for {roll}")

    return send_file(path, mimetype='image/png')


@bp.route('/api/attendance', methods=['GET'])
def recent_attendance():
    """Recent attendance rows, newest first"""
    limit = request.args.get('limit', type=int)
    if limit is not None:
        limit = min(limit, current_app.config['REPORT_MAX_LIMIT'])
    rows = services().reports.recent_report(limit)
    return jsonify({'ok': True, 'records': rows})


@bp.route('/export.csv', methods=['GET'])
def export_csv():
    """Download every attendance row as CSV"""
    reports = services().reports
    csv_text = reports.to_csv(reports.export_all())

    response = current_app.response_class(csv_text, mimetype='text/csv')
    response.headers['Content-Disposition'] = (
        f"attachment; filename={current_app.config['EXPORT_FILENAME']}"
    )
    return response
