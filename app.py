"""
Roll Call QR Attendance System - Main Application

Entry point for the development server. Registers students, serves their
roll-encoded QR codes, records attendance from scans posted to /api/mark and
exports the attendance log as CSV.
"""

import logging
import os

from config import LOG_FORMAT
from rollcall import create_app

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT
)
logger = logging.getLogger(__name__)

app = create_app()

if __name__ == '__main__':
    port = int(os.environ.get('PORT', 3000))
    logger.info(f"Server listening on port {port}")
    app.run(debug=app.config['DEBUG'], host='0.0.0.0', port=port)
