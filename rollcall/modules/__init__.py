# Roll Call QR Attendance System - Modules Package
"""
Core business logic modules for the Roll Call QR attendance system:
the shared store, student registry, attendance ledger, scan service,
report generator and QR code generation.
"""
