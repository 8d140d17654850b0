"""
Secure Banking Safeguards

Field-level encryption for sensitive identifiers (SSN and similar) and the
checksum validators shared by the signup and funding intake paths.
"""

__version__ = "1.0.0"
