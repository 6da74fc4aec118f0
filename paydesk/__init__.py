"""
Paydesk.

Bulk payment orchestration and single-transfer confirmation for the
merchant payment dashboard backend.
"""

__version__ = "0.1.0"
