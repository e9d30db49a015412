"""
Enrollment - Database Client.

Supabase access for storage uploads and enrollment records.
"""

from enrollment.db.client import SupabaseEnrollmentBackend, get_client

__all__ = [
    "SupabaseEnrollmentBackend",
    "get_client",
]
