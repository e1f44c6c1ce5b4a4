"""Shared utility functions for the auth engine.

This package provides convenience re-exports so that consumers can import
directly from ``authsync.utils`` (e.g. ``from authsync.utils import redact_url``)
while full absolute imports remain supported.
"""

from authsync.utils.audit import AuditEvent, log_audit_event
from authsync.utils.lifetime import MountScope
from authsync.utils.redaction import redact_url, sanitize_params

__all__ = [
    "AuditEvent",
    "MountScope",
    "log_audit_event",
    "redact_url",
    "sanitize_params",
]
