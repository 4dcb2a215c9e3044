"""Structured logging utilities."""

from .audit import AuditEvent, JsonlAuditLogger, new_run_id, utc_timestamp

__all__ = ["AuditEvent", "JsonlAuditLogger", "new_run_id", "utc_timestamp"]
