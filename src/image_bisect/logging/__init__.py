"""Structured logging utilities."""

from .audit import AuditEvent, JsonlAuditLogger, summarize_output, utc_timestamp

__all__ = ["AuditEvent", "JsonlAuditLogger", "summarize_output", "utc_timestamp"]
