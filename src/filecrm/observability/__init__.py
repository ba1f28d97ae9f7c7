"""
filecrm — observability

File: src/filecrm/observability/__init__.py

Purpose
- Structured JSON-lines logging with redaction and correlation fields.
"""
