"""
filecrm — domain layer

File: src/filecrm/domain/__init__.py

Purpose
- Record types, field selectors, validation checks and the error taxonomy.

Non-functional requirements
- No I/O. Everything here is safe to import from any layer.
"""
