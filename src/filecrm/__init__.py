"""
filecrm — file-backed customer records

File: src/filecrm/__init__.py

Purpose
- Package root. Users, clients, contacts, deals, tasks and messages kept as
  delimited text lines, one file per entity type.

Import boundary rules
- No side effects at import time (no config loading, no logging init).
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
