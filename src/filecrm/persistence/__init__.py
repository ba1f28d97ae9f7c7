"""
filecrm — persistence layer

File: src/filecrm/persistence/__init__.py

Purpose
- ID allocation, line codecs and the per-entity file stores.

Functional requirements
- Full-file rewrites go through temp-file-then-rename; a reader never sees a
  partially written file.
- Every read-modify-write cycle holds the owning store's lock.
"""
