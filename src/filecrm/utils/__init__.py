"""
filecrm — utilities

File: src/filecrm/utils/__init__.py

Purpose
- Filesystem helpers and the background mutation pool.
"""
