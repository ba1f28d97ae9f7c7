"""
filecrm — user interface

File: src/filecrm/ui/__init__.py

Purpose
- Inspection CLI and its plain-text renderer. The only layer that prints.
"""
