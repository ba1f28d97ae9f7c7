"""
filecrm — services

File: src/filecrm/services/__init__.py

Purpose
- Use-case layer over the stores plus the mail and document collaborators.
"""
