"""
filecrm — integration test package

File: tests/integration/__init__.py

Purpose
- Test package marker file for tests that run the CLI as a separate process.
"""
