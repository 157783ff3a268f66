"""
Tests Package

Test structure:
- tests/conftest.py - shared settings fixtures
- tests/test_*.py - one module per component, plus test_pipeline.py for whole runs

Collaborators (orders database, SFTP server, mail relay) are stubbed; the
orders database is an in-memory SQLite engine.
"""
