"""
Test fixtures package.

This package provides reusable pytest fixtures for testing the seohub
application. Import fixtures into conftest.py to make them available to all tests.

Available fixture modules:
- database: Async SQLAlchemy session fixtures for unit and integration testing
"""
