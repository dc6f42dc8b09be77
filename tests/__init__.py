#!/usr/bin/env python3
"""
Test suite for the care shift scheduling service.

All tests can be run with standard Python tools:

    # Run all tests
    python -m pytest tests/ -v

    # Run only tests that need no database
    python -m pytest tests/ -v -m "not db"

    # Run only database-backed tests
    python -m pytest tests/ -v -m "db"

Database-backed tests build a fresh in-memory SQLite database per test case
from the ORM metadata (see tests/fixtures/factories.py); no server is needed.
"""
