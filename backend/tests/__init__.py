"""
Test Suite

Tests for the stage change service backend.

Structure:
    tests/
    ├── __init__.py         # This file
    ├── conftest.py         # Fixtures and the in-process fake backend
    ├── unit/               # Engine, service, repository and utility tests
    └── integration/        # HTTP routes through the FastAPI app

To run tests:
    pytest
    pytest backend/tests/unit/
    pytest backend/tests/integration/
"""
