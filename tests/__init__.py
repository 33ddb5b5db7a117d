"""
zrank Test Suite
================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks and the in-memory store
- tests/integration/   : Integration tests with testcontainers (real Redis)

Running Tests
-------------
    pytest tests/unit
    pytest -m integration
"""
