"""
Progression Engine Test Suite
=============================

Test Organization
-----------------
- tests/unit/          : Fast unit tests over the in-memory record store
- tests/unit/domain/   : Domain models and the exception registry
- tests/integration/   : PostgreSQL tests with testcontainers

Shared fixtures (fixed clock, profile and record factories, the loaded
balance file) live in tests/conftest.py.

Conventions
-----------
- Mark infrastructure tests with `integration` and `database`
- Follow AAA pattern: Arrange, Act, Assert
"""
