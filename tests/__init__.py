"""
Law firm bot test suite.

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks (no external dependencies)
- tests/integration/   : Service flows against PostgreSQL via testcontainers

Use pytest markers (``unit``, ``integration``) to run either group.
"""
