"""
alchemy-datasource Test Suite
=============================

Test Organization
-----------------
- tests/unit/          : Fast unit tests with mocks (no database)
- tests/integration/   : Data source and store tests on in-memory SQLite
- tests/entities.py    : Mapped entities shared by both

Testing Philosophy
------------------
- Unit tests: fast, isolated, test one component
- Integration tests: exercise loader, cache and store together
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
