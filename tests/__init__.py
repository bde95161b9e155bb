"""
Level Up Solo Test Suite
========================

Test Organization
-----------------
- tests/unit/domain/   : Pure progression rules (leveling, energy, habits, rewards)
- tests/unit/          : Services and the HTTP layer over the in-memory store
- tests/integration/   : PostgreSQL via testcontainers

Testing Philosophy
------------------
- Unit tests: Fast, isolated, test business logic
- Integration tests: Slower, test real infrastructure interactions
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
