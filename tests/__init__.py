# StarRegistry Test Suite
"""
Test suite including:
- Unit tests
- Integration tests
- Security tests (tampering, expired and forged challenges)

Run with: pytest
Coverage: coverage run -m pytest && coverage report
"""
