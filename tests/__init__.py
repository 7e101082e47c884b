"""
notes-abac test suite.

This package contains tests for:
- Core types and exceptions
- Policy store and built-in policies
- Condition evaluation
- Policy engine decisions
- Policy documents
- Enforcement guard
"""
