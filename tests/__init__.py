"""
ThesisVault Test Suite

Tests are organized into:
- unit/: Unit tests for access rules, storage and middleware helpers
- integration/: API tests through an in-process ASGI client
"""
