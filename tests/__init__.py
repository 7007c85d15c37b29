"""
xyte test suite.

Tests are organized by layer:
    tests/unit/         Unit tests (fake client, in-memory stores)
    tests/integration/  CLI tests through CliRunner

Run all tests:
    pytest

Run unit tests only:
    pytest tests/unit/
"""
