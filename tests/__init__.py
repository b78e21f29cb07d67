"""
idp_store Test Suite.

This package contains:
- unit/: Unit tests (codecs, mappers, expressions, config, errors)
- integration/: Integration tests (in-memory item store, SQLite)
"""
