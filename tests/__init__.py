"""
Test suite for btschema.

Unit tests run against an in-memory admin session (see conftest.py) or a
mocked Bigtable admin client; none of them need a live instance.
"""
