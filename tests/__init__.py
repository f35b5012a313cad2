"""
LeafDB Test Suite.

This package contains:
- unit/: Unit tests (memory-only stores, in-memory log)
- integration/: Integration tests (log files on disk, CLI)
"""
