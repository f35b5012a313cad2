"""
Log storage backends for LeafDB.

- LogStorage: protocol every backend implements
- FileLogStorage: append-only line file (production)
- InMemoryLogStorage: list-backed log (testing)
"""

from .base import LogStorage
from .file import FileLogStorage
from .memory import InMemoryLogStorage

__all__ = [
    "FileLogStorage",
    "InMemoryLogStorage",
    "LogStorage",
]
