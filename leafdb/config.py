"""
Configuration for LeafDB.

Uses pydantic-settings so a store can be configured from keyword arguments
or from ``LEAFDB_*`` environment variables.

Invariants:
    - A store without a directory runs in memory-only mode
    - The log path is always ``<directory>/<name><extension>``
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class LeafDbSettings(BaseSettings):
    """Store configuration loaded from arguments or environment."""

    name: str = Field(default="leafdb", description="Log file stem")
    directory: Optional[str] = Field(
        default=None,
        description="Directory holding the log file; unset means memory-only mode",
    )
    extension: str = Field(default=".txt", description="Log file extension")
    strict: bool = Field(
        default=False,
        description="Abort open() on the first corrupt line and reject whole insert batches",
    )

    model_config = {"env_prefix": "LEAFDB_"}

    @field_validator("name")
    @classmethod
    def _name_is_a_file_stem(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError(f"name must be a plain file stem, got {value!r}")
        return value

    @field_validator("extension")
    @classmethod
    def _extension_has_dot(cls, value: str) -> str:
        if value and not value.startswith("."):
            return f".{value}"
        return value

    @property
    def persistent(self) -> bool:
        """Whether the store mirrors documents to a log file."""
        return self.directory is not None

    @property
    def path(self) -> Optional[Path]:
        """Full path of the log file, or None in memory-only mode."""
        if self.directory is None:
            return None
        return Path(self.directory) / f"{self.name}{self.extension}"
