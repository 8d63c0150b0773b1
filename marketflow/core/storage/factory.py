"""DuckDB connections for dataset files."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

import duckdb
from duckdb import DuckDBPyConnection

IN_MEMORY = ":memory:"


@dataclass(frozen=True)
class DuckDBFactoryConfig:
    """Database location, access mode and ``SET`` options of produced connections."""

    database: str | Path = IN_MEMORY
    read_only: bool = False
    settings: Mapping[str, int | str | bool] = field(default_factory=lambda: {"threads": 1})

    def __post_init__(self) -> None:
        if self.read_only and self.in_memory:
            raise ValueError("An in-memory database cannot be opened read-only.")

    @classmethod
    def for_dataset(cls, path: Path, *, read_only: bool = False) -> DuckDBFactoryConfig:
        return cls(database=Path(path), read_only=read_only)

    @property
    def in_memory(self) -> bool:
        return str(self.database) == IN_MEMORY


class DuckDBFactory:
    """Opens configured DuckDB connections.

    A writable file connection is checkpointed when its block completes, so
    the file is self-contained once the connection closes.
    """

    def __init__(self, config: DuckDBFactoryConfig | None = None) -> None:
        self._config = config or DuckDBFactoryConfig()

    @property
    def config(self) -> DuckDBFactoryConfig:
        return self._config

    def create_connection(self) -> DuckDBPyConnection:
        conn = duckdb.connect(database=str(self._config.database), read_only=self._config.read_only)
        try:
            for setting, value in self._config.settings.items():
                conn.execute(f"SET {setting} = {_render_setting(value)}")
        except duckdb.Error:
            conn.close()
            raise
        return conn

    @contextmanager
    def connection(self) -> Iterator[DuckDBPyConnection]:
        conn = self.create_connection()
        try:
            yield conn
            if not self._config.read_only and not self._config.in_memory:
                conn.execute("CHECKPOINT")
        finally:
            conn.close()


def _render_setting(value: int | str | bool) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return "'" + str(value).replace("'", "''") + "'"


__all__ = ["DuckDBFactory", "DuckDBFactoryConfig", "IN_MEMORY"]
