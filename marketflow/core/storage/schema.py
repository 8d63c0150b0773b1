"""DuckDB table layout of a stored dataset."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from duckdb import DuckDBPyConnection

FORMAT_VERSION = 1


@dataclass(frozen=True)
class ColumnDef:
    """Represents a DuckDB table column definition."""

    name: str
    data_type: str
    constraints: Sequence[str] = ()

    def render(self) -> str:
        parts = [self.name, self.data_type, *self.constraints]
        return " ".join(parts)


@dataclass(frozen=True)
class TableSchema:
    """Utility wrapper describing a DuckDB table schema."""

    name: str
    columns: Sequence[ColumnDef]
    primary_key: Sequence[str] = ()

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    def create_ddl(self) -> str:
        column_defs: list[str] = [column.render() for column in self.columns]
        if self.primary_key:
            column_defs.append(f"PRIMARY KEY ({', '.join(self.primary_key)})")
        columns_sql = ",\n                ".join(column_defs)
        return f"""
            CREATE TABLE IF NOT EXISTS {self.name} (
                {columns_sql}
            )
            """.strip()

    def insert_sql(self) -> str:
        placeholders = ", ".join("?" for _ in self.columns)
        return f"INSERT INTO {self.name} ({', '.join(self.column_names)}) VALUES ({placeholders})"

    def select_sql(self, order_by: Sequence[str] = ()) -> str:
        sql = f"SELECT {', '.join(self.column_names)} FROM {self.name}"
        if order_by:
            sql += f" ORDER BY {', '.join(order_by)}"
        return sql

    def ensure(self, conn: DuckDBPyConnection) -> None:
        """Create the table on the provided connection if it does not exist."""

        conn.execute(self.create_ddl())


METADATA_TABLE = TableSchema(
    name="dataset_metadata",
    columns=(
        ColumnDef("setting", "VARCHAR", ("NOT NULL",)),
        ColumnDef("value", "VARCHAR", ("NOT NULL",)),
    ),
    primary_key=("setting",),
)

TERMS_TABLE = TableSchema(
    name="terms",
    columns=(
        ColumnDef("term_index", "INTEGER", ("NOT NULL",)),
        ColumnDef("name", "VARCHAR", ("NOT NULL", "UNIQUE")),
    ),
    primary_key=("term_index",),
)

SYMBOLS_TABLE = TableSchema(
    name="symbols",
    columns=(
        ColumnDef("symbol_index", "INTEGER", ("NOT NULL",)),
        ColumnDef("held_asset", "INTEGER", ("NOT NULL",)),
        ColumnDef("traded_asset", "INTEGER", ("NOT NULL",)),
        ColumnDef("exchange", "INTEGER", ("NOT NULL",)),
        ColumnDef("symbol_type", "VARCHAR", ("NOT NULL",)),
    ),
    primary_key=("symbol_index",),
)

FLOWS_TABLE = TableSchema(
    name="flows",
    columns=(
        ColumnDef("flow_id", "INTEGER", ("NOT NULL",)),
        ColumnDef("symbol_index", "INTEGER", ("NOT NULL",)),
        ColumnDef("denomination", "VARCHAR", ("NOT NULL",)),
        ColumnDef("interval_length", "INTEGER", ("NOT NULL",)),
        ColumnDef("range_start", "TIMESTAMP"),
        ColumnDef("range_end", "TIMESTAMP"),
    ),
    primary_key=("flow_id",),
)

POINTS_TABLE = TableSchema(
    name="points",
    columns=(
        ColumnDef("flow_id", "INTEGER", ("NOT NULL",)),
        ColumnDef("ts", "TIMESTAMP", ("NOT NULL",)),
        ColumnDef("open", "DOUBLE"),
        ColumnDef("high", "DOUBLE"),
        ColumnDef("low", "DOUBLE"),
        ColumnDef("close", "DOUBLE"),
        ColumnDef("volume", "DOUBLE"),
    ),
    primary_key=("flow_id", "ts"),
)


def dataset_tables() -> Sequence[TableSchema]:
    """Return the schemas that make up a stored dataset."""

    return (METADATA_TABLE, TERMS_TABLE, SYMBOLS_TABLE, FLOWS_TABLE, POINTS_TABLE)


def ensure_dataset_tables(conn: DuckDBPyConnection) -> None:
    for table in dataset_tables():
        table.ensure(conn)


def create_dataset_ddl() -> Iterable[str]:
    """Yield CREATE TABLE statements for every dataset table."""

    for table in dataset_tables():
        yield table.create_ddl()


__all__ = [
    "ColumnDef",
    "FLOWS_TABLE",
    "FORMAT_VERSION",
    "METADATA_TABLE",
    "POINTS_TABLE",
    "SYMBOLS_TABLE",
    "TERMS_TABLE",
    "TableSchema",
    "create_dataset_ddl",
    "dataset_tables",
    "ensure_dataset_tables",
]
