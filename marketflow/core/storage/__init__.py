"""Dataset persistence."""

from marketflow.core.storage.codec import STORABLE_EXTENSIONS, DatasetStorage, DuckDBDatasetStorage
from marketflow.core.storage.factory import DuckDBFactory, DuckDBFactoryConfig
from marketflow.core.storage.schema import FORMAT_VERSION, ColumnDef, TableSchema, dataset_tables

__all__ = [
    "ColumnDef",
    "DatasetStorage",
    "DuckDBDatasetStorage",
    "DuckDBFactory",
    "DuckDBFactoryConfig",
    "FORMAT_VERSION",
    "STORABLE_EXTENSIONS",
    "TableSchema",
    "dataset_tables",
]
