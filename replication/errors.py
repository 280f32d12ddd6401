"""
Replication Errors
==================

Exception taxonomy for the replication pipeline. Every error carries the
table and pipeline stage it was raised from so a failed run can be
diagnosed from the log alone.
"""

from typing import Optional


class ReplicationError(Exception):
    """Base class for all replication failures."""

    stage = "replication"

    def __init__(self, message: str, table: Optional[str] = None, stage: Optional[str] = None):
        self.table = table
        if stage:
            self.stage = stage
        prefix = f"[{self.stage}] {table}: " if table else f"[{self.stage}] "
        super().__init__(prefix + message)


class ConfigurationError(ReplicationError):
    """Required settings are missing or malformed."""

    stage = "configuration"


class SchemaQueryError(ReplicationError):
    """Schema discovery failed. Aborts the whole run."""

    stage = "discover"


class UnsupportedTypeError(ReplicationError):
    """A source column has a type with no warehouse mapping."""

    stage = "type_mapping"

    def __init__(self, table: str, column: str, data_type: str):
        self.column = column
        self.data_type = data_type
        super().__init__(f"column '{column}' has unsupported type '{data_type}'", table=table)


class ExportError(ReplicationError):
    """Reading the source table or compressing the export failed."""

    stage = "export"


class UploadError(ReplicationError):
    """Writing to or clearing the object store failed."""

    stage = "upload"


class TableImportError(ReplicationError):
    """Warehouse DDL, bulk load or the swap transaction failed."""

    stage = "import"
