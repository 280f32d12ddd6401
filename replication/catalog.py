"""
Schema Catalog
==============

Discovers the tables to replicate and their ordered columns from the
source's information_schema. The schema is read fresh on every run.
"""

import logging
from typing import Dict, Iterator, List, Optional

import pandas as pd
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .errors import SchemaQueryError
from .models import Column, Table

logger = logging.getLogger(__name__)

DEFAULT_SKIP_TABLES = [
    "events",
    "versions",
    "stripe_webhooks",
    "string_versions",
    "work_items_backup",
]

SYSTEM_TABLE_PREFIX = "pg_"


class SchemaCatalog:
    """
    Lists replicable tables and attaches their columns.
    """
    
    def __init__(
        self,
        source_connector,
        schema: str = "public",
        skip_tables: Optional[List[str]] = None,
        include_tables: Optional[List[str]] = None,
        system_table_prefix: str = SYSTEM_TABLE_PREFIX,
        table_prefix: str = "",
        table_renames: Optional[Dict[str, str]] = None
    ):
        """
        Initialize the catalog.
        
        Args:
            source_connector: Connected PostgresConnector
            schema: Source schema to replicate
            skip_tables: Deny-list of table names
            include_tables: Optional allow-list; empty means every table
            system_table_prefix: Tables starting with this are never replicated
            table_prefix: Prefix added to warehouse table names
            table_renames: Explicit source -> warehouse table names
        """
        self.source = source_connector
        self.schema = schema
        self.skip_tables = set(DEFAULT_SKIP_TABLES if skip_tables is None else skip_tables)
        self.include_tables = set(include_tables or [])
        self.system_table_prefix = system_table_prefix
        self.table_prefix = table_prefix
        self.table_renames = table_renames or {}
    
    def is_replicable(self, table_name: str) -> bool:
        """Apply the system prefix, deny-list and allow-list filters."""
        if self.system_table_prefix and table_name.startswith(self.system_table_prefix):
            return False
        if table_name in self.skip_tables:
            return False
        if self.include_tables and table_name not in self.include_tables:
            return False
        return True
    
    def target_table_name(self, table_name: str) -> str:
        if table_name in self.table_renames:
            return self.table_renames[table_name]
        return f"{self.table_prefix}{table_name}"
    
    def list_tables(self) -> Iterator[Table]:
        """
        Yield replicable base tables, without columns.
        
        Raises:
            SchemaQueryError: if the table list cannot be read
        """
        try:
            names = self.source.get_tables(self.schema)
        except SQLAlchemyError as e:
            raise SchemaQueryError(f"could not list tables in schema '{self.schema}': {e}") from e
        
        for name in names:
            if not self.is_replicable(name):
                logger.debug(f"Skipping {self.schema}.{name}")
                continue
            yield Table(
                schema_name=self.schema,
                name=name,
                target_table_name=self.target_table_name(name)
            )
    
    def columns_for(self, table: Table) -> List[Column]:
        """
        Read the columns of a table in ordinal order.
        
        Raises:
            SchemaQueryError: on query failure, undecodable rows or no columns
        """
        try:
            df = self.source.get_table_schema(table.schema_name, table.name)
        except SQLAlchemyError as e:
            raise SchemaQueryError(f"could not read columns: {e}", table=table.name) from e
        
        if df.empty:
            raise SchemaQueryError("no columns found", table=table.name)
        
        df = df.sort_values("ordinal_position", kind="stable")
        
        columns = []
        for row in df.to_dict(orient="records"):
            try:
                columns.append(Column(
                    name=row["column_name"],
                    data_type=row["data_type"],
                    character_maximum_length=_optional_int(row.get("character_maximum_length")),
                    numeric_precision=_optional_int(row.get("numeric_precision")),
                    numeric_scale=_optional_int(row.get("numeric_scale"))
                ))
            except (KeyError, TypeError, ValueError, ValidationError) as e:
                raise SchemaQueryError(f"could not decode column metadata {row}: {e}", table=table.name) from e
        
        return columns
    
    def discover(self) -> Iterator[Table]:
        """Yield replicable tables with their columns attached."""
        for table in self.list_tables():
            logger.info(f"Discovering {table}")
            yield table.with_columns(self.columns_for(table))


def _optional_int(value) -> Optional[int]:
    # information_schema integers come back as floats when a column has NULLs
    if value is None or pd.isna(value):
        return None
    return int(value)
