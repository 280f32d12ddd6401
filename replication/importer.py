"""
Importer
========

Swaps freshly exported data into the warehouse.

The rename of the live table, the CREATE of its replacement and the bulk
load run in one transaction. If anything fails the transaction is rolled
back and the live table is still there, under its own name, with the
previous generation's rows.
"""

import logging
from typing import Dict, Optional

import psycopg2
from psycopg2 import sql

from .errors import TableImportError
from .models import Table

logger = logging.getLogger(__name__)

UPDATING_SUFFIX = "_updating"


class Importer:
    """Atomic table replacement in Redshift."""
    
    def __init__(
        self,
        warehouse_connector,
        uploader,
        compressor,
        schema: str = "public",
        credentials: Optional[Dict] = None,
        region: Optional[str] = None
    ):
        """
        Args:
            warehouse_connector: Connected RedshiftConnector
            uploader: Uploader that names the objects to load
            compressor: Compressor whose load option matches the artifacts
            schema: Warehouse schema holding the replicated tables
            credentials: dict with either iam_role or access_key/secret_key
            region: Bucket region for the COPY statement
        """
        self.warehouse = warehouse_connector
        self.uploader = uploader
        self.compressor = compressor
        self.schema = schema
        self.credentials = credentials or {}
        self.region = region
    
    def _table(self, name: str) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(self.schema), sql.Identifier(name))
    
    def _column_ddl(self, table: Table) -> sql.Composed:
        return sql.SQL(", ").join(
            sql.SQL("{} {}").format(sql.Identifier(name), sql.SQL(ddl_type))
            for name, ddl_type in table.column_definitions()
        )
    
    def _credentials_string(self) -> str:
        if self.credentials.get("iam_role"):
            return f"aws_iam_role={self.credentials['iam_role']}"
        return (
            f"aws_access_key_id={self.credentials.get('access_key', '')};"
            f"aws_secret_access_key={self.credentials.get('secret_key', '')}"
        )
    
    def create_statement(self, table: Table, if_not_exists: bool = False) -> sql.Composed:
        template = "CREATE TABLE IF NOT EXISTS {} ({})" if if_not_exists else "CREATE TABLE {} ({})"
        return sql.SQL(template).format(self._table(table.target_table_name), self._column_ddl(table))
    
    def copy_statement(self, table: Table) -> sql.Composed:
        """
        Bulk load statement. Values are inlined as literals and the statement
        runs without parameters, so a % in an identifier is sent as is.
        """
        statement = sql.SQL(
            "COPY {} ({}) FROM {} CREDENTIALS {} {} TRUNCATECOLUMNS ESCAPE DELIMITER AS '|'"
        ).format(
            self._table(table.target_table_name),
            sql.SQL(", ").join(sql.Identifier(name) for name in table.column_names),
            sql.Literal(self.uploader.load_uri(table)),
            sql.Literal(self._credentials_string()),
            sql.SQL(self.compressor.load_option)
        )
        if self.region:
            statement = statement + sql.SQL(" REGION {}").format(sql.Literal(self.region))
        return statement

    def _rollback(self, table: Table):
        # a dead connection cannot roll back; the server discards the transaction
        try:
            self.warehouse.rollback()
        except psycopg2.Error as e:
            logger.warning(f"  Rollback for {table} failed: {e}")

    def ensure_table(self, table: Table):
        """
        Create the live table if it does not exist yet.
        
        Raises:
            TableImportError: if the DDL fails
        """
        try:
            self.warehouse.execute(self.create_statement(table, if_not_exists=True))
            self.warehouse.commit()
        except Exception as e:
            self._rollback(table)
            raise TableImportError(f"could not create table: {e}", table=table.name, stage="ensure_table") from e
    
    def drop_previous_generation(self, table: Table):
        """
        Drop the <target>_updating table left by a swap. Committed on its own.
        
        Raises:
            TableImportError: if the DROP fails
        """
        updating = table.target_table_name + UPDATING_SUFFIX
        try:
            self.warehouse.execute(sql.SQL("DROP TABLE IF EXISTS {}").format(self._table(updating)))
            self.warehouse.commit()
        except Exception as e:
            self._rollback(table)
            raise TableImportError(f"could not drop {updating}: {e}", table=table.name, stage="cleanup") from e
    
    def import_table(self, table: Table):
        """
        Replace the live table with the uploaded export.
        
        Raises:
            TableImportError: if any step fails; the transaction is rolled back
        """
        target = table.target_table_name
        logger.info(f"  Importing {self.schema}.{target}")
        
        self.drop_previous_generation(table)
        
        try:
            if self.warehouse.table_exists(self.schema, target):
                self.warehouse.execute(
                    sql.SQL("ALTER TABLE {} RENAME TO {}").format(
                        self._table(target), sql.Identifier(target + UPDATING_SUFFIX)
                    )
                )
            else:
                logger.info(f"  {self.schema}.{target} does not exist yet, skipping rename")
            
            self.warehouse.execute(self.create_statement(table))
            
            self.warehouse.execute(self.copy_statement(table))
            
            self.warehouse.commit()
        except Exception as e:
            self._rollback(table)
            raise TableImportError(f"swap rolled back: {e}", table=table.name) from e
        
        logger.info(f"  ✓ Swapped in new generation of {self.schema}.{target}")
