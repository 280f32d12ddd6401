"""
PostgreSQL Source Connector
===========================

Connector for reading from the source PostgreSQL database.
The session is read-only for the lifetime of the connection.
"""

import logging
from typing import BinaryIO, Dict, List

import pandas as pd
from sqlalchemy import create_engine, text

logger = logging.getLogger(__name__)


def normalize_source_uri(uri: str) -> str:
    """Turn a libpq style URI into a SQLAlchemy URL."""
    for scheme in ("postgres://", "postgresql://"):
        if uri.startswith(scheme):
            return "postgresql+psycopg2://" + uri[len(scheme):]
    return uri


class PostgresConnector:
    """
    PostgreSQL connector for schema discovery and bulk unload.
    """
    
    def __init__(self, config: Dict):
        """
        Initialize PostgreSQL connector.
        
        Args:
            config: Connection configuration dict with uri
        """
        self.config = config
        self.engine = None
        self.connection = None
    
    def connect(self):
        """Open the long-lived read-only connection."""
        self.engine = create_engine(
            normalize_source_uri(self.config["uri"]),
            isolation_level="AUTOCOMMIT",
            connect_args={"options": "-c default_transaction_read_only=on"},
        )
        self.connection = self.engine.connect()
        
        # Test connection
        self.connection.execute(text("SELECT 1"))
        
        logger.info(f"Connected to PostgreSQL source: {self.engine.url.host}/{self.engine.url.database}")
    
    def disconnect(self):
        """Close database connection."""
        if self.connection is not None:
            self.connection.close()
            self.connection = None
        if self.engine:
            self.engine.dispose()
            logger.info("PostgreSQL connection closed")
    
    def get_tables(self, schema: str = "public") -> List[str]:
        """
        Get base tables in a schema.
        
        Args:
            schema: Source schema name
            
        Returns:
            List of table names
        """
        query = text("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = :schema
            AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """)
        result = self.connection.execute(query, {"schema": schema})
        return [row[0] for row in result]
    
    def get_table_schema(self, schema: str, table: str) -> pd.DataFrame:
        """
        Get column metadata for a table, in ordinal order.
        
        Args:
            schema: Source schema name
            table: Table name
            
        Returns:
            DataFrame with column information
        """
        query = text("""
            SELECT
                column_name,
                data_type,
                character_maximum_length,
                numeric_precision,
                numeric_scale,
                ordinal_position
            FROM information_schema.columns
            WHERE table_schema = :schema
            AND table_name = :table
            ORDER BY ordinal_position
        """)
        return pd.read_sql(query, self.connection, params={"schema": schema, "table": table})
    
    def get_row_count(self, qualified_name: str) -> int:
        """Row count for an already quoted schema.table name."""
        result = self.connection.execute(text(f"SELECT COUNT(*) FROM {qualified_name}"))
        return result.scalar()
    
    def copy_to_file(self, select_sql: str, fileobj: BinaryIO, delimiter: str = "|"):
        """
        Stream the result of a SELECT into a file with COPY ... TO STDOUT.
        
        Uses the text format: backslash escaping, no quoting, \\N for NULL.
        
        Args:
            select_sql: SELECT statement to unload
            fileobj: Writable binary file
            delimiter: Field delimiter
        """
        copy_sql = f"COPY ({select_sql}) TO STDOUT WITH DELIMITER '{delimiter}'"
        cursor = self.connection.connection.cursor()
        try:
            cursor.copy_expert(copy_sql, fileobj)
        finally:
            cursor.close()
    
    def execute_script(self, sql: str) -> str:
        """
        Execute raw SQL text verbatim.
        
        Returns:
            Server status message of the last statement
        """
        cursor = self.connection.connection.cursor()
        try:
            cursor.execute(sql)
            return cursor.statusmessage
        finally:
            cursor.close()
