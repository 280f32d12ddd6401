"""
Redshift Target Connector
=========================

Connector for the warehouse. Redshift speaks the PostgreSQL wire protocol,
so a plain psycopg2 connection is used. Transactions are explicit: nothing
is committed until commit() is called.
"""

import logging
from typing import Dict, Optional

import psycopg2

logger = logging.getLogger(__name__)


class RedshiftConnector:
    """
    Redshift connector for DDL, bulk loads and hook scripts.
    """
    
    def __init__(self, config: Dict):
        """
        Initialize Redshift connector.
        
        Args:
            config: Connection configuration dict with uri and optional connect_timeout
        """
        self.config = config
        self.db_conn = None
    
    def connect(self):
        """Establish connection to the warehouse."""
        self.db_conn = psycopg2.connect(
            self.config["uri"],
            connect_timeout=self.config.get("connect_timeout", 30)
        )
        logger.info(f"Connected to Redshift: {self.db_conn.info.host}/{self.db_conn.info.dbname}")
    
    def disconnect(self):
        """Close warehouse connection."""
        if self.db_conn is not None and not self.db_conn.closed:
            self.db_conn.close()
            logger.info("Redshift connection closed")
        self.db_conn = None
    
    def execute(self, statement, params: Optional[tuple] = None):
        """Execute one statement inside the current transaction."""
        with self.db_conn.cursor() as cur:
            cur.execute(statement, params)
    
    def commit(self):
        self.db_conn.commit()
    
    def rollback(self):
        self.db_conn.rollback()
    
    def table_exists(self, schema: str, table: str) -> bool:
        """Check whether a table exists, inside the current transaction."""
        with self.db_conn.cursor() as cur:
            cur.execute("""
                SELECT 1
                FROM information_schema.tables
                WHERE table_schema = %s
                AND table_name = %s
            """, (schema, table))
            return cur.fetchone() is not None
    
    def execute_script(self, script: str) -> str:
        """
        Execute raw SQL text verbatim and commit.
        
        Returns:
            Server status message of the last statement
        """
        try:
            with self.db_conn.cursor() as cur:
                cur.execute(script)
                status = cur.statusmessage
            self.db_conn.commit()
            return status
        except Exception:
            self.db_conn.rollback()
            raise
