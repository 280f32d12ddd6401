"""
Replication Connectors
======================

Source, staging and warehouse connectors for the replication engine.
"""

from .postgres_connector import PostgresConnector
from .minio_connector import MinIOConnector
from .redshift_connector import RedshiftConnector

__all__ = ["PostgresConnector", "MinIOConnector", "RedshiftConnector"]
