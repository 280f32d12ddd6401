"""
Uploader
========

Pushes compressed exports into the object store under a deterministic
per-table key:

    <prefix>/<target_table_name>.psv.<ext>.<chunk>

The warehouse loads from the key prefix without the chunk suffix, so any
number of chunks for one table are picked up by a single COPY.
"""

import logging
from pathlib import Path
from typing import Optional

from .errors import UploadError
from .models import Table

logger = logging.getLogger(__name__)

DEFAULT_ACL = "authenticated-read"


class Uploader:
    """Object store writer for table exports."""
    
    def __init__(self, store_connector, compressor, prefix: str = "export", acl: Optional[str] = DEFAULT_ACL):
        """
        Args:
            store_connector: Connected MinIOConnector
            compressor: Compressor whose extension names the artifacts
            prefix: Key prefix for all exports
            acl: Canned ACL granting the warehouse loader read access
        """
        self.store = store_connector
        self.compressor = compressor
        self.prefix = prefix.strip("/")
        self.acl = acl
    
    def table_prefix(self, table: Table) -> str:
        return f"{self.prefix}/{table.target_table_name}.psv.{self.compressor.extension}"
    
    def object_key(self, table: Table, chunk: int) -> str:
        return f"{self.table_prefix(table)}.{chunk}"
    
    def load_uri(self, table: Table) -> str:
        """S3 URI the warehouse COPY reads every chunk from."""
        return f"s3://{self.store.bucket}/{self.table_prefix(table)}"
    
    def clear(self, table: Table) -> int:
        """
        Delete every existing object under the table's prefix.
        
        Raises:
            UploadError: if listing or deleting fails
        """
        prefix = self.table_prefix(table)
        try:
            deleted = self.store.delete_prefix(prefix)
        except Exception as e:
            raise UploadError(f"could not clear s3://{self.store.bucket}/{prefix}: {e}", table=table.name) from e
        if deleted:
            logger.info(f"  Cleared {deleted} stale object(s) under {prefix}")
        return deleted
    
    def upload(self, table: Table, artifact_path: Path, chunk: int = 1) -> str:
        """
        Upload one export chunk. Re-uploading a chunk overwrites it.
        
        Returns:
            URI of the uploaded object
            
        Raises:
            UploadError: on network, credential or local read failure
        """
        key = self.object_key(table, chunk)
        logger.info(f"  Uploading {table.target_table_name}.{chunk}")
        try:
            return self.store.upload_file(key, str(artifact_path), acl=self.acl)
        except Exception as e:
            raise UploadError(f"could not upload {artifact_path} to {key}: {e}", table=table.name) from e
