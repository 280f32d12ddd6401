"""
Exporter
========

Unloads a source table into a local pipe-delimited text file, compresses
it, and yields the artifact for upload. The raw and compressed files only
live for the duration of the ``with`` block.
"""

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, NamedTuple, Optional

from .errors import ExportError
from .models import Table

logger = logging.getLogger(__name__)

DELIMITER = "|"
FILE_MODE = 0o644
TEMP_PREFIX = "psql2rs"


class ExportArtifact(NamedTuple):
    table: Table
    path: Path
    chunk: int = 1


class Exporter:
    """Streams tables out of the source database."""
    
    def __init__(self, source_connector, compressor, uploader, temp_dir: Optional[str] = None):
        """
        Args:
            source_connector: Connected PostgresConnector
            compressor: Compressor applied to the raw export
            uploader: Uploader whose prefix is cleared before exporting
            temp_dir: Directory for intermediate files (system default if None)
        """
        self.source = source_connector
        self.compressor = compressor
        self.uploader = uploader
        self.temp_dir = temp_dir
    
    def select_sql(self, table: Table) -> str:
        return f"SELECT {table.columns_for_copy()} FROM {table.qualified_name}"
    
    @contextmanager
    def export(self, table: Table) -> Iterator[ExportArtifact]:
        """
        Export a table and yield the compressed artifact.
        
        Stale remote objects for the table are deleted first. Both local
        files are removed when the block exits, whatever the outcome.
        
        Raises:
            UploadError: if stale objects cannot be cleared
            ExportError: if unloading or compression fails
        """
        self.uploader.clear(table)
        
        raw_path = None
        compressed_path = None
        try:
            try:
                fd, name = tempfile.mkstemp(prefix=TEMP_PREFIX, dir=self.temp_dir)
                raw_path = Path(name)
                compressed_path = self.compressor.compressed_path(raw_path)
                os.chmod(raw_path, FILE_MODE)
            except OSError as e:
                raise ExportError(f"could not create export file: {e}", table=table.name) from e
            
            logger.info(f"  Downloading {table} into {raw_path}")
            try:
                with os.fdopen(fd, "wb") as fileobj:
                    self.source.copy_to_file(self.select_sql(table), fileobj, delimiter=DELIMITER)
            except Exception as e:
                raise ExportError(f"unload failed: {e}", table=table.name) from e
            
            logger.info(f"  Compressing {raw_path.name} ({raw_path.stat().st_size:,} bytes)")
            try:
                compressed_path = self.compressor.compress(raw_path)
                os.chmod(compressed_path, FILE_MODE)
            except Exception as e:
                raise ExportError(f"compression failed: {e}", table=table.name) from e
            
            yield ExportArtifact(table=table, path=compressed_path)
        finally:
            for path in (raw_path, compressed_path):
                if path is not None:
                    path.unlink(missing_ok=True)
