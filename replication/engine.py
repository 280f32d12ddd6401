"""
Replication Engine
==================

Main orchestrator for full-reload replication from PostgreSQL to Redshift.

For every discovered table, in discovery order:
    ensure live table exists -> export -> upload -> atomic swap

Tables are processed one at a time over one source and one warehouse
connection.
"""

import logging
import os
import signal
import threading
from datetime import datetime
from typing import Dict, List, Optional

from .catalog import SchemaCatalog
from .compression import get_compressor
from .connectors.minio_connector import MinIOConnector
from .connectors.postgres_connector import PostgresConnector
from .connectors.redshift_connector import RedshiftConnector
from .errors import ReplicationError, SchemaQueryError, UnsupportedTypeError
from .exporter import Exporter
from .importer import Importer
from .models import Table
from .settings import load_task_settings
from .uploader import Uploader

logger = logging.getLogger(__name__)

# Errors that stop the run whatever the on_table_error policy says
FATAL_ERRORS = (SchemaQueryError, UnsupportedTypeError)


class ReplicationEngine:
    """
    Full-reload replication engine.

    Usage:
        with ReplicationEngine() as engine:
            results = engine.run()
    """

    def __init__(
        self,
        config_path: str = None,
        settings: Optional[Dict] = None,
        source_connector=None,
        warehouse_connector=None,
        store_connector=None
    ):
        """
        Initialize the replication engine.

        Args:
            config_path: Path to the configs directory or settings file
            settings: Already loaded settings (skips loading config_path)
            source_connector: Optional pre-built source connector
            warehouse_connector: Optional pre-built warehouse connector
            store_connector: Optional pre-built object store connector
        """
        self.settings = settings if settings is not None else load_task_settings(config_path)
        self.task_settings = self.settings.get("task_settings", {})

        self.source_connector = source_connector
        self.warehouse_connector = warehouse_connector
        self.store_connector = store_connector

        self.catalog = None
        self.compressor = None
        self.uploader = None
        self.exporter = None
        self.importer = None

        self.run_status = "pending"
        self._stop_requested = False

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()
        return False

    # =========================================
    # CONNECTIONS
    # =========================================

    def connect(self):
        """Establish connections to source, object store and warehouse."""
        logger.info("Connecting to source, object store and warehouse...")

        if self.source_connector is None:
            self.source_connector = PostgresConnector(self.settings["source"]["connection"])
        self.source_connector.connect()
        logger.info("✓ Connected to PostgreSQL source")

        if self.store_connector is None:
            self.store_connector = MinIOConnector(self.settings["object_store"]["connection"])
        self.store_connector.connect()
        logger.info("✓ Connected to object store")

        if self.warehouse_connector is None:
            self.warehouse_connector = RedshiftConnector(self.settings["target"]["connection"])
        self.warehouse_connector.connect()
        logger.info("✓ Connected to Redshift target")

        self._build_pipeline()

    def disconnect(self):
        """Close all connections."""
        if self.source_connector:
            self.source_connector.disconnect()
        if self.warehouse_connector:
            self.warehouse_connector.disconnect()
        logger.info("Connections closed")

    def _build_pipeline(self):
        source = self.settings.get("source", {})
        target = self.settings.get("target", {})
        store = self.settings.get("object_store", {})
        store_connection = store.get("connection", {})

        self.catalog = SchemaCatalog(
            self.source_connector,
            schema=source.get("schema", "public"),
            skip_tables=self.task_settings.get("skip_tables"),
            include_tables=self.task_settings.get("include_tables"),
            system_table_prefix=self.task_settings.get("system_table_prefix", "pg_"),
            table_prefix=target.get("table_prefix", ""),
            table_renames=target.get("table_renames")
        )
        self.compressor = get_compressor(self.task_settings.get("compression"))
        self.uploader = Uploader(
            self.store_connector,
            self.compressor,
            prefix=store.get("prefix", "export"),
            acl=store.get("acl", "authenticated-read")
        )
        self.exporter = Exporter(
            self.source_connector,
            self.compressor,
            self.uploader,
            temp_dir=self.task_settings.get("temp_dir")
        )
        self.importer = Importer(
            self.warehouse_connector,
            self.uploader,
            self.compressor,
            schema=target.get("schema", "public"),
            credentials={
                "iam_role": store.get("iam_role"),
                "access_key": store_connection.get("access_key"),
                "secret_key": store_connection.get("secret_key"),
            },
            region=store_connection.get("region")
        )

    # =========================================
    # HOOKS
    # =========================================

    def _run_hook(self, name: str, connector, label: str, description: str):
        path = self.task_settings.get("hooks", {}).get(name)
        if not path or not os.path.exists(path):
            logger.info(f"No {path or name} found - skipping {description}.")
            return None

        logger.info(f"Running {path} against {label}...")
        try:
            with open(path, 'r') as f:
                status = connector.execute_script(f.read())
        except Exception as e:
            raise ReplicationError(f"{path} failed: {e}", stage=name) from e
        logger.info(f"  {status}")
        return status

    def pre_update(self):
        """Run the pre hook against the source, if present."""
        return self._run_hook("pre_sql", self.source_connector, "source", "pre update")

    def post_update(self):
        """Run the post hook against the warehouse, if present."""
        return self._run_hook("post_sql", self.warehouse_connector, "warehouse", "post update")

    # =========================================
    # CANCELLATION
    # =========================================

    def request_stop(self):
        """Stop before the next table. The current table always finishes."""
        self._stop_requested = True

    def _signal_handler(self, signum, frame):
        logger.warning(f"Received signal {signum}, stopping after the current table...")
        self.request_stop()

    def _install_signal_handlers(self) -> Dict:
        if threading.current_thread() is not threading.main_thread():
            return {}
        return {
            sig: signal.signal(sig, self._signal_handler)
            for sig in (signal.SIGINT, signal.SIGTERM)
        }

    # =========================================
    # PIPELINE
    # =========================================

    def replicate_table(self, table: Table) -> Dict:
        """
        Replicate a single table.

        Args:
            table: Table from the catalog, columns not yet attached

        Returns:
            Result dictionary with status, failing stage and timings
        """
        logger.info(f"Starting replication of {table} -> {table.target_table_name}")

        result = {
            "source_table": str(table),
            "target_table": table.target_table_name,
            "status": "pending",
            "stage": "discover",
            "columns": 0,
            "start_time": datetime.now().isoformat(),
            "end_time": None,
            "error": None,
            "error_type": None
        }

        try:
            table = table.with_columns(self.catalog.columns_for(table))
            result["columns"] = len(table.columns)

            # fail on unmapped types before any DDL is issued
            result["stage"] = "type_mapping"
            table.column_definitions()

            result["stage"] = "ensure_table"
            self.importer.ensure_table(table)

            result["stage"] = "export"
            with self.exporter.export(table) as artifact:
                result["stage"] = "upload"
                self.uploader.upload(table, artifact.path, artifact.chunk)

            result["stage"] = "import"
            self.importer.import_table(table)

            if self.task_settings.get("drop_previous_generation", True):
                result["stage"] = "cleanup"
                self.importer.drop_previous_generation(table)

            result["stage"] = "done"
            result["status"] = "success"
            logger.info(f"  ✓ Replicated {table} ({len(table.columns)} columns)")

        except ReplicationError as e:
            logger.error(f"  ✗ Replication failed: {e}")
            result["status"] = "failed"
            result["stage"] = e.stage
            result["error"] = str(e)
            result["error_type"] = type(e).__name__
            result["fatal"] = isinstance(e, FATAL_ERRORS)

        result["end_time"] = datetime.now().isoformat()
        return result

    def _should_abort(self, result: Dict) -> bool:
        if result.get("fatal"):
            return True
        return self.task_settings.get("on_table_error", "abort") == "abort"

    def run(self) -> List[Dict]:
        """
        Replicate every discovered table.

        Returns:
            List of per-table result dictionaries. ``run_status`` is set to
            success, failed or stopped.
        """
        logger.info("=" * 60)
        logger.info("STARTING FULL RELOAD REPLICATION")
        logger.info(f"Started: {datetime.now().isoformat()}")
        logger.info("=" * 60)

        self._stop_requested = False
        self.run_status = "running"
        results = []
        previous_handlers = self._install_signal_handlers()

        try:
            self.pre_update()

            for table in self.catalog.list_tables():
                if self._stop_requested:
                    logger.warning("Stop requested - not starting further tables")
                    self.run_status = "stopped"
                    break

                result = self.replicate_table(table)
                results.append(result)

                if result["status"] == "failed" and self._should_abort(result):
                    logger.error(f"Aborting run after failure in {result['source_table']}")
                    self.run_status = "failed"
                    break

            if self.run_status == "running":
                failed = [r for r in results if r["status"] == "failed"]
                self.run_status = "failed" if failed else "success"

            if self.run_status == "success":
                self.post_update()

        except ReplicationError as e:
            logger.error(f"✗ Run failed: {e}")
            results.append({
                "source_table": e.table,
                "target_table": None,
                "status": "failed",
                "stage": e.stage,
                "error": str(e),
                "error_type": type(e).__name__,
                "fatal": True
            })
            self.run_status = "failed"
        finally:
            for sig, handler in previous_handlers.items():
                signal.signal(sig, handler)

        success = sum(1 for r in results if r["status"] == "success")
        failed = sum(1 for r in results if r["status"] == "failed")

        logger.info("=" * 60)
        logger.info(f"REPLICATION {self.run_status.upper()}")
        logger.info(f"  Tables: {success} success, {failed} failed")
        logger.info("=" * 60)

        return results
