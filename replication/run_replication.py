#!/usr/bin/env python3
"""
Replication Runner
==================

CLI to run the replication engine.

Usage:
    python -m replication.run_replication run       # Replicate all tables
    python -m replication.run_replication tables    # List tables that would be replicated
    python -m replication.run_replication test      # Test connections only
"""

import argparse
import json
import logging
import os
import sys

from .engine import ReplicationEngine
from .errors import ReplicationError
from .logging_utils import setup_logging
from .settings import load_task_settings

logger = logging.getLogger(__name__)


def test_connections(engine: ReplicationEngine) -> bool:
    """Test source, object store and warehouse connections."""
    print("=" * 60)
    print("TESTING CONNECTIONS")
    print("=" * 60)
    
    try:
        with engine:
            print("\n✓ PostgreSQL Source:")
            for table in engine.catalog.list_tables():
                count = engine.source_connector.get_row_count(table.qualified_name)
                print(f"    - {table}: {count:,} rows")
            
            print("\n✓ Object Store:")
            objects = engine.store_connector.list_objects(prefix=engine.uploader.prefix + "/")
            print(f"    Existing export objects: {len(objects)}")
            for obj in objects[:5]:
                print(f"    - {obj}")
            if len(objects) > 5:
                print(f"    ... and {len(objects) - 5} more")
            
            print("\n✓ Redshift Target")
        
        print("\n✓ All connections successful!")
        return True
        
    except Exception as e:
        print(f"\n✗ Connection failed: {e}")
        return False


def list_tables(engine: ReplicationEngine) -> bool:
    """Print the tables and column types that would be replicated."""
    try:
        with engine:
            for table in engine.catalog.discover():
                print(f"{table} -> {engine.importer.schema}.{table.target_table_name}")
                for name, ddl_type in table.column_definitions():
                    print(f"    {name} {ddl_type}")
        return True
    except ReplicationError as e:
        print(f"\n✗ {e}")
        return False


def run_replication(engine: ReplicationEngine, results_path: str = None) -> bool:
    """Execute a full replication run."""
    print("=" * 60)
    print("FULL RELOAD REPLICATION")
    print("=" * 60)
    
    with engine:
        results = engine.run()
    
    print("\n" + "=" * 60)
    print("RESULTS SUMMARY")
    print("=" * 60)
    for result in results:
        status_icon = "✓" if result["status"] == "success" else "✗"
        print(f"\n{status_icon} {result.get('source_table')} -> {result.get('target_table')}")
        print(f"    Status: {result['status']}")
        print(f"    Stage: {result.get('stage')}")
        if result.get("error"):
            print(f"    Error: {result['error']}")
    
    if results_path:
        os.makedirs(os.path.dirname(results_path) or ".", exist_ok=True)
        with open(results_path, "w") as f:
            json.dump({"status": engine.run_status, "tables": results}, f, indent=2, default=str)
        print(f"\nResults saved to: {results_path}")
    
    return engine.run_status == "success"


def main(argv=None):
    parser = argparse.ArgumentParser(description="PostgreSQL to Redshift full reload replication")
    parser.add_argument(
        "command",
        choices=["run", "tables", "test"],
        help="Command to run"
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the configs directory or task_settings.json"
    )
    parser.add_argument(
        "--results",
        type=str,
        default=None,
        help="Where to write the JSON results of a run"
    )
    
    args = parser.parse_args(argv)
    
    try:
        settings = load_task_settings(args.config)
    except ReplicationError as e:
        print(f"✗ {e}", file=sys.stderr)
        sys.exit(2)
    
    task_settings = settings.get("task_settings", {})
    setup_logging(task_settings.get("logging", {}))
    engine = ReplicationEngine(settings=settings)
    
    if args.command == "test":
        success = test_connections(engine)
    elif args.command == "tables":
        success = list_tables(engine)
    else:
        try:
            success = run_replication(engine, args.results or task_settings.get("results_path"))
        except Exception:
            logger.exception("Replication crashed")
            success = False
    
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
