"""
ReplicationEngine: per-table sequence, failure policy, hooks and stop
requests, against in-memory connectors.
"""

import pytest

from replication.engine import ReplicationEngine

from conftest import (
    DroppedConnectionWarehouse,
    FakeSource,
    FakeStore,
    FakeWarehouse,
    USERS_COLUMNS,
    column_row,
)


def make_engine(settings, source, store=None, warehouse=None):
    engine = ReplicationEngine(
        settings=settings,
        source_connector=source,
        store_connector=store or FakeStore(),
        warehouse_connector=warehouse or FakeWarehouse(),
    )
    engine.connect()
    return engine


def test_end_to_end_users_table(settings, source, tmp_path):
    store = FakeStore()
    warehouse = FakeWarehouse()
    engine = make_engine(settings, source, store, warehouse)

    results = engine.run()

    assert engine.run_status == "success"
    assert [r["status"] for r in results] == ["success"]
    assert results[0]["columns"] == 2
    assert 'CREATE TABLE "public"."users" ("id" integer, "name" varchar(50))' in warehouse.log
    assert warehouse.tables == {"public.users"}
    assert list(store.objects) == ["export/users.psv.gz.1"]
    assert list(tmp_path.iterdir()) == []


def test_second_run_leaves_no_updating_table(settings, source):
    store = FakeStore()
    warehouse = FakeWarehouse()
    engine = make_engine(settings, source, store, warehouse)

    engine.run()
    source.rows["users"].append((3, "c"))
    engine.run()

    assert engine.run_status == "success"
    assert warehouse.tables == {"public.users"}
    assert list(store.objects) == ["export/users.psv.gz.1"]


def test_tables_processed_in_discovery_order(settings):
    source = FakeSource(tables={"b": list(USERS_COLUMNS), "a": list(USERS_COLUMNS), "events": list(USERS_COLUMNS)})
    engine = make_engine(settings, source)

    results = engine.run()

    assert [r["source_table"] for r in results] == ["public.b", "public.a"]


def test_unsupported_type_aborts_before_any_ddl(settings):
    source = FakeSource(tables={
        "parcels": [column_row("id", "integer", 1), column_row("shape", "acme_tensor", 2)],
        "users": list(USERS_COLUMNS),
    })
    warehouse = FakeWarehouse()
    settings["task_settings"]["on_table_error"] = "continue"
    engine = make_engine(settings, source, warehouse=warehouse)

    results = engine.run()

    assert engine.run_status == "failed"
    assert len(results) == 1
    assert results[0]["error_type"] == "UnsupportedTypeError"
    assert results[0]["stage"] == "type_mapping"
    assert warehouse.log == []
    assert source.copies == []


def test_import_failure_aborts_by_default(settings):
    source = FakeSource(tables={"a": list(USERS_COLUMNS), "b": list(USERS_COLUMNS)})
    warehouse = FakeWarehouse()
    warehouse.fail_on = "COPY"
    engine = make_engine(settings, source, warehouse=warehouse)

    results = engine.run()

    assert engine.run_status == "failed"
    assert len(results) == 1
    assert results[0]["stage"] == "import"
    assert results[0]["error_type"] == "TableImportError"


def test_dead_warehouse_connection_is_recorded_as_import_failure(settings, source):
    engine = make_engine(settings, source, warehouse=DroppedConnectionWarehouse())

    results = engine.run()

    assert engine.run_status == "failed"
    assert len(results) == 1
    assert results[0]["source_table"] == "public.users"
    assert results[0]["stage"] == "import"
    assert results[0]["error_type"] == "TableImportError"
    assert "server closed the connection" in results[0]["error"]


def test_continue_policy_moves_to_next_table(settings):
    source = FakeSource(tables={"a": list(USERS_COLUMNS), "b": list(USERS_COLUMNS)})
    source.fail_copy = RuntimeError("canceling statement due to conflict with recovery")
    settings["task_settings"]["on_table_error"] = "continue"
    engine = make_engine(settings, source)

    results = engine.run()

    assert engine.run_status == "failed"
    assert [(r["source_table"], r["stage"]) for r in results] == [
        ("public.a", "export"),
        ("public.b", "export"),
    ]


def test_discovery_failure_fails_run(settings):
    source = FakeSource(tables={"ghost": []})
    settings["task_settings"]["on_table_error"] = "continue"
    engine = make_engine(settings, source)

    results = engine.run()

    assert engine.run_status == "failed"
    assert results[0]["error_type"] == "SchemaQueryError"


def test_hooks_run_when_present(settings, source, tmp_path):
    (tmp_path / "pre.sql").write_text("SELECT 1;")
    (tmp_path / "post.sql").write_text("ANALYZE;")
    warehouse = FakeWarehouse()
    engine = make_engine(settings, source, warehouse=warehouse)

    engine.run()

    assert source.scripts == ["SELECT 1;"]
    assert warehouse.scripts == ["ANALYZE;"]


def test_post_hook_skipped_after_failure(settings, source, tmp_path):
    (tmp_path / "post.sql").write_text("ANALYZE;")
    warehouse = FakeWarehouse()
    warehouse.fail_on = "COPY"
    engine = make_engine(settings, source, warehouse=warehouse)

    engine.run()

    assert warehouse.scripts == []


def test_missing_hooks_are_not_an_error(settings, source):
    engine = make_engine(settings, source)

    assert engine.pre_update() is None
    assert engine.post_update() is None


def test_stop_request_is_checked_between_tables(settings):
    source = FakeSource(tables={"a": list(USERS_COLUMNS), "b": list(USERS_COLUMNS)})
    engine = make_engine(settings, source)
    original = engine.replicate_table

    def replicate_then_stop(table):
        result = original(table)
        engine.request_stop()
        return result

    engine.replicate_table = replicate_then_stop

    results = engine.run()

    assert engine.run_status == "stopped"
    assert [r["source_table"] for r in results] == ["public.a"]
    assert results[0]["status"] == "success"
