"""
Shared fixtures:
- in-memory doubles for the source, object store and warehouse connectors
- a users(id integer, name varchar(50)) table
"""

import pandas as pd
import psycopg2
import pytest
from psycopg2 import sql

from replication.compression import GzipCompressor
from replication.models import Column, Table


def render(statement) -> str:
    """Render a psycopg2 sql composable without a live connection."""
    if isinstance(statement, sql.Composed):
        return "".join(render(part) for part in statement.seq)
    if isinstance(statement, sql.Identifier):
        return ".".join('"%s"' % s for s in statement.strings)
    if isinstance(statement, sql.SQL):
        return statement.string
    if isinstance(statement, sql.Literal):
        return "'%s'" % str(statement.wrapped).replace("'", "''")
    return str(statement)


class FakeSource:
    """PostgresConnector double backed by dicts."""

    def __init__(self, tables=None, rows=None):
        # tables: {name: [column metadata dicts]}
        self.tables = tables or {}
        self.rows = rows or {}
        self.copies = []
        self.scripts = []
        self.fail_copy = None

    def connect(self):
        pass

    def disconnect(self):
        pass

    def get_tables(self, schema="public"):
        return list(self.tables)

    def get_table_schema(self, schema, table):
        return pd.DataFrame(
            self.tables.get(table, []),
            columns=[
                "column_name", "data_type", "character_maximum_length",
                "numeric_precision", "numeric_scale", "ordinal_position",
            ],
        )

    def copy_to_file(self, select_sql, fileobj, delimiter="|"):
        self.copies.append(select_sql)
        if self.fail_copy:
            raise self.fail_copy
        table = select_sql.rsplit(".", 1)[-1].strip('"')
        for row in self.rows.get(table, []):
            fileobj.write((delimiter.join(str(v) for v in row) + "\n").encode())

    def execute_script(self, script):
        self.scripts.append(script)
        return "SELECT 1"


class FakeStore:
    """MinIOConnector double keeping objects in a dict."""

    bucket = "exports"

    def __init__(self):
        self.objects = {}
        self.acls = {}
        self.fail_upload = None

    def connect(self):
        pass

    def list_objects(self, prefix="", recursive=True):
        return [name for name in self.objects if name.startswith(prefix)]

    def delete_prefix(self, prefix):
        names = self.list_objects(prefix)
        for name in names:
            del self.objects[name]
        return len(names)

    def upload_file(self, object_name, file_path, acl=None, content_type="application/octet-stream"):
        if self.fail_upload:
            raise self.fail_upload
        with open(file_path, "rb") as f:
            self.objects[object_name] = f.read()
        self.acls[object_name] = acl
        return f"s3://{self.bucket}/{object_name}"


class FakeWarehouse:
    """
    RedshiftConnector double. Tracks table names through renames and
    rolls back uncommitted changes, so swap semantics can be asserted.
    """

    def __init__(self, tables=None):
        self.tables = set(tables or [])
        self._committed = set(self.tables)
        self.log = []
        self.fail_on = None
        self.params = []
        self.scripts = []

    def connect(self):
        pass

    def disconnect(self):
        pass

    def execute(self, statement, params=None):
        text = render(statement)
        self.log.append(text)
        self.params.append(params)
        if self.fail_on and self.fail_on in text:
            raise RuntimeError(f"simulated failure on: {self.fail_on}")

        words = text.replace('"', "").split()
        if text.startswith("DROP TABLE IF EXISTS"):
            self.tables.discard(words[4])
        elif text.startswith("ALTER TABLE"):
            old = words[2]
            self.tables.discard(old)
            self.tables.add(old.split(".")[0] + "." + words[5])
        elif text.startswith("CREATE TABLE IF NOT EXISTS"):
            self.tables.add(words[5])
        elif text.startswith("CREATE TABLE"):
            self.tables.add(words[2])

    def table_exists(self, schema, table):
        return f"{schema}.{table}" in self.tables

    def commit(self):
        self.log.append("COMMIT")
        self._committed = set(self.tables)

    def rollback(self):
        self.log.append("ROLLBACK")
        self.tables = set(self._committed)

    def execute_script(self, script):
        self.scripts.append(script)
        return "COMMIT"


class DroppedConnectionWarehouse(FakeWarehouse):
    """Warehouse whose connection dies during the bulk load."""

    def execute(self, statement, params=None):
        if render(statement).startswith("COPY"):
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        super().execute(statement, params)

    def rollback(self):
        raise psycopg2.InterfaceError("connection already closed")


def column_row(name, data_type, position, length=None, precision=None, scale=None):
    return {
        "column_name": name,
        "data_type": data_type,
        "character_maximum_length": length,
        "numeric_precision": precision,
        "numeric_scale": scale,
        "ordinal_position": position,
    }


USERS_COLUMNS = [
    column_row("id", "integer", 1, precision=32, scale=0),
    column_row("name", "character varying", 2, length=50),
]


@pytest.fixture
def users_table():
    return Table(schema_name="public", name="users", target_table_name="users").with_columns([
        Column(name="id", data_type="integer", numeric_precision=32, numeric_scale=0),
        Column(name="name", data_type="character varying", character_maximum_length=50),
    ])


@pytest.fixture
def source():
    return FakeSource(
        tables={"users": list(USERS_COLUMNS)},
        rows={"users": [(1, "a"), (2, "b")]},
    )


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def warehouse():
    return FakeWarehouse()


@pytest.fixture
def compressor():
    return GzipCompressor()


@pytest.fixture
def settings(tmp_path):
    return {
        "source": {"connection": {"uri": "postgresql://localhost/app"}, "schema": "public"},
        "target": {"connection": {"uri": "postgresql://localhost:5439/dw"}, "schema": "public"},
        "object_store": {
            "connection": {
                "endpoint": "s3.amazonaws.com",
                "access_key": "AKIA",
                "secret_key": "secret",
                "bucket": "exports",
                "region": "us-west-2",
            },
            "prefix": "export",
        },
        "task_settings": {
            "compression": {"codec": "gzip"},
            "temp_dir": str(tmp_path),
            "hooks": {
                "pre_sql": str(tmp_path / "pre.sql"),
                "post_sql": str(tmp_path / "post.sql"),
            },
        },
    }
