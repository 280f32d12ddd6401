"""
Type Mapper
===========

Translates PostgreSQL column types (information_schema.columns.data_type)
into Redshift DDL types. Types outside the mapping are rejected rather
than guessed.
"""

from typing import Optional

from .errors import UnsupportedTypeError

MAX_VARCHAR = 65535
MAX_DECIMAL_PRECISION = 38

# Types with a one-to-one warehouse equivalent
DIRECT_TYPE_MAP = {
    "smallint": "smallint",
    "integer": "integer",
    "bigint": "bigint",
    "real": "real",
    "double precision": "double precision",
    "boolean": "boolean",
    "date": "date",
    "timestamp without time zone": "timestamp",
    "timestamp with time zone": "timestamptz",
    "time without time zone": "time",
    "time with time zone": "timetz",
    "money": "decimal(19,2)",
    "uuid": "varchar(36)",
    "name": "varchar(64)",
    '"char"': "varchar(4)",
}

# Types loaded as their text representation
TEXT_TYPES = {
    "text",
    "json",
    "jsonb",
    "xml",
    "ARRAY",
    "USER-DEFINED",
    "bytea",
    "inet",
    "cidr",
    "macaddr",
    "interval",
    "tsvector",
    "tsquery",
    "macaddr8",
    "jsonpath",
    # geometric
    "point",
    "line",
    "lseg",
    "box",
    "path",
    "polygon",
    "circle",
    # ranges and multiranges
    "int4range",
    "int8range",
    "numrange",
    "tsrange",
    "tstzrange",
    "daterange",
    "int4multirange",
    "int8multirange",
    "nummultirange",
    "tsmultirange",
    "tstzmultirange",
    "datemultirange",
    # system identifiers
    "oid",
    "xid",
    "xid8",
    "cid",
    "tid",
    "pg_lsn",
    "pg_snapshot",
    "txid_snapshot",
    "regclass",
    "regcollation",
    "regconfig",
    "regdictionary",
    "regnamespace",
    "regoper",
    "regoperator",
    "regproc",
    "regprocedure",
    "regrole",
    "regtype",
}

SIZED_TYPES = {"character varying", "character", "bit varying", "bit", "numeric", "decimal"}

SUPPORTED_TYPES = set(DIRECT_TYPE_MAP) | TEXT_TYPES | SIZED_TYPES


def warehouse_type(column, table: Optional[str] = None) -> str:
    """
    Return the Redshift type for a source column.

    Args:
        column: Column record
        table: Owning table name, used in the error message

    Returns:
        Warehouse DDL type string

    Raises:
        UnsupportedTypeError: if the source type is not in the allow-list
    """
    data_type = column.data_type

    if data_type == "character varying":
        return f"varchar({column.character_maximum_length or MAX_VARCHAR})"

    if data_type == "character":
        return f"char({column.character_maximum_length or 1})"

    if data_type == "bit varying":
        return f"varchar({column.character_maximum_length or MAX_VARCHAR})"

    if data_type == "bit":
        return f"char({column.character_maximum_length or 1})"

    if data_type in ("numeric", "decimal"):
        precision = column.numeric_precision
        scale = column.numeric_scale
        if precision is not None and scale is not None and precision <= MAX_DECIMAL_PRECISION:
            return f"decimal({precision},{scale})"
        return "double precision"

    if data_type in DIRECT_TYPE_MAP:
        return DIRECT_TYPE_MAP[data_type]

    if data_type in TEXT_TYPES:
        return f"varchar({MAX_VARCHAR})"

    raise UnsupportedTypeError(table or "<unknown>", column.name, data_type)
