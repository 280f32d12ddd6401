"""
Replication Models
==================

Typed records for the tables and columns discovered in the source database.
"""

from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from .type_mapper import warehouse_type


class Column(BaseModel):
    """One column of a source table, as reported by information_schema."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Column name")
    data_type: str = Field(..., min_length=1, description="information_schema data_type")
    character_maximum_length: Optional[int] = Field(None, description="Declared length of character types")
    numeric_precision: Optional[int] = Field(None, description="Declared precision of numeric types")
    numeric_scale: Optional[int] = Field(None, description="Declared scale of numeric types")

    @property
    def select_expression(self) -> str:
        """Expression used for this column in the export SELECT."""
        quoted = quote_ident(self.name)
        if self.data_type == "money":
            # money renders with currency symbols in text format
            return f"{quoted}::numeric"
        return quoted


class Table(BaseModel):
    """A source base table selected for replication."""
    model_config = ConfigDict(frozen=True)

    schema_name: str = Field("public", description="Source namespace")
    name: str = Field(..., min_length=1, description="Source table name")
    target_table_name: str = Field(..., min_length=1, description="Warehouse table name")
    columns: Tuple[Column, ...] = Field(default_factory=tuple, description="Columns in ordinal order")

    def with_columns(self, columns: List[Column]) -> "Table":
        """Return a copy of this table with its columns attached."""
        return self.model_copy(update={"columns": tuple(columns)})

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def column_definitions(self) -> List[Tuple[str, str]]:
        """
        Map every column to its warehouse type.

        Returns:
            (column name, warehouse type) pairs in ordinal order

        Raises:
            UnsupportedTypeError: if any column type has no mapping
        """
        return [(column.name, warehouse_type(column, table=self.name)) for column in self.columns]

    def columns_for_copy(self) -> str:
        """Comma separated SELECT list for the export query."""
        return ", ".join(column.select_expression for column in self.columns)

    @property
    def qualified_name(self) -> str:
        return f"{quote_ident(self.schema_name)}.{quote_ident(self.name)}"

    def __str__(self) -> str:
        return f"{self.schema_name}.{self.name}"


def quote_ident(identifier: str) -> str:
    """Double-quote a SQL identifier."""
    return '"' + identifier.replace('"', '""') + '"'
