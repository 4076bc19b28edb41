"""
Table assembly and the finished table object.
"""
import logging
from collections.abc import Sequence
from typing import Any

import pandas as pd
import pyarrow as pa
from dbarrow.buffers import ColumnBuffer
from dbarrow.exceptions import SchemaConsistencyError
from dbarrow.schema import ColumnSchema, to_arrow_schema

from libb import attrdict

__all__ = [
    'Table',
    'assemble_table',
]

logger = logging.getLogger(__name__)


class Table:
    """Finished conversion result: schema, row count and one column per schema entry.

    Columns are immutable ``pyarrow.Array`` objects in result-set order; the
    finalized buffers that produced them stay available as `buffers`. The
    table owns its memory and remains valid after the allocator that
    produced it is closed.
    """

    def __init__(self, schema: Sequence[ColumnSchema], row_count: int,
                 buffers: Sequence[ColumnBuffer]) -> None:
        self.schema = list(schema)
        self.row_count = row_count
        self.buffers = list(buffers)
        self.columns: list[pa.Array] = [buffer.finalize() for buffer in self.buffers]

    def __len__(self) -> int:
        return self.row_count

    def __repr__(self) -> str:
        columns = ', '.join(f'{c.name}: {c.logical_type}' for c in self.schema)
        return f'Table(row_count={self.row_count}, columns=[{columns}])'

    @property
    def names(self) -> list[str]:
        return [column.name for column in self.schema]

    @property
    def num_columns(self) -> int:
        return len(self.schema)

    @property
    def arrow_schema(self) -> pa.Schema:
        return to_arrow_schema(self.schema)

    def column(self, key: int | str) -> pa.Array:
        """Column by position or by name (first match)."""
        if isinstance(key, str):
            try:
                key = self.names.index(key)
            except ValueError as e:
                raise KeyError(key) from e
        return self.columns[key]

    def row(self, index: int) -> attrdict:
        """One row as an attrdict of Python values (None for nulls)."""
        if not -self.row_count <= index < self.row_count:
            raise IndexError(f'row {index} out of range for {self.row_count} rows')
        index %= self.row_count
        return attrdict({name: column[index].as_py()
                         for name, column in zip(self.names, self.columns)})

    def column_types(self) -> dict[str, dict[str, Any]]:
        """Column type metadata indexed by name."""
        return {
            column.name: {
                'logical_type': str(column.logical_type),
                'arrow_type': str(column.logical_type.arrow_type),
                'nullable': column.nullable,
                }
            for column in self.schema
            }

    def to_arrow(self) -> pa.Table:
        """A ``pyarrow.Table`` sharing this table's buffers."""
        return pa.Table.from_arrays(self.columns, schema=self.arrow_schema)

    def to_pandas(self) -> pd.DataFrame:
        """PyArrow-backed pandas DataFrame.

        Includes type information in the DataFrame.attrs attribute.
        """
        df = self.to_arrow().to_pandas(types_mapper=pd.ArrowDtype)
        df.attrs['column_types'] = self.column_types()
        return df


def assemble_table(schema: Sequence[ColumnSchema], buffers: Sequence[ColumnBuffer]) -> Table:
    """Finalize the buffers of a finished row pass into a Table.

    Args:
        schema: Column schemas in result-set order
        buffers: Filled buffers, one per schema entry, same order

    Returns
        Table owning the finalized columns

    Raises
        SchemaConsistencyError: Buffer count or value counts disagree
    """
    if len(schema) != len(buffers):
        raise SchemaConsistencyError(f'Got {len(buffers)} buffers for {len(schema)} columns')
    row_count = buffers[0].value_count if buffers else 0
    for column, buffer in zip(schema, buffers):
        if buffer.value_count != row_count:
            raise SchemaConsistencyError(
                f'Column {column.name!r} holds {buffer.value_count} values, '
                f'expected {row_count}')
    for buffer in buffers:
        buffer.finalize(row_count)
    logger.debug(f'Assembled table with {len(buffers)} columns and {row_count} rows')
    return Table(schema, row_count, buffers)
