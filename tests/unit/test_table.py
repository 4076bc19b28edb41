"""
Tests for table assembly and the Table object.
"""
import datetime
from decimal import Decimal

import numpy as np
import pandas as pd
import pyarrow as pa
import pytest
from dbarrow.buffers import FixedWidthBuffer
from dbarrow.convert import convert_cursor
from dbarrow.exceptions import SchemaConsistencyError
from dbarrow.memory import BufferAllocator
from dbarrow.schema import ColumnSchema
from dbarrow.sqltypes import SqlType
from dbarrow.table import assemble_table
from dbarrow.types import ColumnKind, LogicalType


@pytest.fixture
def orders_table(make_cursor):
    cursor = make_cursor(
        [('id', SqlType.BIGINT, None, None, False),
         ('amount', SqlType.DECIMAL, 10, 2),
         ('name', SqlType.VARCHAR),
         ('day', SqlType.DATE)],
        [(1, Decimal('123.45'), 'abc', datetime.date(2024, 1, 15)),
         (2, None, None, None),
         (3, Decimal('-0.50'), '', datetime.date(1969, 12, 31))])
    return convert_cursor(cursor)


def test_assemble_equal_counts():
    """Test assembly finalizes every buffer and shares the row count"""
    schema = [ColumnSchema('a', LogicalType(ColumnKind.INT64)),
              ColumnSchema('b', LogicalType(ColumnKind.INT32))]
    with BufferAllocator() as allocator:
        a = FixedWidthBuffer(pa.int64(), np.int64, allocator, 2)
        b = FixedWidthBuffer(pa.int32(), np.int32, allocator, 2)
        for value in (1, 2):
            a.append(value)
            b.append(value * 10)

        table = assemble_table(schema, [a, b])

    assert table.row_count == 2
    assert len(table) == 2
    assert a.finalized and b.finalized
    assert table.column('b').to_pylist() == [10, 20]


def test_assemble_divergent_counts():
    """Test divergent value counts are an internal consistency error"""
    schema = [ColumnSchema('a', LogicalType(ColumnKind.INT64)),
              ColumnSchema('b', LogicalType(ColumnKind.INT64))]
    with BufferAllocator() as allocator:
        a = FixedWidthBuffer(pa.int64(), np.int64, allocator, 2)
        b = FixedWidthBuffer(pa.int64(), np.int64, allocator, 2)
        a.append(1)
        a.append(2)
        b.append(1)

        with pytest.raises(SchemaConsistencyError, match="'b'"):
            assemble_table(schema, [a, b])

        with pytest.raises(SchemaConsistencyError):
            assemble_table(schema, [a])

        a.release()
        b.release()


def test_assemble_no_columns():
    """Test a result without columns assembles to an empty table"""
    table = assemble_table([], [])
    assert table.row_count == 0
    assert table.columns == []


def test_columns_and_names(orders_table):
    """Test positional and named column access"""
    assert orders_table.names == ['id', 'amount', 'name', 'day']
    assert orders_table.num_columns == 4
    assert orders_table.row_count == 3
    assert orders_table.column(0).to_pylist() == [1, 2, 3]
    assert orders_table.column('amount').to_pylist() == [Decimal('123.45'), None, Decimal('-0.50')]
    assert orders_table.column('name').to_pylist() == ['abc', None, '']
    assert orders_table.column('day').type == pa.date64()

    with pytest.raises(KeyError):
        orders_table.column('missing')


def test_row(orders_table):
    """Test rows come back as attrdicts of Python values"""
    row = orders_table.row(0)
    assert row.id == 1
    assert row.amount == Decimal('123.45')
    assert row.name == 'abc'
    assert row.day == datetime.date(2024, 1, 15)

    last = orders_table.row(-1)
    assert last.day == datetime.date(1969, 12, 31)
    assert orders_table.row(1).amount is None

    with pytest.raises(IndexError):
        orders_table.row(3)


def test_to_arrow(orders_table):
    """Test the Arrow table carries the schema"""
    arrow = orders_table.to_arrow()

    assert isinstance(arrow, pa.Table)
    assert arrow.num_rows == 3
    assert arrow.schema.field('id').nullable is False
    assert arrow.schema.field('amount').type == pa.decimal128(10, 2)
    assert arrow.column('name').to_pylist() == ['abc', None, '']


def test_to_pandas(orders_table):
    """Test the DataFrame uses Arrow dtypes and records column metadata"""
    df = orders_table.to_pandas()

    assert list(df.columns) == ['id', 'amount', 'name', 'day']
    assert df['id'].dtype == pd.ArrowDtype(pa.int64())
    assert df['amount'].dtype == pd.ArrowDtype(pa.decimal128(10, 2))
    assert df['id'].tolist() == [1, 2, 3]
    assert pd.isna(df['name'].iloc[1])

    column_types = df.attrs['column_types']
    assert column_types['amount']['logical_type'] == 'Decimal(10, 2)'
    assert column_types['id']['nullable'] is False


def test_repr(orders_table):
    """Test the repr lists column types"""
    assert repr(orders_table) == (
        'Table(row_count=3, columns=[id: Int64, amount: Decimal(10, 2), name: Utf8, day: Date])')


if __name__ == '__main__':
    __import__('pytest').main([__file__])
