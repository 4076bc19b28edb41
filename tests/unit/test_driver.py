"""
Tests for the row driver.
"""
import sqlite3
from decimal import Decimal

import pytest
from dbarrow.driver import DriverState, RowDriver, iter_rows
from dbarrow.exceptions import ConversionError, SourceError
from dbarrow.memory import BufferAllocator
from dbarrow.options import ConversionOptions
from dbarrow.schema import ColumnSchema
from dbarrow.types import ColumnKind, LogicalType


def schema_of(*columns):
    result = []
    for name, kind in columns:
        logical_type = kind if isinstance(kind, LogicalType) else LogicalType(kind)
        result.append(ColumnSchema(name, logical_type))
    return result


@pytest.fixture
def allocator():
    allocator = BufferAllocator()
    yield allocator
    allocator.close()


def test_bigint_with_null(make_cursor, allocator):
    """Test a BIGINT column with a null in the middle"""
    cursor = make_cursor([('n',)], [(10,), (None,), (42,)])
    driver = RowDriver(cursor, schema_of(('n', ColumnKind.INT64)), allocator)

    assert driver.state is DriverState.INIT
    buffer, = driver.run()

    assert driver.state is DriverState.DONE
    assert driver.rows_processed == 3
    assert buffer.value_count == 3
    assert [not buffer.is_null(i) for i in range(3)] == [True, False, True]
    assert buffer.get(0) == 10
    assert buffer.get(2) == 42


def test_varchar_offsets(make_cursor, allocator):
    """Test empty strings and nulls in a VARCHAR column"""
    cursor = make_cursor([('s',)], [('abc',), (None,), ('',)])
    buffer, = RowDriver(cursor, schema_of(('s', ColumnKind.UTF8)), allocator).run()

    assert buffer.offsets() == [0, 3, 3, 3]
    assert buffer.get(0) == b'abc'
    assert [buffer.is_null(i) for i in range(3)] == [False, True, False]


def test_decimal_scaled(make_cursor, allocator):
    """Test a DECIMAL(10,2) value is stored as its scaled integer"""
    cursor = make_cursor([('d',)], [(Decimal('123.45'),)])
    buffer, = RowDriver(cursor, schema_of(('d', LogicalType.decimal(10, 2))), allocator).run()

    assert buffer.get(0) == 12345


def test_empty_result(make_cursor, allocator):
    """Test an empty result leaves every buffer empty"""
    cursor = make_cursor([('a',), ('b',)], [])
    buffers = RowDriver(cursor, schema_of(('a', ColumnKind.INT32), ('b', ColumnKind.UTF8)),
                        allocator).run()

    assert [b.value_count for b in buffers] == [0, 0]


def test_fetchmany_batches(make_cursor, allocator):
    """Test rows are fetched with fetchmany(batch_size)"""
    cursor = make_cursor([('n',)], [(i,) for i in range(5)])
    options = ConversionOptions(batch_size=2)
    buffer, = RowDriver(cursor, schema_of(('n', ColumnKind.INT64)), allocator, options).run()

    assert cursor.fetch_sizes == [2, 2, 2, 2]
    assert buffer.value_count == 5


def test_iteration_only_cursor(make_iter_cursor, allocator):
    """Test cursors without fetchmany() are iterated"""
    cursor = make_iter_cursor([('n',)], [(1,), (2,)])
    buffer, = RowDriver(cursor, schema_of(('n', ColumnKind.INT16)), allocator).run()

    assert [buffer.get(i) for i in range(2)] == [1, 2]


def test_iter_rows_propagates_errors(make_cursor):
    """Test fetch errors are not swallowed"""
    cursor = make_cursor([('n',)], [(1,), (2,)], fail_after=1)

    with pytest.raises(RuntimeError):
        list(iter_rows(cursor, 1))


def test_mapping_rows(make_cursor, allocator):
    """Test dict rows are read by column name"""
    cursor = make_cursor([('a',), ('b',)], [{'b': 'x', 'a': 1}, {'a': None, 'b': None}])
    a, b = RowDriver(cursor, schema_of(('a', ColumnKind.INT32), ('b', ColumnKind.UTF8)),
                     allocator).run()

    assert a.get(0) == 1
    assert b.get(0) == b'x'
    assert a.is_null(1)
    assert b.is_null(1)


def test_mapping_row_missing_column(make_cursor, allocator):
    """Test a dict row without a schema column is a source error"""
    cursor = make_cursor([('a',)], [{'b': 1}])

    with pytest.raises(SourceError, match='no column'):
        RowDriver(cursor, schema_of(('a', ColumnKind.INT32)), allocator).run()


def test_row_width_mismatch(make_cursor, allocator):
    """Test a row with the wrong number of values is a source error"""
    cursor = make_cursor([('a',), ('b',)], [(1, 'x'), (2,)])

    with pytest.raises(SourceError, match='has 1 values, expected 2'):
        RowDriver(cursor, schema_of(('a', ColumnKind.INT32), ('b', ColumnKind.UTF8)),
                  allocator).run()
    assert allocator.bytes_allocated == 0


def test_conversion_error_context(make_cursor, allocator):
    """Test conversion errors carry column and row and release buffers"""
    cursor = make_cursor([('id',), ('small',)], [(1, 1), (2, 300)])
    driver = RowDriver(cursor, schema_of(('id', ColumnKind.INT64), ('small', ColumnKind.INT8)),
                       allocator)

    with pytest.raises(ConversionError) as exc_info:
        driver.run()

    error = exc_info.value
    assert error.column == 'small'
    assert error.column_index == 1
    assert error.row == 1
    assert error.value == 300
    assert "column 'small' at index 1, row 1" in str(error)
    assert driver.state is DriverState.STREAMING
    assert allocator.bytes_allocated == 0


def test_source_error_wraps_cursor_failure(make_cursor, allocator):
    """Test cursor failures become SourceError with the original chained"""
    cursor = make_cursor([('n',)], [(1,), (2,), (3,)], fail_after=2)
    options = ConversionOptions(batch_size=1)

    with pytest.raises(SourceError) as exc_info:
        RowDriver(cursor, schema_of(('n', ColumnKind.INT64)), allocator, options).run()

    assert isinstance(exc_info.value.__cause__, RuntimeError)
    assert 'after row 2' in str(exc_info.value)
    assert exc_info.value.retryable
    assert allocator.bytes_allocated == 0


def test_source_error_retryable(make_cursor, allocator):
    """Test retryable reflects transient driver errors only"""
    locked = make_cursor([('n',)], [(1,)], fail_after=0,
                         error=sqlite3.OperationalError('database is locked'))
    with pytest.raises(SourceError) as exc_info:
        RowDriver(locked, schema_of(('n', ColumnKind.INT64)), allocator).run()
    assert exc_info.value.retryable

    broken = make_cursor([('n',)], [(1,)], fail_after=0, error=ValueError('bad row data'))
    with pytest.raises(SourceError) as exc_info:
        RowDriver(broken, schema_of(('n', ColumnKind.INT64)), allocator).run()
    assert not exc_info.value.retryable


def test_buffer_presizing(make_cursor, allocator):
    """Test buffers are sized from the hint, the rowcount, then the default"""
    schema = schema_of(('n', ColumnKind.INT64))

    hinted = RowDriver(make_cursor([('n',)], rowcount=5), schema, allocator,
                       ConversionOptions(row_count_hint=300))
    assert hinted.expected_row_count() == 300

    counted = RowDriver(make_cursor([('n',)], rowcount=100), schema, allocator)
    assert counted.expected_row_count() == 100
    buffer, = counted.run()
    assert buffer.capacity == 100

    unknown = RowDriver(make_cursor([('n',)], rowcount=-1), schema, allocator,
                        ConversionOptions(initial_capacity=64))
    assert unknown.expected_row_count() == 64


def test_run_once(make_cursor, allocator):
    """Test a driver refuses to run twice"""
    driver = RowDriver(make_cursor([('n',)], [(1,)]), schema_of(('n', ColumnKind.INT64)), allocator)
    driver.run()

    with pytest.raises(RuntimeError, match='already ran'):
        driver.run()


def test_codec_count_must_match(make_cursor, allocator):
    """Test explicit codecs must cover every column"""
    with pytest.raises(ValueError):
        RowDriver(make_cursor([('n',)]), schema_of(('n', ColumnKind.INT64)), allocator, codecs=[])


if __name__ == '__main__':
    __import__('pytest').main([__file__])
