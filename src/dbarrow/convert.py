"""
Public conversion entry points.

    convert(connection, query_text)       run a query and convert its result
    convert(cursor)                       convert an executed cursor
    convert(cursor, allocator)            same, drawing memory from `allocator`

The query form opens (and always closes) its own cursor but never closes the
connection. The cursor forms leave the cursor open.
"""
import logging
import time
from contextlib import closing
from functools import wraps
from typing import Any

from dbarrow.adapters.column_info import columns_from_cursor_description
from dbarrow.driver import RowDriver
from dbarrow.exceptions import DatabaseError, InvalidArgumentError
from dbarrow.exceptions import NullArgumentError, SourceError
from dbarrow.memory import BufferAllocator
from dbarrow.options import ConversionOptions
from dbarrow.schema import map_schema
from dbarrow.table import Table, assemble_table
from dbarrow.utils import get_dialect_name, get_raw_connection

__all__ = [
    'convert',
    'convert_cursor',
    'convert_query',
]

logger = logging.getLogger(__name__)

_MISSING = object()


def dumpsql(func):
    """Decorator for logging SQL queries and parameters."""
    @wraps(func)
    def wrapper(cursor: Any, operation: str, params: Any = None):
        start = time.time()
        logger.debug(f'SQL:\n{operation}\nparams: {params}')
        try:
            result = func(cursor, operation, params)
            if hasattr(cursor, 'statusmessage'):
                logger.debug(f'Query result: {cursor.statusmessage}')
            return result
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{operation}\nparams: {params}')
            raise
        finally:
            elapsed = time.time() - start
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


@dumpsql
def _execute(cursor: Any, operation: str, params: Any = None) -> None:
    try:
        if params is None:
            cursor.execute(operation)
        else:
            cursor.execute(operation, params)
    except DatabaseError:
        raise
    except Exception as e:
        raise SourceError(f'Query failed: {e}') from e


def _convert(cursor: Any, allocator: BufferAllocator, options: ConversionOptions) -> Table:
    if cursor.description is None:
        raise InvalidArgumentError('Cursor has no result set; execute a query that returns rows')

    dialect = options.dialect or get_dialect_name(cursor)
    columns = columns_from_cursor_description(cursor, dialect, options.table_name, options.column_types)
    schema = map_schema(columns, options)
    logger.debug(f'Mapped {len(schema)} {dialect} columns: {[str(c.logical_type) for c in schema]}')

    start = time.time()
    driver = RowDriver(cursor, schema, allocator, options)
    buffers = driver.run()
    try:
        table = assemble_table(schema, buffers)
    except Exception:
        driver.release()
        raise
    logger.debug(f'Conversion time: {time.time() - start:.4f}s')
    return table


def convert_cursor(cursor: Any, allocator: BufferAllocator | None = None, *,
                   options: ConversionOptions | dict | None = None, **kw: Any) -> Table:
    """Convert the result set of an executed cursor.

    Args:
        cursor: DB-API cursor on which a row-returning query was executed
        allocator: Caller-owned allocator; when None an allocator is created
            for this call and closed before returning (the table stays valid)
        options: ConversionOptions, or a dict of its fields
        **kw: Option overrides

    Returns
        Table with one column per result column
    """
    if cursor is None:
        raise NullArgumentError('cursor is required')
    options = ConversionOptions.coerce(options, **kw)

    if allocator is None:
        with BufferAllocator(limit=options.allocation_limit,
                             memory_pool=options.memory_pool) as owned:
            return _convert(cursor, owned, options)
    return _convert(cursor, allocator, options)


def convert_query(connection: Any, query_text: str, allocator: BufferAllocator | None = None, *,
                  params: Any = None, options: ConversionOptions | dict | None = None,
                  **kw: Any) -> Table:
    """Execute a query on `connection` and convert its result.

    Args:
        connection: DB-API connection, or a wrapper exposing the raw one
            (`driver_connection`, `dbapi_connection`)
        query_text: SQL returning rows
        allocator: Optional caller-owned allocator
        params: Optional query parameters, passed to cursor.execute
        options: ConversionOptions, or a dict of its fields
        **kw: Option overrides

    Returns
        Table with one column per result column
    """
    if connection is None:
        raise NullArgumentError('connection is required')
    if query_text is None:
        raise NullArgumentError('query_text is required')
    if not isinstance(query_text, str) or not query_text.strip():
        raise InvalidArgumentError('query_text can not be empty')

    options = ConversionOptions.coerce(options, **kw)
    if options.dialect is None:
        options = ConversionOptions.coerce(options, dialect=get_dialect_name(connection))

    raw_conn = get_raw_connection(connection)
    with closing(raw_conn.cursor()) as cursor:
        _execute(cursor, query_text, params)
        return convert_cursor(cursor, allocator, options=options)


def convert(source: Any, target: Any = _MISSING, allocator: BufferAllocator | None = None, *,
            params: Any = None, options: ConversionOptions | dict | None = None,
            **kw: Any) -> Table:
    """Convert a query result to a Table.

    Dispatches on the second argument:

    - query text: `source` is a connection, see `convert_query`
    - omitted: `source` is an executed cursor converted with the `allocator`
      keyword, or an allocator owned by this call, see `convert_cursor`
    - a BufferAllocator: `source` is an executed cursor, the caller owns the
      allocator

    Raises
        NullArgumentError: `source` is None, or the second argument is None
        InvalidArgumentError: Empty query text or an unusable second argument,
            `params` on a cursor, or two allocators
    """
    if source is None:
        raise NullArgumentError('connection or cursor is required')
    if target is _MISSING:
        if params is not None:
            raise InvalidArgumentError('params require query text; the cursor was already executed')
        return convert_cursor(source, allocator, options=options, **kw)
    if target is None:
        raise NullArgumentError('query text or allocator is required')
    if isinstance(target, str):
        return convert_query(source, target, allocator, params=params, options=options, **kw)
    if isinstance(target, BufferAllocator):
        if allocator is not None:
            raise InvalidArgumentError('allocator given both positionally and by keyword')
        if params is not None:
            raise InvalidArgumentError('params require query text; the cursor was already executed')
        return convert_cursor(source, target, options=options, **kw)
    raise InvalidArgumentError(
        f'Expected query text or BufferAllocator, got {type(target).__name__}')
