"""
Convert relational query results to Arrow columns.

    table = dbarrow.convert(cn, 'select id, amount from orders')
    table = dbarrow.convert(cursor)
    table = dbarrow.convert(cursor, allocator)

Each column of the result becomes one typed, nullable, contiguous array.
"""
__version__ = '0.1.0'

from dbarrow.adapters.column_info import ColumnDescriptor
from dbarrow.convert import convert, convert_cursor, convert_query
from dbarrow.driver import DriverState, RowDriver
from dbarrow.exceptions import AllocationError, ConversionError, DatabaseError
from dbarrow.exceptions import InvalidArgumentError, NullArgumentError
from dbarrow.exceptions import SchemaConsistencyError, SourceError
from dbarrow.exceptions import UnsupportedTypeError, ValidationError
from dbarrow.memory import BufferAllocator
from dbarrow.options import ConversionOptions
from dbarrow.schema import ColumnSchema, map_schema
from dbarrow.sqltypes import SqlType
from dbarrow.table import Table, assemble_table
from dbarrow.types import ColumnKind, LogicalType

__all__ = [
    'convert',
    'convert_cursor',
    'convert_query',
    'ConversionOptions',
    'BufferAllocator',
    'ColumnDescriptor',
    'ColumnSchema',
    'ColumnKind',
    'LogicalType',
    'SqlType',
    'map_schema',
    'RowDriver',
    'DriverState',
    'Table',
    'assemble_table',
    'DatabaseError',
    'ValidationError',
    'NullArgumentError',
    'InvalidArgumentError',
    'UnsupportedTypeError',
    'ConversionError',
    'SourceError',
    'AllocationError',
    'SchemaConsistencyError',
]
