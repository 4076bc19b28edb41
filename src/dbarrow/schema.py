"""
Schema mapping: row-set metadata to columnar column schemas.

Mapping is pure. The same descriptors and options always yield the same
schema, and the schema never changes once a conversion starts.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass

import pyarrow as pa
from dbarrow.adapters.column_info import ColumnDescriptor
from dbarrow.codecs import kind_for
from dbarrow.exceptions import UnsupportedTypeError
from dbarrow.options import ConversionOptions
from dbarrow.types import DECIMAL256_MAX_PRECISION, ColumnKind, LogicalType

__all__ = [
    'ColumnSchema',
    'map_schema',
    'to_arrow_schema',
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ColumnSchema:
    """Name, columnar type and nullability of one output column."""
    name: str
    logical_type: LogicalType
    nullable: bool = True

    @property
    def arrow_field(self) -> pa.Field:
        return pa.field(self.name, self.logical_type.arrow_type, nullable=self.nullable)


def _decimal_type(column: ColumnDescriptor, options: ConversionOptions) -> LogicalType:
    precision, scale = column.precision, column.scale
    if not precision:
        if options.default_decimal_precision is None:
            raise UnsupportedTypeError(
                f'Column {column.name!r} is {column.sql_type.name} without a precision; '
                'declare one or set default_decimal_precision',
                column=column.name, type_code=column.type_code)
        precision, scale = options.default_decimal_precision, options.default_decimal_scale
    scale = scale or 0

    if not 1 <= precision <= DECIMAL256_MAX_PRECISION:
        raise UnsupportedTypeError(
            f'Column {column.name!r} has decimal precision {precision}, '
            f'supported range is 1 to {DECIMAL256_MAX_PRECISION}',
            column=column.name, type_code=column.type_code)

    if scale < 0:
        if options.strict_decimal_scale:
            raise UnsupportedTypeError(
                f'Column {column.name!r} has negative decimal scale {scale}',
                column=column.name, type_code=column.type_code)
        logger.warning(f'Column {column.name!r} has negative decimal scale {scale}, using 0')
        scale = 0

    if scale > precision:
        raise UnsupportedTypeError(
            f'Column {column.name!r} has decimal scale {scale} greater than precision {precision}',
            column=column.name, type_code=column.type_code)

    return LogicalType.decimal(precision, scale)


def map_column(column: ColumnDescriptor, options: ConversionOptions | None = None) -> ColumnSchema:
    """Map one column descriptor to its column schema.
    """
    options = options or ConversionOptions()
    kind = kind_for(column.sql_type) if column.sql_type is not None else None
    if kind is None:
        reported = column.sql_type.name if column.sql_type is not None else repr(column.type_code)
        raise UnsupportedTypeError(
            f'Column {column.name!r} has unsupported type {reported}',
            column=column.name, type_code=column.type_code)

    if kind is ColumnKind.DECIMAL:
        logical_type = _decimal_type(column, options)
    elif kind is ColumnKind.TIMESTAMP:
        logical_type = LogicalType.timestamp(options.timezone)
    else:
        logical_type = LogicalType(kind)
    return ColumnSchema(column.name, logical_type, column.nullable)


def map_schema(columns: Sequence[ColumnDescriptor],
               options: ConversionOptions | None = None) -> list[ColumnSchema]:
    """Map row-set metadata to the ordered column schemas of the output.

    Args:
        columns: Column descriptors in result-set order
        options: Conversion options (decimal and timezone handling)

    Returns
        One ColumnSchema per descriptor, in the same order

    Raises
        UnsupportedTypeError: A column's type has no columnar encoding
    """
    options = options or ConversionOptions()
    return [map_column(column, options) for column in columns]


def to_arrow_schema(schema: Sequence[ColumnSchema]) -> pa.Schema:
    """Arrow schema equivalent of a column schema sequence."""
    return pa.schema([column.arrow_field for column in schema])
